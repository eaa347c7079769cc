"""
Tests for catalog snapshot ingestion.
"""

import json
import pytest

from menu_options.ingest import (
    OptionRow,
    get_table,
    iter_option_rows,
    load_dataset,
    summarize_snapshot,
)


@pytest.fixture
def dataset_path():
    """Path to the catalog fixture."""
    return "data/catalog.json"


@pytest.fixture
def dataset(dataset_path):
    """Load the snapshot once for all tests."""
    return load_dataset(dataset_path)


class TestLoadDataset:
    """Test loading the snapshot JSON file."""

    def test_loads_json(self, dataset_path):
        result = load_dataset(dataset_path)
        assert isinstance(result, dict)
        assert "menu_options" in result

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            load_dataset("nonexistent_file.json")

    def test_invalid_json(self, tmp_path):
        invalid_json_file = tmp_path / "invalid.json"
        invalid_json_file.write_text("{ invalid json }")

        with pytest.raises(json.JSONDecodeError):
            load_dataset(str(invalid_json_file))

    def test_top_level_must_be_object(self, tmp_path):
        p = tmp_path / "list.json"
        p.write_text("[1, 2, 3]")

        with pytest.raises(ValueError):
            load_dataset(str(p))


class TestGetTable:
    """Test table lookup across response envelopes."""

    def test_top_level(self, dataset):
        assert len(get_table(dataset, "menu_items")) == 3

    def test_envelope(self):
        ds = {"data": {"menu_options": [{"id": "a"}, "junk"]}}
        assert get_table(ds, "menu_options") == [{"id": "a"}]

    def test_missing_table(self, dataset):
        assert get_table(dataset, "nope") == []
        assert get_table(None, "menu_items") == []


class TestIterOptionRows:
    """Test pairing option rows with their choice rows."""

    def test_nested_items(self, dataset):
        rows = {r.option["id"]: r for r in iter_option_rows(dataset)}
        assert isinstance(rows["opt-size-0001"], OptionRow)
        assert len(rows["opt-size-0001"].items) == 3

    def test_flat_items_are_joined(self, dataset):
        rows = {r.option["id"]: r for r in iter_option_rows(dataset)}
        names = [i["name"] for i in rows["opt-spread-0005"].items]
        assert names == ["Chocolate", "Cheese"]

    def test_option_without_items(self, dataset):
        rows = {r.option["id"]: r for r in iter_option_rows(dataset)}
        assert rows["opt-broken-0006"].items == []


def test_summarize_snapshot(dataset):
    s = summarize_snapshot(dataset)
    assert s == {
        "menu_items": 3,
        "options": 6,
        "choices": 13,
        "unavailable_choices": 1,
        "discounts": 2,
    }
