import json

import pytest

from menu_options.export import export_all, load_order_lines, main


def test_export_writes_expected_files(tmp_path):
    out_dir = tmp_path / "out"
    export_all(inp="data/order_items.json", catalog="data/catalog.json", out_dir=str(out_dir))

    expected = [
        "order_lines.csv",
        "order_lines.jsonl",
        "options.csv",
        "options.jsonl",
        "summary.json",
    ]
    for name in expected:
        p = out_dir / name
        assert p.exists()
        assert p.stat().st_size > 0, f"{name} should be non-empty"

    summary = json.loads((out_dir / "summary.json").read_text(encoding="utf-8"))
    assert summary["num_lines"] == 7


def test_export_without_catalog_skips_options(tmp_path):
    out_dir = tmp_path / "out"
    assert main(["--in", "data/order_items.json", "--out", str(out_dir)]) == 0
    assert (out_dir / "order_lines.jsonl").exists()
    assert not (out_dir / "options.csv").exists()

    first = json.loads((out_dir / "order_lines.jsonl").read_text(encoding="utf-8").splitlines()[0])
    assert first["order_id"] == "ord-0001"


def test_load_order_lines_accepts_bare_list(tmp_path):
    p = tmp_path / "lines.json"
    p.write_text('[{"order_id": "o1", "notes": null}, 3]', encoding="utf-8")
    assert load_order_lines(str(p)) == [{"order_id": "o1", "notes": None}]


def test_load_order_lines_missing_file():
    with pytest.raises(FileNotFoundError):
        load_order_lines("data/nope.json")
