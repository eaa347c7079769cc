"""
Catalog snapshot ingestion.

The data layer exports one JSON document per tenant menu:
{
    "menu_items": [...],
    "menu_options": [{..., "items": [...]}],   # option items nested, or
    "menu_option_items": [...],                # flat, joined by menu_option_id
    "menu_discounts": [...]
}
The tables may also sit under a "value" or "data" envelope.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional


_ENVELOPE_KEYS = ("value", "data")


@dataclass(frozen=True)
class OptionRow:
    """A raw option row with its raw choice rows attached."""
    option: Dict[str, Any]
    items: List[Dict[str, Any]]


def load_dataset(path: str) -> dict:
    """
    Load a catalog snapshot JSON from disk and return it as a Python dict.

    Args:
        path: Path to the JSON file

    Returns:
        The loaded snapshot as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
        ValueError: If the file cannot be read
    """
    file_path = Path(path)

    if not file_path.exists():
        raise FileNotFoundError(
            f"Catalog file not found: {path}. "
            f"Please ensure the file exists at the specified path."
        )

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise json.JSONDecodeError(
            f"Invalid JSON in catalog file: {path}",
            e.doc,
            e.pos
        ) from e
    except Exception as e:
        raise ValueError(
            f"Error reading catalog file {path}: {e}"
        ) from e

    if not isinstance(data, dict):
        raise ValueError(f"Catalog file must contain a JSON object: {path}")

    return data


def get_table(dataset: dict, name: str) -> List[Dict[str, Any]]:
    """
    Return the rows of a table, looking at the top level first and then
    inside the usual response envelopes. Missing tables yield [].
    """
    if not isinstance(dataset, dict):
        return []

    candidates = [dataset]
    for key in _ENVELOPE_KEYS:
        env = dataset.get(key)
        if isinstance(env, dict):
            candidates.append(env)

    for src in candidates:
        rows = src.get(name)
        if isinstance(rows, list):
            return [r for r in rows if isinstance(r, dict)]
    return []


def _option_id(row: Dict[str, Any]) -> Optional[str]:
    oid = row.get("id")
    return str(oid) if oid is not None else None


def iter_option_rows(dataset: dict) -> Iterator[OptionRow]:
    """
    Yield every option row with its choice rows.

    Nested "items" (the shape of an embedded select) win; otherwise choice rows
    are joined from the flat menu_option_items table.
    """
    flat_items: Dict[str, List[Dict[str, Any]]] = {}
    for item in get_table(dataset, "menu_option_items"):
        owner = item.get("menu_option_id")
        if owner is None:
            continue
        flat_items.setdefault(str(owner), []).append(item)

    for row in get_table(dataset, "menu_options"):
        nested = row.get("items")
        if isinstance(nested, list):
            items = [i for i in nested if isinstance(i, dict)]
        else:
            oid = _option_id(row)
            items = list(flat_items.get(oid, [])) if oid else []
        yield OptionRow(option=row, items=items)


def summarize_snapshot(dataset: dict) -> dict:
    """
    Returns counts useful for sanity checks.

    Returns:
        Dictionary with:
        - menu_items: Number of menu item rows
        - options: Number of option rows
        - choices: Number of choice rows attached to options
        - unavailable_choices: Choice rows flagged is_available = false
        - discounts: Number of discount rows
    """
    options = 0
    choices = 0
    unavailable = 0
    for row in iter_option_rows(dataset):
        options += 1
        choices += len(row.items)
        unavailable += sum(1 for i in row.items if i.get("is_available") is False)

    return {
        "menu_items": len(get_table(dataset, "menu_items")),
        "options": options,
        "choices": choices,
        "unavailable_choices": unavailable,
        "discounts": len(get_table(dataset, "menu_discounts")),
    }


if __name__ == "__main__":
    """CLI smoke test for catalog ingestion."""
    import sys

    dataset_path = "data/catalog.json"
    if len(sys.argv) > 1:
        dataset_path = sys.argv[1]

    try:
        ds = load_dataset(dataset_path)
        print(json.dumps(summarize_snapshot(ds), indent=2))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
