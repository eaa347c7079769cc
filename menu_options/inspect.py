from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .decode import PLACEHOLDER_RE, decode_notes
from .formatting import format_decoded_notes
from .models import MenuCatalog


def _join_lines(lines: List[str]) -> str:
    return " | ".join(line for line in lines if line)


def order_line_rows(
    lines: Iterable[Mapping[str, Any]],
    lookup: Optional[Mapping[str, Any]] = None,
) -> list[dict]:
    """
    One row per persisted order line with its notes decoded.
    A corrupt notes value only affects its own row.
    """
    rows: List[Dict[str, Any]] = []
    for line in lines:
        if not isinstance(line, Mapping):
            continue
        raw_notes = line.get("notes")
        decoded = decode_notes(raw_notes if isinstance(raw_notes, str) else None, lookup)
        rows.append(
            {
                "order_id": line.get("order_id"),
                "menu_id": line.get("menu_id"),
                "name": line.get("name_snapshot"),
                "qty": line.get("qty"),
                "price": line.get("price_snapshot"),
                "line_total": line.get("line_total"),
                "notes_strategy": decoded.strategy,
                "notes_pairs": len(decoded.pairs),
                "notes_display": _join_lines(format_decoded_notes(decoded)),
                "notes_raw": raw_notes,
            }
        )

    # Stable sort for diff-friendliness.
    rows.sort(key=lambda r: (str(r.get("order_id") or ""), str(r.get("name") or "").casefold()))
    return rows


def option_rows(catalog: MenuCatalog) -> list[dict]:
    rows: List[Dict[str, Any]] = []
    for option in catalog.options.values():
        item = catalog.items.get(option.menu_item_id or "")
        rows.append(
            {
                "option_id": option.id,
                "menu_item_id": option.menu_item_id,
                "menu_item_name": item.name if item else None,
                "label": option.label,
                "selection_type": option.selection_type.value,
                "max_selections": option.cap,
                "is_required": option.is_required,
                "num_choices": len(option.choices),
                "num_unavailable": len(catalog.unavailable_choices.get(option.id, {})),
                "choices": ", ".join(c.name for c in option.choices),
            }
        )
    rows.sort(key=lambda r: (str(r.get("menu_item_name") or "").casefold(), str(r.get("label") or "").casefold()))
    return rows


def summary(rows: List[Dict[str, Any]]) -> dict:
    by_strategy = Counter(r.get("notes_strategy") for r in rows)
    return {
        "num_lines": len(rows),
        "lines_with_notes": sum(1 for r in rows if r.get("notes_strategy") != "empty"),
        "by_strategy": dict(sorted(by_strategy.items(), key=lambda kv: str(kv[0]))),
        "unresolved_placeholders": sum(1 for r in rows if PLACEHOLDER_RE.search(r.get("notes_display") or "")),
    }


def _to_df(rows: list[dict]):
    import pandas as pd  # type: ignore

    return pd.DataFrame(rows)


def order_lines_df(lines: Iterable[Mapping[str, Any]], lookup: Optional[Mapping[str, Any]] = None):
    return _to_df(order_line_rows(lines, lookup))


def options_df(catalog: MenuCatalog):
    return _to_df(option_rows(catalog))
