from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .ingest import OptionRow, get_table, iter_option_rows
from .models import Choice, Discount, DiscountType, MenuItem, Option, SelectionType
from .pricing import to_decimal
from .utils import ensure_utc


_SHORT_OFFSET_RE = re.compile(r"(\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)([+-]\d{2})$")
_FRACTION_RE = re.compile(r"\.(\d+)")


def _as_int(value: Any) -> Optional[int]:
    try:
        if value is None:
            return None
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        return int(value)
    except Exception:
        return None


def _as_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    s = str(value).strip()
    return s or None


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in {"true", "t", "1", "yes"}:
            return True
        if lower in {"false", "f", "0", "no"}:
            return False
    return default


def _as_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    # Postgres text output: trailing Z or a bare "+00" offset, 1-9 fraction digits.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _SHORT_OFFSET_RE.sub(r"\1\2:00", s)
    s = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    return ensure_utc(parsed)


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def normalize_selection_type(value: Any) -> Optional[SelectionType]:
    """
    Map backend and descriptive spellings to SelectionType:
    'single_required' / 'exactly_one' -> EXACTLY_ONE
    'single_optional' / 'at_most_one' -> AT_MOST_ONE
    'multiple' / 'up_to_n'            -> UP_TO_N
    """
    if not isinstance(value, str):
        return None
    t = value.strip().lower().replace("-", "_").replace(" ", "_")
    if t in {"single_required", "exactly_one", "single"}:
        return SelectionType.EXACTLY_ONE
    if t in {"single_optional", "at_most_one", "optional"}:
        return SelectionType.AT_MOST_ONE
    if t in {"multiple", "up_to_n", "multi"}:
        return SelectionType.UP_TO_N
    return None


def extract_choices(row: OptionRow, option_id: str) -> Tuple[List[Choice], Dict[str, str]]:
    """
    Return (available choices ordered by sort_order, {id: name} of unavailable ones).
    """
    indexed: List[Tuple[int, int, Choice]] = []
    names: Dict[str, str] = {}

    for pos, raw in enumerate(row.items):
        cid = _as_id(raw.get("id"))
        name = _as_text(raw.get("name"))
        if cid is None or name is None:
            continue
        if not _as_bool(raw.get("is_available"), True):
            names[cid] = name
            continue

        price = to_decimal(raw.get("additional_price"))
        if price < 0:
            price = Decimal("0")
        choice = Choice(
            id=cid,
            owner_option_id=option_id,
            name=name,
            additional_price=price,
            is_available=True,
            sort_order=_as_int(raw.get("sort_order")) or 0,
        )
        indexed.append((choice.sort_order, pos, choice))

    indexed.sort(key=lambda t: (t[0], t[1]))
    return [c for _, _, c in indexed], names


def normalize_option(row: OptionRow) -> Tuple[Optional[Option], Dict[str, str]]:
    raw = row.option
    oid = _as_id(raw.get("id"))
    label = _as_text(raw.get("label"))
    selection_type = normalize_selection_type(raw.get("selection_type"))
    if oid is None or label is None or selection_type is None:
        return None, {}

    choices, names = extract_choices(row, oid)
    max_selections = _as_int(raw.get("max_selections")) or 1
    is_required = _as_bool(raw.get("is_required"), selection_type == SelectionType.EXACTLY_ONE)

    option = Option(
        id=oid,
        menu_item_id=_as_id(raw.get("menu_item_id")),
        label=label,
        selection_type=selection_type,
        max_selections=max(1, max_selections),
        is_required=is_required,
        sort_order=_as_int(raw.get("sort_order")) or 0,
        choices=choices,
    )
    return option, names


def extract_discounts(dataset: Dict[str, Any]) -> Dict[str, Discount]:
    table: Dict[str, Discount] = {}
    for raw in get_table(dataset, "menu_discounts"):
        did = _as_id(raw.get("id"))
        dtype = raw.get("discount_type")
        if did is None or dtype not in {t.value for t in DiscountType}:
            continue
        table[did] = Discount(
            id=did,
            type=DiscountType(dtype),
            value=to_decimal(raw.get("discount_value")),
            name=_as_text(raw.get("name")),
            is_active=_as_bool(raw.get("is_active"), True),
            start_date=_as_datetime(raw.get("start_date")),
            end_date=_as_datetime(raw.get("end_date")),
        )
    return table


def extract_menu_items(dataset: Dict[str, Any]) -> Dict[str, MenuItem]:
    items: Dict[str, MenuItem] = {}
    for raw in get_table(dataset, "menu_items"):
        mid = _as_id(raw.get("id"))
        name = _as_text(raw.get("name"))
        if mid is None or name is None:
            continue
        # base_price is the pre-discount price; older rows only have price.
        base = raw.get("base_price")
        if base is None or to_decimal(base) == 0:
            base = raw.get("price")
        items[mid] = MenuItem(
            id=mid,
            name=name,
            base_price=to_decimal(base),
            discount_id=_as_id(raw.get("discount_id")),
            tenant_id=_as_id(raw.get("tenant_id")),
        )
    return items


def normalize_catalog(
    dataset: Dict[str, Any],
) -> tuple[Dict[str, MenuItem], List[Option], Dict[str, Discount], Dict[str, Dict[str, str]]]:
    """
    Parse a snapshot and return (menu items, options, discounts, unavailable choices by option id).
    Options come back ordered by (menu item, sort_order, input order).
    Must be robust to missing fields and unknown selection types.
    """
    items = extract_menu_items(dataset)
    discounts = extract_discounts(dataset)

    indexed: List[Tuple[str, int, int, Option]] = []
    unavailable: Dict[str, Dict[str, str]] = {}
    for pos, row in enumerate(iter_option_rows(dataset)):
        option, names = normalize_option(row)
        if option is None:
            continue
        if names:
            unavailable[option.id] = names
        indexed.append((option.menu_item_id or "", option.sort_order, pos, option))

    indexed.sort(key=lambda t: (t[0], t[1], t[2]))
    options = [o for _, _, _, o in indexed]
    return items, options, discounts, unavailable
