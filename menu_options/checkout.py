from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .encode import encode_notes
from .index import discount_for_item, options_for_item
from .models import LineItem, MenuCatalog, MissingRequiredOptionError, SelectionSet, ToolError, ToolResult
from .pricing import discount_is_active, line_total, unit_price
from .selection import validate_required
from .utils import _trace, trace_enabled


def cart_key(menu_id: str, selection: SelectionSet) -> str:
    """
    Identical customizations of the same item share one cart line.
    Single-choice options map to a choice id, multi-choice options to a list.
    """
    payload: Dict[str, Union[str, List[str]]] = {}
    for oid, entry in selection.options.items():
        ids = [c.choice_id for c in entry.choices]
        if not ids:
            continue
        payload[oid] = ids[0] if len(ids) == 1 else ids
    return f"{menu_id}-{json.dumps(payload, separators=(',', ':'), ensure_ascii=False)}"


def menu_id_from_cart_key(key: str) -> str:
    if "-{" in key and "}" in key:
        return key.split("-{", 1)[0]
    return key


def build_order_line(
    catalog: MenuCatalog,
    menu_item_id: str,
    selection: SelectionSet,
    *,
    quantity: int = 1,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
    debug: bool = False,
) -> ToolResult:
    """
    Validate, price and encode one cart line into the row the order_items
    table stores. Never raises for user input.
    """
    tool = "build_order_line"
    trace = trace_enabled(debug)

    item = catalog.items.get(menu_item_id)
    if item is None:
        return ToolResult(
            ok=False,
            tool=tool,
            error=ToolError(code="NOT_FOUND", message=f"Menu item '{menu_item_id}' is not in the catalog."),
            meta={"menu_item_id": menu_item_id},
        )

    if quantity < 1:
        return ToolResult(
            ok=False,
            tool=tool,
            error=ToolError(code="INVALID_ARGUMENT", message="Quantity must be at least 1."),
            meta={"menu_item_id": menu_item_id, "quantity": quantity},
        )

    options = options_for_item(catalog, menu_item_id)
    known = {o.id for o in options}
    foreign = [oid for oid in selection.options if oid not in known]
    if foreign:
        return ToolResult(
            ok=False,
            tool=tool,
            error=ToolError(code="INVALID_ARGUMENT", message=f"Selection contains options not offered for {item.name}."),
            meta={"menu_item_id": menu_item_id, "unknown_option_ids": foreign},
        )

    try:
        validate_required(selection, options)
    except MissingRequiredOptionError as e:
        return ToolResult(
            ok=False,
            tool=tool,
            error=ToolError(code="MISSING_REQUIRED", message=f"Please choose: {', '.join(o.label for o in e.options)}."),
            candidates=[{"option_id": o.id, "label": o.label} for o in e.options],
            meta={"menu_item_id": menu_item_id},
        )

    discount = discount_for_item(catalog, menu_item_id)
    if not discount_is_active(discount, now):
        discount = None

    line = LineItem(
        menu_id=item.id,
        name=item.name,
        base_unit_price=item.base_price,
        selection=selection,
        quantity=quantity,
        free_text_note=note,
    )
    unit = unit_price(line, discount)
    total = line_total(line, discount)
    notes = encode_notes(selection, note, debug=debug)

    data: Dict[str, Any] = {
        "menu_id": item.id,
        "name_snapshot": item.name,
        "price_snapshot": unit,
        "qty": quantity,
        "notes": notes,
        "line_total": total,
        "cart_key": cart_key(item.id, selection),
    }
    _trace(
        trace,
        "checkout.line",
        {"menu_id": item.id, "discount_id": discount.id if discount else None, "unit": unit, "line_total": total},
    )
    return ToolResult(
        ok=True,
        tool=tool,
        data=data,
        meta={"discount_applied": discount is not None, "discount_id": discount.id if discount else None},
    )
