from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from .formatting import format_money
from .models import Discount, DiscountType, LineItem, OrderTotals, ToolError, ToolResult
from .selection import selected_choices
from .utils import ensure_utc


_UNIT = Decimal("1")
_HUNDRED = Decimal("100")


def to_decimal(value: Any, default: str = "0") -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)


def round_unit(value: Decimal) -> Decimal:
    """Round to whole currency units (the currency has no subunits in practice)."""
    return value.quantize(_UNIT, rounding=ROUND_HALF_UP)


def discount_is_active(discount: Optional[Discount], now: Optional[datetime] = None) -> bool:
    if discount is None or not discount.is_active:
        return False
    now = ensure_utc(now) or datetime.now(timezone.utc)
    start = ensure_utc(discount.start_date)
    end = ensure_utc(discount.end_date)
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    return True


def apply_discount(price: Any, discount: Optional[Discount]) -> Decimal:
    """
    Apply a discount to a base price.

    Out-of-range values are not rejected: a percentage uses the raw formula
    (a value above 100 yields a negative price) and a fixed amount is floored
    at zero.
    """
    base = to_decimal(price)
    if discount is None:
        return base

    value = to_decimal(discount.value)
    if discount.type == DiscountType.PERCENTAGE:
        return round_unit(base * (1 - value / _HUNDRED))
    if discount.type == DiscountType.FIXED_AMOUNT:
        return max(Decimal("0"), base - value)
    return base


def options_surcharge(line: LineItem) -> Decimal:
    total = Decimal("0")
    for choice in selected_choices(line.selection):
        total += to_decimal(choice.additional_price)
    return total


def unit_price(line: LineItem, discount: Optional[Discount] = None) -> Decimal:
    # Surcharges are never discounted.
    return apply_discount(line.base_unit_price, discount) + options_surcharge(line)


def line_total(line: LineItem, discount: Optional[Discount] = None) -> Decimal:
    return round_unit(unit_price(line, discount) * line.quantity)


def order_totals(
    line_totals: Iterable[Any],
    *,
    delivery_fee: Any = 0,
    free_delivery_threshold: Any = 0,
    minimum_order_amount: Any = 0,
) -> OrderTotals:
    subtotal = sum((to_decimal(v) for v in line_totals), Decimal("0"))
    fee = to_decimal(delivery_fee)
    threshold = to_decimal(free_delivery_threshold)
    minimum = to_decimal(minimum_order_amount)

    is_free_delivery = subtotal >= threshold
    final_fee = Decimal("0") if is_free_delivery else fee

    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=final_fee,
        free_delivery_threshold=threshold,
        is_free_delivery=is_free_delivery,
        total=subtotal + final_fee,
        minimum_order_met=subtotal >= minimum,
        minimum_order_amount=minimum,
    )


def check_minimum_order(totals: OrderTotals) -> ToolResult:
    tool = "check_minimum_order"
    if totals.minimum_order_amount > 0 and not totals.minimum_order_met:
        return ToolResult(
            ok=False,
            tool=tool,
            error=ToolError(
                code="MINIMUM_ORDER_NOT_MET",
                message=(
                    f"Minimum order amount is {format_money(totals.minimum_order_amount)}. "
                    "Please add more items to your cart."
                ),
            ),
            meta={"subtotal": totals.subtotal, "minimum_order_amount": totals.minimum_order_amount},
        )
    return ToolResult(ok=True, tool=tool, data=totals.model_dump())
