from __future__ import annotations

import os
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List

from .models import DecodedNotes, ToolResult


def _currency_prefix() -> str:
    return os.getenv("CURRENCY_PREFIX", "Rp")


def format_money(value: Any) -> str:
    """Whole units with dot thousands separators: Rp 75.000."""
    try:
        amount = Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return str(value)
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(int(amount)):,}".replace(",", ".")
    return f"{sign}{_currency_prefix()} {grouped}"


def format_decoded_notes(decoded: DecodedNotes) -> List[str]:
    """Receipt / order-detail lines for one order line's notes."""
    if decoded.pairs:
        lines = []
        for pair in decoded.pairs:
            lines.append(f"{pair.label}: {pair.value}" if pair.label else pair.value)
        return lines

    if decoded.text:
        if decoded.heading:
            return [f"{decoded.heading}: {decoded.text}"]
        return [decoded.text]

    return []


def _format_candidates(candidates: List[Dict[str, Any]]) -> str:
    lines = []
    for i, c in enumerate(candidates[:5], start=1):
        label = c.get("label") or c.get("display") or str(c)
        lines.append(f"{i}. {label}")
    return "\n".join(lines)


def format_tool_result(tool_result: ToolResult) -> str:
    """
    Convert ToolResult into a user-facing message.
    Handles ok/error/candidates consistently.
    """
    if tool_result.ok and tool_result.data is not None:
        tool = tool_result.tool
        d = tool_result.data

        if tool == "build_order_line":
            name = d.get("name_snapshot") or "Item"
            qty = d.get("qty", 1)
            total = format_money(d.get("line_total"))
            return f"{qty}x {name}: {total}"

        if tool == "check_minimum_order":
            return f"Total: {format_money(d.get('total'))}"

        # Default success fallback
        return str(d)

    # Error / missing selections
    if tool_result.error is None:
        return "Something went wrong."

    code = tool_result.error.code
    msg = tool_result.error.message

    if code == "MISSING_REQUIRED" and tool_result.candidates:
        return msg + "\n" + _format_candidates(tool_result.candidates)

    return msg
