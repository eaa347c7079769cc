from decimal import Decimal

from menu_options.decode import decode_notes
from menu_options.formatting import format_decoded_notes, format_money, format_tool_result
from menu_options.models import ToolError, ToolResult


def test_format_money():
    assert format_money(Decimal("75000")) == "Rp 75.000"
    assert format_money(1234567) == "Rp 1.234.567"
    assert format_money(0) == "Rp 0"
    assert format_money(-5000) == "-Rp 5.000"
    assert format_money("499.5") == "Rp 500"
    assert format_money("n/a") == "n/a"


def test_currency_prefix_from_env(monkeypatch):
    monkeypatch.setenv("CURRENCY_PREFIX", "IDR")
    assert format_money(10000) == "IDR 10.000"


def test_format_decoded_notes_pairs():
    lines = format_decoded_notes(decode_notes("OPTIONS:Size: Large; Topping: Boba, Jelly; USER_NOTES:thanks"))
    assert lines == ["Size: Large", "Topping: Boba, Jelly", "Notes: thanks"]


def test_format_decoded_notes_segment_without_label():
    lines = format_decoded_notes(decode_notes("Size: Large; extra spicy"))
    assert lines == ["Size: Large", "extra spicy"]


def test_format_decoded_notes_text_shapes():
    assert format_decoded_notes(decode_notes("USER_NOTES:no onions")) == ["no onions"]
    assert format_decoded_notes(decode_notes("hello")) == ["Notes: hello"]
    assert format_decoded_notes(decode_notes('{"a": null}')) == ["Option details not available"]
    assert format_decoded_notes(decode_notes(None)) == []


def test_format_tool_result_error_without_candidates():
    res = ToolResult(ok=False, tool="check_minimum_order", error=ToolError(code="MINIMUM_ORDER_NOT_MET", message="Too small."))
    assert format_tool_result(res) == "Too small."


def test_format_tool_result_minimum_order_ok():
    res = ToolResult(ok=True, tool="check_minimum_order", data={"total": Decimal("60000")})
    assert format_tool_result(res) == "Total: Rp 60.000"
