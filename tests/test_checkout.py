import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from menu_options.bootstrap import load_catalog
from menu_options.checkout import build_order_line, cart_key, menu_id_from_cart_key
from menu_options.decode import decode_notes
from menu_options.formatting import format_tool_result
from menu_options.index import options_for_item
from menu_options.models import SelectionSet
from menu_options.selection import default_selection, select


@pytest.fixture(scope="module")
def catalog():
    return load_catalog("data/catalog.json")


def _pick(catalog, selection, option_id, choice_id):
    option = catalog.options[option_id]
    choice = next(c for c in option.choices if c.id == choice_id)
    return select(selection, option, choice)


def _large_hot(catalog):
    s = _pick(catalog, SelectionSet(), "opt-size-0001", "ch-large-0102")
    return _pick(catalog, s, "opt-temp-0003", "ch-hot-0301")


def test_build_order_line_applies_active_discount(catalog):
    res = build_order_line(catalog, "menu-kopi-susu", _large_hot(catalog), quantity=2)
    assert res.ok is True
    assert res.data["price_snapshot"] == Decimal("21000")  # 20000 - 20% + 5000
    assert res.data["line_total"] == Decimal("42000")
    assert res.data["notes"] == "OPTIONS:Size: Large; Temperature: Hot"
    assert res.meta["discount_applied"] is True
    assert res.meta["discount_id"] == "disc-promo-20"


def test_inactive_discount_is_ignored(catalog):
    s = _pick(catalog, SelectionSet(), "opt-spread-0005", "ch-cheese-0502")
    res = build_order_line(catalog, "menu-roti-bakar", s, note="cut in half")
    assert res.ok is True
    assert res.data["price_snapshot"] == Decimal("18000")
    assert res.data["notes"] == "OPTIONS:Spread: Cheese; USER_NOTES:cut in half"
    assert res.meta["discount_applied"] is False


def test_expired_discount_window(catalog):
    promo = catalog.discounts["disc-promo-20"]
    expired = catalog.model_copy(
        update={
            "discounts": {
                **catalog.discounts,
                "disc-promo-20": promo.model_copy(update={"end_date": datetime(2025, 1, 1, tzinfo=timezone.utc)}),
            }
        }
    )
    res = build_order_line(expired, "menu-kopi-susu", _large_hot(catalog), now=datetime(2026, 10, 18, tzinfo=timezone.utc))
    assert res.data["price_snapshot"] == Decimal("25000")


def test_item_without_options_has_no_notes(catalog):
    res = build_order_line(catalog, "menu-es-teh", SelectionSet())
    assert res.ok is True
    assert res.data["notes"] is None
    assert res.data["line_total"] == Decimal("10000")


def test_missing_required_returns_candidates(catalog):
    s = _pick(catalog, SelectionSet(), "opt-size-0001", "ch-large-0102")
    res = build_order_line(catalog, "menu-kopi-susu", s)
    assert res.ok is False
    assert res.error.code == "MISSING_REQUIRED"
    assert res.candidates == [{"option_id": "opt-temp-0003", "label": "Temperature"}]
    assert "1. Temperature" in format_tool_result(res)


def test_default_selection_satisfies_required(catalog):
    s = default_selection(options_for_item(catalog, "menu-kopi-susu"))
    res = build_order_line(catalog, "menu-kopi-susu", s)
    assert res.ok is True
    assert res.data["notes"] == "OPTIONS:Size: Regular; Sugar: Normal Sugar; Temperature: Hot; Topping: Cheese Foam"
    assert res.data["price_snapshot"] == Decimal("22000")  # 16000 + Cheese Foam 6000


def test_foreign_option_is_rejected(catalog):
    res = build_order_line(catalog, "menu-roti-bakar", _large_hot(catalog))
    assert res.ok is False
    assert res.error.code == "INVALID_ARGUMENT"
    assert res.meta["unknown_option_ids"] == ["opt-size-0001", "opt-temp-0003"]


def test_unknown_item_and_bad_quantity(catalog):
    assert build_order_line(catalog, "menu-missing", SelectionSet()).error.code == "NOT_FOUND"
    assert build_order_line(catalog, "menu-es-teh", SelectionSet(), quantity=0).error.code == "INVALID_ARGUMENT"


def test_cart_key_round_trip(catalog):
    s = _large_hot(catalog)
    key = cart_key("menu-kopi-susu", s)
    assert key == 'menu-kopi-susu-{"opt-size-0001":"ch-large-0102","opt-temp-0003":"ch-hot-0301"}'
    assert menu_id_from_cart_key(key) == "menu-kopi-susu"
    assert menu_id_from_cart_key("menu-es-teh") == "menu-es-teh"


def test_cart_key_lists_multi_choices(catalog):
    s = _pick(catalog, SelectionSet(), "opt-topping-0004", "ch-foam-0401")
    s = _pick(catalog, s, "opt-topping-0004", "ch-boba-0402")
    assert cart_key("menu-kopi-susu", s) == 'menu-kopi-susu-{"opt-topping-0004":["ch-foam-0401","ch-boba-0402"]}'


def test_stored_notes_decode_back(catalog):
    s = _pick(catalog, _large_hot(catalog), "opt-topping-0004", "ch-boba-0402")
    res = build_order_line(catalog, "menu-kopi-susu", s, note="less ice")
    decoded = decode_notes(res.data["notes"])
    assert [(p.label, p.value) for p in decoded.pairs] == [
        ("Size", "Large"),
        ("Temperature", "Hot"),
        ("Topping", "Boba"),
        ("Notes", "less ice"),
    ]
    assert format_tool_result(res) == "1x Kopi Susu: Rp 25.000"


@pytest.mark.parametrize(
    "start_date,end_date",
    [
        ("2024-01-01T00:00:00", None),
        ("2024-01-01", "2099-12-31"),
        ("2024-01-01 00:00:00+00", "2099-12-31 23:59:59.12345+00"),
    ],
)
def test_discount_dates_without_offset_do_not_break_pricing(tmp_path, start_date, end_date):
    with open("data/catalog.json", encoding="utf-8") as f:
        raw = json.load(f)
    promo = next(d for d in raw["menu_discounts"] if d["id"] == "disc-promo-20")
    promo["start_date"] = start_date
    promo["end_date"] = end_date
    p = tmp_path / "catalog.json"
    p.write_text(json.dumps(raw), encoding="utf-8")

    cat = load_catalog(str(p))
    assert cat.discounts["disc-promo-20"].start_date.tzinfo is not None

    res = build_order_line(cat, "menu-kopi-susu", _large_hot(cat))
    assert res.ok is True
    assert res.meta["discount_applied"] is True
    assert res.data["price_snapshot"] == Decimal("21000")


def test_naive_now_is_compared_as_utc(catalog):
    promo = catalog.discounts["disc-promo-20"]
    windowed = catalog.model_copy(
        update={
            "discounts": {
                **catalog.discounts,
                "disc-promo-20": promo.model_copy(update={"end_date": datetime(2026, 1, 1, tzinfo=timezone.utc)}),
            }
        }
    )
    before = build_order_line(windowed, "menu-kopi-susu", _large_hot(catalog), now=datetime(2025, 6, 1))
    after = build_order_line(windowed, "menu-kopi-susu", _large_hot(catalog), now=datetime(2026, 6, 1))
    assert before.data["price_snapshot"] == Decimal("21000")
    assert after.data["price_snapshot"] == Decimal("25000")
