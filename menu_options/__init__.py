"""Menu option selection, pricing and order-notes codec."""

from .decode import decode_notes
from .encode import encode_notes
from .models import MissingRequiredOptionError
from .pricing import line_total, unit_price
from .selection import deselect, is_choice_selectable, select, validate_required

__all__ = [
    "select",
    "deselect",
    "is_choice_selectable",
    "validate_required",
    "unit_price",
    "line_total",
    "encode_notes",
    "decode_notes",
    "MissingRequiredOptionError",
]
