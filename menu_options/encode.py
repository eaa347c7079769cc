from __future__ import annotations

from typing import List, Optional

from .models import SelectionSet
from .utils import _trace, trace_enabled


OPTIONS_PREFIX = "OPTIONS:"
USER_NOTES_PREFIX = "USER_NOTES:"

PAIR_SEP = "; "
LABEL_SEP = ": "
VALUE_SEP = ", "

_DELIMITERS = (PAIR_SEP, LABEL_SEP, VALUE_SEP)


def _has_delimiter(text: str) -> bool:
    return any(d in text for d in _DELIMITERS)


def encode_options(selection: SelectionSet, *, debug: bool = False) -> str:
    """
    "Size: Large; Topping: Cheese, Egg" for every option with at least one
    choice, in selection order. Choice names are embedded (not ids), so a later
    rename does not rewrite historical notes.
    """
    trace = trace_enabled(debug)
    parts: List[str] = []
    for entry in selection.options.values():
        if not entry.choices:
            continue
        names = [c.choice_name for c in entry.choices]
        # Delimiters are not escaped; already-persisted records depend on the plain grammar.
        offending = [t for t in [entry.option_label, *names] if _has_delimiter(t)]
        if offending:
            _trace(trace, "encode.delimiter_in_text", {"option_id": entry.option_id, "texts": offending})
        parts.append(f"{entry.option_label}{LABEL_SEP}{VALUE_SEP.join(names)}")
    return PAIR_SEP.join(parts)


def encode_notes(
    selection: SelectionSet,
    free_text_note: Optional[str] = None,
    *,
    debug: bool = False,
) -> Optional[str]:
    """
    Serialize a finalized selection plus an optional customer note.

    Returns None (store as absent) when there is nothing to write.
    """
    options_text = encode_options(selection, debug=debug)
    note = (free_text_note or "").strip()

    out = f"{OPTIONS_PREFIX}{options_text}" if options_text else ""
    if note:
        if out:
            out = f"{out}{PAIR_SEP}{USER_NOTES_PREFIX}{note}"
        else:
            out = f"{USER_NOTES_PREFIX}{note}"

    return out or None


def structure_legacy_notes(raw: Optional[str]) -> Optional[str]:
    """
    The earlier checkout wrapped cart notes by sniffing their shape:
    - a JSON payload ({optionId: choiceId}) was stored verbatim
    - "label: value" text got the OPTIONS: prefix
    - anything else became USER_NOTES:
    Kept so fixtures and migrations can produce those record shapes.
    """
    if not raw:
        return None
    if "{" in raw and "}" in raw:
        return raw
    if ":" in raw:
        return f"{OPTIONS_PREFIX}{raw}"
    return f"{USER_NOTES_PREFIX}{raw}"
