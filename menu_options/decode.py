"""
Decoding of persisted order-line notes.

Several generations of records live in the same column:
- "OPTIONS:{json}"   option-id -> choice-id payload behind the prefix
- "OPTIONS:a: b; …"  human-readable pairs (current encoder output)
- "USER_NOTES:text"  free text only
- "{json}"           bare id payload from the first cart implementation
- "a: b; …"          unprefixed legacy text
Anything else is shown verbatim.

Strategies are tried in a fixed order and the first one producing at least
one pair wins. No strategy raises.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .encode import OPTIONS_PREFIX, USER_NOTES_PREFIX
from .models import CatalogItem, CatalogOption, DecodedNotes, DisplayPair
from .utils import _trace, short_id, trace_enabled


NOTES_HEADING = "Notes"
OPTION_DETAILS_UNAVAILABLE = "Option details not available"

# Rendering of an id the catalog could not resolve, see _option_placeholder / _choice_placeholder.
PLACEHOLDER_RE = re.compile(r"\b(?:Option|Unknown) \([^()]{1,8}\.\.\.\)")

CatalogLookup = Mapping[str, Any]  # option_id -> CatalogOption | {"label": str, "items": [{"id", "name"}]}


def _option_placeholder(option_id: Any) -> str:
    return f"Option ({short_id(option_id)}...)"


def _choice_placeholder(choice_id: Any) -> str:
    return f"Unknown ({short_id(choice_id)}...)"


def _lookup_entry(lookup: Optional[CatalogLookup], option_id: str) -> Optional[CatalogOption]:
    if not lookup:
        return None
    try:
        entry = lookup.get(option_id)
    except Exception:
        return None
    if isinstance(entry, CatalogOption):
        return entry
    if not isinstance(entry, dict):
        return None

    label = entry.get("label")
    if not isinstance(label, str) or not label.strip():
        return None
    items: List[CatalogItem] = []
    raw_items = entry.get("items")
    if isinstance(raw_items, list):
        for it in raw_items:
            if isinstance(it, CatalogItem):
                items.append(it)
            elif isinstance(it, dict) and it.get("id") is not None and isinstance(it.get("name"), str):
                items.append(CatalogItem(id=str(it["id"]), name=it["name"]))
    return CatalogOption(label=label, items=items)


def _choice_name(entry: Optional[CatalogOption], choice_id: Any) -> Optional[str]:
    if entry is None:
        return None
    cid = str(choice_id)
    for it in entry.items:
        if it.id == cid:
            return it.name
    return None


def _choice_ids(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    return [value]


def _extract_json_object(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _resolve_pairs(payload: Dict[str, Any], lookup: Optional[CatalogLookup]) -> List[DisplayPair]:
    """Payload-driven resolution; unresolved ids become truncated placeholders."""
    pairs: List[DisplayPair] = []
    for option_id, value in payload.items():
        entry = _lookup_entry(lookup, str(option_id))
        label = entry.label if entry else _option_placeholder(option_id)
        names = [_choice_name(entry, cid) or _choice_placeholder(cid) for cid in _choice_ids(value)]
        if not names:
            continue
        pairs.append(DisplayPair(label=label, value=", ".join(names)))
    return pairs


def _resolve_pairs_from_lookup(payload: Dict[str, Any], lookup: Optional[CatalogLookup]) -> List[DisplayPair]:
    """Catalog-driven pass over the same payload; only options the catalog knows."""
    if not lookup:
        return []
    pairs: List[DisplayPair] = []
    try:
        option_ids = list(lookup.keys())
    except Exception:
        return []
    for option_id in option_ids:
        if option_id not in payload:
            continue
        entry = _lookup_entry(lookup, option_id)
        if entry is None:
            continue
        names = [_choice_name(entry, cid) or _choice_placeholder(cid) for cid in _choice_ids(payload[option_id])]
        if names:
            pairs.append(DisplayPair(label=entry.label, value=", ".join(names)))
    return pairs


def _split_user_notes(body: str) -> Tuple[str, Optional[str]]:
    idx = body.find(USER_NOTES_PREFIX)
    if idx == -1:
        return body, None
    note = body[idx + len(USER_NOTES_PREFIX) :].strip()
    head = body[:idx].rstrip().rstrip(";").rstrip()
    return head, (note or None)


def _split_text_pairs(body: str) -> List[DisplayPair]:
    pairs: List[DisplayPair] = []
    for segment in body.split(";"):
        seg = segment.strip()
        if not seg:
            continue
        if ":" in seg:
            label, value = seg.split(":", 1)
            pairs.append(DisplayPair(label=label.strip() or None, value=value.strip()))
        else:
            pairs.append(DisplayPair(label=None, value=seg))
    return pairs


def _with_note(pairs: List[DisplayPair], note: Optional[str]) -> List[DisplayPair]:
    if note:
        return pairs + [DisplayPair(label=NOTES_HEADING, value=note)]
    return pairs


def _decode_options_prefix(text: str, lookup: Optional[CatalogLookup]) -> Optional[DecodedNotes]:
    if not text.startswith(OPTIONS_PREFIX):
        return None
    body, note = _split_user_notes(text[len(OPTIONS_PREFIX) :])

    json_text = _extract_json_object(body)
    if json_text is not None:
        payload = _parse_json_object(json_text)
        pairs = _resolve_pairs(payload, lookup) if payload is not None else []
        if pairs:
            return DecodedNotes(strategy="options_json", pairs=_with_note(pairs, note))

    # No usable id payload (braces can appear in a choice name): read the body as text.
    pairs = _split_text_pairs(body)
    if not pairs:
        return None
    return DecodedNotes(strategy="options_text", pairs=_with_note(pairs, note))


def _decode_user_notes(text: str) -> Optional[DecodedNotes]:
    if not text.startswith(USER_NOTES_PREFIX):
        return None
    remainder = text[len(USER_NOTES_PREFIX) :]
    if not remainder.strip():
        return None
    return DecodedNotes(strategy="user_notes", text=remainder)


def _decode_bare_json(text: str, lookup: Optional[CatalogLookup]) -> Optional[DecodedNotes]:
    json_text = _extract_json_object(text)
    if json_text is None:
        return None
    payload = _parse_json_object(json_text)
    if payload is None:
        return None

    pairs = _resolve_pairs(payload, lookup)
    if not pairs:
        pairs = _resolve_pairs_from_lookup(payload, lookup)
    if not pairs:
        return DecodedNotes(strategy="bare_json", text=OPTION_DETAILS_UNAVAILABLE)
    return DecodedNotes(strategy="bare_json", pairs=pairs)


def _decode_legacy_colon(text: str) -> Optional[DecodedNotes]:
    if ":" not in text or "{" in text:
        return None
    body, note = _split_user_notes(text)
    pairs = _split_text_pairs(body)
    if not pairs:
        return None
    return DecodedNotes(strategy="legacy_colon", pairs=_with_note(pairs, note))


def _plain(raw: str) -> DecodedNotes:
    return DecodedNotes(strategy="plain", text=raw, heading=NOTES_HEADING)


def _decode(raw: str, lookup: Optional[CatalogLookup]) -> DecodedNotes:
    text = raw.strip()

    decoded = _decode_options_prefix(text, lookup)
    if decoded is not None:
        return decoded

    decoded = _decode_user_notes(text)
    if decoded is not None:
        return decoded

    prefixed = text.startswith(OPTIONS_PREFIX) or text.startswith(USER_NOTES_PREFIX)
    if not prefixed:
        decoded = _decode_bare_json(text, lookup)
        if decoded is not None:
            return decoded

        decoded = _decode_legacy_colon(text)
        if decoded is not None:
            return decoded

    return _plain(raw)


def decode_notes(
    raw: Optional[str],
    lookup: Optional[CatalogLookup] = None,
    *,
    debug: bool = False,
) -> DecodedNotes:
    """
    Reconstruct display pairs from a stored notes string.

    `lookup` is only consulted for id payloads. Never raises: anything that
    cannot be read is returned verbatim under the "Notes" heading.
    """
    if raw is None or not str(raw).strip():
        return DecodedNotes(strategy="empty")

    raw = str(raw)
    try:
        decoded = _decode(raw, lookup)
    except Exception as e:
        _trace(trace_enabled(debug), "decode.error", {"error_type": e.__class__.__name__, "error": str(e)})
        decoded = _plain(raw)

    _trace(
        trace_enabled(debug),
        "decode.strategy",
        {"strategy": decoded.strategy, "pairs": len(decoded.pairs), "raw_len": len(raw)},
    )
    return decoded
