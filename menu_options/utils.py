from __future__ import annotations

import json
import os
import re
import sys
import unicodedata
from datetime import datetime, timezone
from typing import Optional


_NON_ALNUM_SPACE_RE = re.compile(r"[^a-z0-9 ]+")
_WHITESPACE_RE = re.compile(r"\s+")

SHORT_ID_LEN = 8


def normalize_text(s: str) -> str:
    """
    Normalize text for matching:
    - unicode normalize (NFKD)
    - lowercase
    - remove punctuation
    - collapse whitespace
    """
    if s is None:
        return ""
    s = str(s)
    s = unicodedata.normalize("NFKD", s)
    # strip diacritics
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.lower()
    s = s.replace("-", " ").replace("_", " ")
    s = _NON_ALNUM_SPACE_RE.sub(" ", s)
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return s


def short_id(value: object) -> str:
    """First 8 characters of an id, for placeholder labels."""
    return str(value)[:SHORT_ID_LEN]


def trace_enabled(debug: bool = False) -> bool:
    return bool(debug or os.getenv("DEBUG_TRACE") == "1")


def _trace(enabled: bool, event: str, payload: dict) -> None:
    """
    Lightweight structured tracing to stderr.
    No-op when disabled.
    """
    if not enabled:
        return
    print(
        f"[trace] {event} {json.dumps(payload, ensure_ascii=False, default=str)}",
        file=sys.stderr,
    )


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
