"""French SIV plates: two letters, three digits, two letters (AB-123-CD)."""
from __future__ import annotations

import re

FRENCH_PLATE_RE = re.compile(r"^[A-Z]{2}-[0-9]{3}-[A-Z]{2}$")
_COMPACT_PLATE_RE = re.compile(r"^[A-Z]{2}[0-9]{3}[A-Z]{2}$")
_SEPARATORS_RE = re.compile(r"[\s-]")


def normalize_french_registration(raw: str) -> str:
    clean = _SEPARATORS_RE.sub("", raw).upper()
    if _COMPACT_PLATE_RE.match(clean):
        return f"{clean[:2]}-{clean[2:5]}-{clean[5:]}"
    return clean


def is_valid_french_plate(normalized: str) -> bool:
    return bool(FRENCH_PLATE_RE.match(normalized))
