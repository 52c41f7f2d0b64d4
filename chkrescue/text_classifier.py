"""
Text / JSON fallback for fragments no signature recognised.

A fragment is treated as text when at least ~80% of its bytes are printable
ASCII or tab / LF / CR.  Text fragments that parse as a single JSON document
are saved as .json, everything else as .txt.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from .carver import RecoveredArtifact

logger = logging.getLogger(__name__)

# ── Thresholds ────────────────────────────────────────────────
MAX_TEXT_SIZE = 1024 * 1024     # larger fragments are never classified as text
TEXT_RATIO_LIMIT = 1.25         # total / text bytes must stay below this

_TEXT_BYTES = bytes(range(32, 127)) + b"\t\n\r"


def count_text_bytes(data: bytes) -> int:
    """Number of bytes in [32, 126] or equal to TAB, LF, CR."""
    # translate() drops the text bytes; what's left is the non-text count
    return len(data) - len(data.translate(None, _TEXT_BYTES))


def is_likely_text(data: bytes) -> bool:
    total = len(data)
    if total == 0 or total > MAX_TEXT_SIZE:
        return False
    text_count = count_text_bytes(data)
    if text_count == 0:
        return False
    return total / text_count < TEXT_RATIO_LIMIT


def _reject_constant(name):
    raise ValueError(f"non-standard JSON constant: {name}")


def is_valid_json(data: bytes) -> bool:
    """Whole-buffer syntax check with the leniency of a byte-level validator.

    Invalid UTF-8 inside string literals is tolerated and numbers of any
    length are accepted; a BOM, NaN/Infinity or trailing data are not.
    """
    if data.startswith(b"\xef\xbb\xbf"):
        return False
    # Stray bytes become U+FFFD, which only parses inside a string literal
    text = data.decode("utf-8", errors="replace")
    try:
        json.loads(text, parse_constant=_reject_constant,
                   parse_int=str, parse_float=str)
    except (ValueError, RecursionError):
        return False
    return True


def classify(data: bytes) -> Optional[RecoveredArtifact]:
    """Return a full-buffer json/txt artifact, or None if not text."""
    if not is_likely_text(data):
        return None
    extension = "json" if is_valid_json(data) else "txt"
    logger.debug("Classified %d bytes as %s", len(data), extension)
    return RecoveredArtifact(extension=extension, payload=data, offset=0)
