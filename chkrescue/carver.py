"""
Fragment Carver — signature scan over one in-memory fragment.

HOW CARVING WORKS
─────────────────
1.  For every signature, walk EVERY occurrence of its header using
    Python's fast bytes.find().
2.  If the signature has a "contains" marker, the marker must occur
    somewhere in the bytes that follow the header.  The remainder after
    offset i contains the marker iff the marker's LAST occurrence in the
    buffer starts at or after i + len(header), so a single rfind() per
    signature answers the test for every header hit.
3.  Matches are ordered by offset, then by catalogue order — the same
    order a byte-by-byte offsets × signatures scan would produce.
4.  Each match becomes one artifact spanning match offset → end of buffer.

All matches are kept.  Overlapping or nested artifacts (e.g. DOCX and ZIP
from the same PK header) are expected and intentionally not merged.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .signatures import Signature, SignatureRegistry

logger = logging.getLogger(__name__)


class CarveCancelled(Exception):
    """Raised when a scan is cancelled part-way through a buffer."""


@dataclass(frozen=True)
class Match:
    offset: int
    signature: Signature


@dataclass
class RecoveredArtifact:
    """One recovered file: extension + payload (offset → end of fragment)."""
    extension: str
    payload: bytes
    offset: int = 0

    @property
    def size(self) -> int:
        return len(self.payload)


# Matches between cancellation polls inside the merged scan
CANCEL_CHECK_INTERVAL = 4096


def _iter_positions(data: bytes, sig: Signature) -> Iterator[int]:
    """Offsets where `sig` matches, ascending, without materialising a list.

    With a contains marker, only headers that end at or before the marker's
    last occurrence can match, so the search window stops there.
    """
    end = len(data)
    if sig.contains:
        last = data.rfind(sig.contains)
        if last == -1:
            return
        end = last
    start = 0
    while True:
        pos = data.find(sig.header, start, end)
        if pos == -1:
            return
        yield pos
        start = pos + 1


def _iter_hits(data: bytes, index: int, sig: Signature) -> Iterator[tuple[int, int, Signature]]:
    for pos in _iter_positions(data, sig):
        yield pos, index, sig


def iter_matches(
    data: bytes,
    registry: SignatureRegistry,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> Iterator[Match]:
    """Lazily yield every (offset, signature) match of `data`.

    A match requires data[offset:] to start with the header and, when the
    signature has a contains marker, the marker to appear anywhere in
    data[offset + len(header):].  Order is offset, then catalogue order.
    """
    if not data:
        return

    streams = []
    for index, sig in enumerate(registry.entries()):
        if should_cancel is not None and should_cancel():
            raise CarveCancelled()
        streams.append(_iter_hits(data, index, sig))

    # (offset, index) is unique, so the Signature is never compared
    for count, (pos, _, sig) in enumerate(heapq.merge(*streams), 1):
        if (should_cancel is not None and count % CANCEL_CHECK_INTERVAL == 0
                and should_cancel()):
            raise CarveCancelled()
        yield Match(offset=pos, signature=sig)


def find_matches(
    data: bytes,
    registry: SignatureRegistry,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> list[Match]:
    """Every (offset, signature) pair that matches `data`, as a list."""
    return list(iter_matches(data, registry, should_cancel))


def artifact_at(data: bytes, match: Match) -> RecoveredArtifact:
    """The artifact a match describes: its offset through the end of `data`."""
    return RecoveredArtifact(
        extension=match.signature.extension,
        payload=data[match.offset:],
        offset=match.offset,
    )


def carve(
    data: bytes,
    registry: SignatureRegistry,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> Iterator[RecoveredArtifact]:
    """Yield one RecoveredArtifact per signature match, in scan order.

    Matches and payloads are produced lazily so only one tail copy is alive
    at a time.
    """
    if not data:
        return
    count = 0
    for m in iter_matches(data, registry, should_cancel):
        count += 1
        yield artifact_at(data, m)
    logger.debug("%d signature match(es) in %d bytes", count, len(data))
