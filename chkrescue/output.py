"""
Output Resolver — destination naming and collision policy for recovered files.

Two policies:
  • skip_existing=False (default) — never overwrite; try name-1.ext,
    name-2.ext, ... until a free name is found.
  • skip_existing=True — if name.ext already exists, write nothing.
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from typing import Optional

from .carver import RecoveredArtifact

logger = logging.getLogger(__name__)


class OutputError(OSError):
    """No free destination name within the configured attempt limit."""


@dataclass
class WriteResult:
    path: str               # Written path, or the colliding path when skipped
    skipped: bool = False


def base_name(display_name: str) -> str:
    """Input file name without its directory and final extension."""
    name = os.path.basename(display_name)
    root, _ = os.path.splitext(name)
    return root or name


def _first_free(first: str, candidate_for, max_probe: Optional[int], label: str) -> str:
    path = first
    counter = 1
    while os.path.exists(path):
        if max_probe is not None and counter > max_probe:
            raise OutputError(
                f"No free name for {label} after {max_probe} attempts")
        path = candidate_for(counter)
        counter += 1
    return path


def unique_path(
    dest_dir: str,
    base: str,
    extension: str,
    max_probe: Optional[int] = None,
) -> str:
    """First free path among base.ext, base-1.ext, base-2.ext, ..."""
    return _first_free(
        os.path.join(dest_dir, f"{base}.{extension}"),
        lambda n: os.path.join(dest_dir, f"{base}-{n}.{extension}"),
        max_probe,
        f"{base}.{extension}",
    )


def free_path(path: str, max_probe: Optional[int] = None) -> str:
    """`path` itself if unused, else root-1.ext, root-2.ext, ... beside it."""
    root, ext = os.path.splitext(path)
    return _first_free(path, lambda n: f"{root}-{n}{ext}", max_probe, path)


def resolve_output_path(
    dest_dir: str,
    base: str,
    extension: str,
    skip_existing: bool = False,
    max_probe: Optional[int] = None,
) -> Optional[str]:
    """Where to write base.extension, or None when it must be skipped."""
    if skip_existing:
        candidate = os.path.join(dest_dir, f"{base}.{extension}")
        if os.path.exists(candidate):
            return None
        return candidate
    return unique_path(dest_dir, base, extension, max_probe)


def write_artifact(
    dest_dir: str,
    base: str,
    artifact: RecoveredArtifact,
    skip_existing: bool = False,
    max_probe: Optional[int] = None,
) -> WriteResult:
    """Write one artifact.  OSError (incl. OutputError) propagates."""
    path = resolve_output_path(
        dest_dir, base, artifact.extension, skip_existing, max_probe)
    if path is None:
        existing = os.path.join(dest_dir, f"{base}.{artifact.extension}")
        logger.debug("Skipping %s (already exists)", existing)
        return WriteResult(path=existing, skipped=True)
    with open(path, "wb") as f:
        f.write(artifact.payload)
    logger.debug("Wrote %d bytes to %s", artifact.size, path)
    return WriteResult(path=path)
