"""
Fragment discovery — find .CHK files in a folder, optionally recursively.

Yields (display_name, loader) pairs.  The loader reads the file on demand so
only one fragment is held in memory at a time; read failures surface when
the orchestrator calls it.
"""

from __future__ import annotations

import os
import logging
from typing import Callable, Iterable

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".chk",)


def _matches(name: str, extensions: Iterable[str]) -> bool:
    ext = os.path.splitext(name)[1].lower()
    return ext in extensions


def find_fragments(
    source_dir: str,
    recursive: bool = False,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[str]:
    """Sorted paths of fragment files (extension match is case-insensitive)."""
    exts = tuple(e.lower() if e.startswith(".") else f".{e.lower()}"
                 for e in extensions)
    found: list[str] = []
    if recursive:
        for root, dirs, files in os.walk(source_dir):
            dirs.sort()
            for name in sorted(files):
                if _matches(name, exts):
                    found.append(os.path.join(root, name))
    else:
        for name in sorted(os.listdir(source_dir)):
            path = os.path.join(source_dir, name)
            if os.path.isfile(path) and _matches(name, exts):
                found.append(path)
    logger.info("Found %d fragment(s) in %s", len(found), source_dir)
    return found


def _reader(path: str) -> Callable[[], bytes]:
    def load() -> bytes:
        with open(path, "rb") as f:
            return f.read()
    return load


def iter_sources(paths: Iterable[str]) -> list[tuple[str, Callable[[], bytes]]]:
    """(display_name, loader) pairs for the given paths, in order."""
    return [(os.path.basename(p), _reader(p)) for p in paths]
