"""
Recovery Manager — Orchestrates carving, classification, saving and reporting.

Per fragment, strictly in input order:
  1. load bytes           (read failure → ERROR READING FILE)
  2. carve all signature matches
  3. nothing carved → text / JSON fallback
  4. write every artifact through the output resolver
  5. emit one Outcome per artifact (or one NOT_RECOVERED / READ_ERROR)
"""

from __future__ import annotations

import os
import csv
import json
import time
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .carver import CarveCancelled, RecoveredArtifact, artifact_at, find_matches
from .output import base_name, unique_path, write_artifact
from .signatures import SignatureRegistry
from .text_classifier import classify
from .validation import check_decodable

logger = logging.getLogger(__name__)

# Outcome kinds
RECOVERED = "recovered"
SKIPPED = "skipped"
NOT_RECOVERED = "not_recovered"
READ_ERROR = "read_error"
WRITE_ERROR = "write_error"

OUTCOME_KINDS = (RECOVERED, SKIPPED, NOT_RECOVERED, READ_ERROR, WRITE_ERROR)


@dataclass
class Outcome:
    """Result for one artifact (or one whole fragment when nothing was saved)."""
    display_name: str
    kind: str
    extension: str = ""
    path: str = ""
    offset: int = 0
    size: int = 0
    md5: str = ""
    error: str = ""
    decodable: Optional[bool] = None
    decode_reason: str = ""

    def log_line(self) -> str:
        if self.kind == RECOVERED:
            return f"{self.display_name}\t{self.extension}"
        if self.kind == SKIPPED:
            return f"{self.display_name}\tSKIPPED (exists) -> {self.extension}"
        if self.kind == READ_ERROR:
            return f"{self.display_name}\tERROR READING FILE"
        if self.kind == WRITE_ERROR:
            return f"{self.display_name}\tERROR WRITING FILE -> {self.extension}"
        return f"{self.display_name}\t(not recovered)"

    def to_dict(self) -> dict:
        return {
            "name": self.display_name,
            "result": self.kind,
            "extension": self.extension,
            "path": self.path,
            "offset": self.offset,
            "offset_hex": f"0x{self.offset:X}",
            "size": self.size,
            "size_human": fmt_size(self.size),
            "md5": self.md5,
            "decodable": self.decodable,
            "decode_reason": self.decode_reason,
            "error": self.error,
        }


@dataclass
class RecoveryOptions:
    dest_dir: str
    skip_existing: bool = False
    max_probe: Optional[int] = None     # None = unbounded name probing
    validate_images: bool = True


@dataclass
class RecoverySession:
    """Represents one recovery run."""
    session_id: str
    dest_dir: str
    start_time: float = 0.0
    end_time: float = 0.0
    total_inputs: int = 0
    processed_inputs: int = 0
    outcomes: list[Outcome] = field(default_factory=list)
    was_cancelled: bool = False

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_human(self) -> str:
        d = self.duration
        if d < 60:
            return f"{d:.1f}s"
        if d < 3600:
            return f"{d / 60:.1f}m"
        return f"{d / 3600:.1f}h"

    def by_kind(self, kind: str) -> list[Outcome]:
        return [o for o in self.outcomes if o.kind == kind]

    @property
    def recovered(self) -> list[Outcome]:
        return self.by_kind(RECOVERED)

    @property
    def total_recovered_size(self) -> int:
        return sum(o.size for o in self.recovered)

    @property
    def files_by_extension(self) -> dict:
        r: dict[str, list] = {}
        for o in self.recovered:
            r.setdefault(o.extension, []).append(o)
        return r

    @property
    def summary(self) -> dict:
        return {
            "inputs": self.total_inputs,
            "processed": self.processed_inputs,
            "recovered_files": len(self.recovered),
            "total_size": fmt_size(self.total_recovered_size),
            "duration": self.duration_human,
            "outcomes": {k: len(self.by_kind(k)) for k in OUTCOME_KINDS},
            "extensions": {
                ext: len(items)
                for ext, items in sorted(self.files_by_extension.items())
            },
        }


class RecoveryManager:
    """Runs fragments through carver → classifier → output resolver."""

    def __init__(self, registry: SignatureRegistry, options: RecoveryOptions):
        self.registry = registry
        self.options = options
        self.current_session: Optional[RecoverySession] = None
        self._cancelled = False
        self._on_progress: Optional[Callable] = None
        self._on_outcome: Optional[Callable] = None

    def set_callbacks(self, on_progress=None, on_outcome=None):
        """on_progress(index, total, name); on_outcome(outcome, index, total)."""
        self._on_progress = on_progress
        self._on_outcome = on_outcome

    def cancel(self):
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    # ─── Single fragment ─────────────────────────────────────

    def process(self, display_name: str, data: bytes) -> list[Outcome]:
        """Recover everything possible from one fragment's bytes.

        Raises CarveCancelled if cancel() is called during the scan.
        """
        if not data:
            return [Outcome(display_name, NOT_RECOVERED)]

        base = base_name(display_name)
        outcomes: list[Outcome] = []
        # Scan to completion first so a cancelled fragment writes nothing
        matches = find_matches(data, self.registry, self._should_cancel)
        for m in matches:
            outcomes.append(self._save(display_name, base, artifact_at(data, m)))

        if not outcomes:
            artifact = classify(data)
            if artifact is not None:
                outcomes.append(self._save(display_name, base, artifact))

        if not outcomes:
            outcomes.append(Outcome(display_name, NOT_RECOVERED, size=len(data)))
        return outcomes

    def _should_cancel(self) -> bool:
        return self._cancelled

    def _save(self, display_name: str, base: str, artifact: RecoveredArtifact) -> Outcome:
        opts = self.options
        outcome = Outcome(
            display_name=display_name,
            kind=RECOVERED,
            extension=artifact.extension,
            offset=artifact.offset,
            size=artifact.size,
        )
        try:
            result = write_artifact(
                opts.dest_dir, base, artifact,
                skip_existing=opts.skip_existing,
                max_probe=opts.max_probe,
            )
        except OSError as e:
            logger.warning("Error saving %s from %s: %s",
                           artifact.extension, display_name, e)
            outcome.kind = WRITE_ERROR
            outcome.error = str(e)
            return outcome

        outcome.path = result.path
        if result.skipped:
            outcome.kind = SKIPPED
            return outcome

        outcome.md5 = hashlib.md5(artifact.payload).hexdigest()
        if opts.validate_images:
            outcome.decodable, outcome.decode_reason = check_decodable(
                artifact.extension, artifact.payload)
        return outcome

    # ─── Whole run ───────────────────────────────────────────

    def run(
        self,
        sources: Iterable[tuple[str, Callable[[], bytes]]],
    ) -> RecoverySession:
        """Process (display_name, loader) pairs sequentially, in order."""
        sources = list(sources)
        self._cancelled = False
        session = RecoverySession(
            session_id=f"recovery_{int(time.time())}",
            dest_dir=self.options.dest_dir,
            start_time=time.time(),
            total_inputs=len(sources),
        )
        self.current_session = session
        total = len(sources)

        for index, (name, loader) in enumerate(sources, 1):
            if self._cancelled:
                session.was_cancelled = True
                break
            if self._on_progress:
                self._on_progress(index, total, name)

            try:
                data = loader()
            except OSError as e:
                logger.warning("Error reading file %s: %s", name, e)
                outcomes = [Outcome(name, READ_ERROR, error=str(e))]
            else:
                try:
                    outcomes = self.process(name, data)
                except CarveCancelled:
                    logger.info("Recovery cancelled while scanning %s", name)
                    session.was_cancelled = True
                    break

            session.processed_inputs += 1
            for outcome in outcomes:
                session.outcomes.append(outcome)
                if self._on_outcome:
                    self._on_outcome(outcome, index, total)

        session.end_time = time.time()
        logger.info("Recovery finished: %d input(s), %d file(s) recovered in %s",
                    session.processed_inputs, len(session.recovered),
                    session.duration_human)
        return session

    # ─── Reports ─────────────────────────────────────────────

    def get_recovery_log(self) -> list[dict]:
        if not self.current_session:
            return []
        return [o.to_dict() for o in self.current_session.outcomes]

    def export_report_json(self, filepath):
        if not self.current_session:
            return
        s = self.current_session
        report = {
            "session_id": s.session_id,
            "destination": s.dest_dir,
            "date": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(s.start_time)),
            "duration": s.duration_human,
            "cancelled": s.was_cancelled,
            "skip_existing": self.options.skip_existing,
            "signatures": len(self.registry),
            "summary": s.summary,
            "recovery_log": self.get_recovery_log(),
        }
        with open(filepath, "w") as f:
            json.dump(report, f, indent=2, default=str)

    def export_report_csv(self, filepath):
        if not self.current_session:
            return
        with open(filepath, "w", newline="") as f:
            w = csv.writer(f)
            w.writerow([
                "#", "Name", "Result", "Extension", "Offset (hex)",
                "Size", "Size (human)", "MD5", "Path", "Decodable",
            ])
            for i, o in enumerate(self.current_session.outcomes, 1):
                w.writerow([
                    i, o.display_name, o.kind, o.extension,
                    f"0x{o.offset:X}", o.size, fmt_size(o.size),
                    o.md5, o.path,
                    "" if o.decodable is None else o.decodable,
                ])


def default_report_path(dest_dir: str) -> str:
    """recovery_log.json in dest_dir, suffixed if a recovered file took the name."""
    return unique_path(dest_dir, "recovery_log", "json")


def fmt_size(n: int) -> str:
    s = float(n)
    for u in ("B", "KB", "MB", "GB"):
        if s < 1024:
            return f"{s:.1f} {u}"
        s /= 1024
    return f"{s:.1f} TB"
