"""
Artifact reconstruction.

Writes the files of an artifact below a target directory, optionally
restoring the text that was replaced by placeholders when the artifact
was built. Every file ends up written, skipped or failed, and each of
those outcomes is reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .archive import Artifact, ArtifactEntry
from .errors import OverwriteDeclined
from .log import get_logger
from .prompts import NeverOverwrite, OverwritePolicy
from .rules import MappingResolver
from .utils import decode_payload, ensure_parent_dir, is_safe_rel_path, stable_hash

log = get_logger("reconstruct")


class Outcome(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class FileResult:
    path: str
    outcome: Outcome
    reason: str = ""


@dataclass
class ReconstructReport:
    results: List[FileResult] = field(default_factory=list)

    def _with(self, outcome: Outcome) -> List[FileResult]:
        return [r for r in self.results if r.outcome is outcome]

    @property
    def written(self) -> List[FileResult]:
        return self._with(Outcome.WRITTEN)

    @property
    def skipped(self) -> List[FileResult]:
        return self._with(Outcome.SKIPPED)

    @property
    def failed(self) -> List[FileResult]:
        return self._with(Outcome.FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed


class ArchiveReconstructor:
    def __init__(
        self,
        target_dir: str | Path,
        resolver: Optional[MappingResolver] = None,
        overwrite: Optional[OverwritePolicy] = None,
    ):
        self.target_dir = Path(target_dir)
        self.resolver = resolver
        self.overwrite = overwrite or NeverOverwrite()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def restore_content(self, entry: ArtifactEntry) -> bytes:
        """
        Decode one entry and undo its substitutions when a mapping is set.

        Raises:
            ValueError: if the payload is corrupt
        """

        data = decode_payload(entry.payload)
        if entry.sha256 and stable_hash(data) != entry.sha256:
            raise ValueError("payload digest mismatch")

        if self.resolver is not None:
            data = self.resolver.inverse_rules(entry.path).apply(data)
        return data

    def reconstruct_entry(self, entry: ArtifactEntry) -> FileResult:
        if not is_safe_rel_path(entry.path):
            return FileResult(entry.path, Outcome.FAILED, "unsafe path outside target directory")

        try:
            data = self.restore_content(entry)
        except ValueError as e:
            return FileResult(entry.path, Outcome.FAILED, str(e))

        destination = self.target_dir / entry.path
        try:
            if destination.exists() and not self.overwrite.should_overwrite(destination):
                raise OverwriteDeclined(destination)
            ensure_parent_dir(destination)
            destination.write_bytes(data)
        except OverwriteDeclined as e:
            return FileResult(entry.path, Outcome.SKIPPED, str(e))
        except OSError as e:
            return FileResult(entry.path, Outcome.FAILED, str(e))

        return FileResult(entry.path, Outcome.WRITTEN)

    def reconstruct(self, artifact: Artifact) -> ReconstructReport:
        """Reconstruct every entry in artifact order."""
        if self.resolver is not None and not artifact.metadata.mapped:
            log.warning("artifact was built without a mapping; inverse rules are applied anyway")

        report = ReconstructReport()
        for entry in artifact.entries:
            result = self.reconstruct_entry(entry)
            if result.outcome is not Outcome.WRITTEN:
                log.info("%s %s: %s", result.outcome.value, result.path, result.reason)
            report.results.append(result)
        return report
