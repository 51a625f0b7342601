"""
Artifact model and building.

This module turns a list of selected project files into a single
self-describing artifact: an ordered file list, one encoded payload per
file, and a directory tree derived from the list. It is intentionally
dumb about selection policy and filesystem traversal.

The mapping specification is never written into the artifact.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import (
    ARTIFACT_FORMAT,
    PAYLOAD_ENCODING,
    SUPPORTED_ARTIFACT_VERSION,
    TOOL_VERSION,
    record_timestamp,
)
from .errors import ArtifactFormatError
from .log import get_logger
from .record import FileFailure
from .rules import MappingResolver
from .utils import atomic_write_text, encode_payload, normalize_rel_path, stable_hash

log = get_logger("archive")


# ---------------------------------------------------------------------------
# Tree description
# ---------------------------------------------------------------------------


def build_tree(paths: Iterable[str]) -> str:
    """
    Render an ASCII tree for a list of relative file paths.

    Directories are inferred from the separators; within a directory,
    sub-directories come first, then files, each group sorted by name.
    """

    root: Dict[str, Any] = {}
    for path in paths:
        parts = normalize_rel_path(path).split("/")
        node = root
        for part in parts[:-1]:
            node = node.setdefault(part + "/", {})
        node.setdefault(parts[-1], None)

    lines = ["."]

    def render(node: Dict[str, Any], prefix: str) -> None:
        dirs = sorted(name for name in node if name.endswith("/"))
        files = sorted(name for name in node if not name.endswith("/"))
        names = dirs + files
        for idx, name in enumerate(names):
            last = idx == len(names) - 1
            lines.append(f"{prefix}{'└── ' if last else '├── '}{name}")
            if name.endswith("/"):
                render(node[name], prefix + ("    " if last else "│   "))

    render(root, "")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArtifactEntry:
    path: str
    payload: str
    sha256: str


@dataclass(frozen=True)
class ArtifactMetadata:
    project_name: str
    artifact_name: str
    timestamp: str = field(default_factory=record_timestamp)
    tool_version: str = TOOL_VERSION
    mapped: bool = False


@dataclass(frozen=True)
class Artifact:
    entries: Tuple[ArtifactEntry, ...]
    metadata: ArtifactMetadata

    @property
    def file_list(self) -> List[str]:
        return [e.path for e in self.entries]

    @property
    def tree(self) -> str:
        return build_tree(self.file_list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": ARTIFACT_FORMAT,
            "version": SUPPORTED_ARTIFACT_VERSION,
            "metadata": asdict(self.metadata),
            "tree": self.tree,
            "files": [
                {
                    "path": e.path,
                    "encoding": PAYLOAD_ENCODING,
                    "sha256": e.sha256,
                    "payload": e.payload,
                }
                for e in self.entries
            ],
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def dump(self, path: Path) -> None:
        """Write the artifact to `path` in one step."""
        atomic_write_text(path, json.dumps(self.to_dict(), indent=1, ensure_ascii=False) + "\n")

    @classmethod
    def load(cls, path: str | Path) -> "Artifact":
        """
        Read and validate an artifact file.

        Raises:
            ArtifactFormatError: if the file is missing or malformed
        """

        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ArtifactFormatError(f"Artifact not found: {path}") from e
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ArtifactFormatError(f"Cannot read artifact {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "Artifact":
        if not isinstance(data, dict) or data.get("format") != ARTIFACT_FORMAT:
            raise ArtifactFormatError("Not an agentpack artifact")

        version = data.get("version")
        if version != SUPPORTED_ARTIFACT_VERSION:
            raise ArtifactFormatError(f"Unsupported artifact version: {version}")

        meta = data.get("metadata") or {}
        if not isinstance(meta, dict):
            raise ArtifactFormatError("Artifact metadata must be an object")
        metadata = ArtifactMetadata(
            project_name=str(meta.get("project_name", "")),
            artifact_name=str(meta.get("artifact_name", "")),
            timestamp=str(meta.get("timestamp", "")),
            tool_version=str(meta.get("tool_version", "")),
            mapped=bool(meta.get("mapped", False)),
        )

        files = data.get("files")
        if not isinstance(files, list):
            raise ArtifactFormatError("Artifact 'files' must be an array")

        entries: List[ArtifactEntry] = []
        seen = set()
        for idx, item in enumerate(files):
            if not isinstance(item, dict):
                raise ArtifactFormatError(f"files[{idx}] must be an object")
            rel = item.get("path")
            payload = item.get("payload")
            digest = item.get("sha256", "")
            if not isinstance(rel, str) or not isinstance(payload, str) or not isinstance(digest, str):
                raise ArtifactFormatError(f"files[{idx}] needs string 'path', 'payload' and 'sha256'")
            if item.get("encoding", PAYLOAD_ENCODING) != PAYLOAD_ENCODING:
                raise ArtifactFormatError(f"files[{idx}] uses unsupported encoding {item.get('encoding')!r}")
            if rel in seen:
                raise ArtifactFormatError(f"Duplicate path in artifact: {rel}")
            seen.add(rel)
            entries.append(ArtifactEntry(path=rel, payload=payload, sha256=digest))

        return cls(entries=tuple(entries), metadata=metadata)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildResult:
    artifact: Artifact
    failures: Tuple[FileFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures


class ArchiveBuilder:
    def __init__(self, root: str | Path, resolver: Optional[MappingResolver] = None):
        self.root = Path(root)
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encode_file(self, path: str) -> ArtifactEntry:
        """
        Read one file, forward-map it when a mapping is active, and encode it.
        """

        path = normalize_rel_path(path)
        data = (self.root / path).read_bytes()

        if self.resolver is not None:
            rules = self.resolver.forward_rules(path)
            if rules:
                data = rules.apply(data)
                log.debug("%s: applied %d substitution rule(s)", path, len(rules))

        return ArtifactEntry(path=path, payload=encode_payload(data), sha256=stable_hash(data))

    def build(self, paths: Iterable[str], metadata: ArtifactMetadata) -> BuildResult:
        """
        Encode every path, in order, into an artifact.

        Unreadable files are reported in the result and left out; the
        rest of the artifact is still produced.
        """

        entries: List[ArtifactEntry] = []
        failures: List[FileFailure] = []

        for path in paths:
            try:
                entries.append(self.encode_file(path))
            except OSError as e:
                log.warning("cannot read %s: %s", path, e)
                failures.append(FileFailure(path=normalize_rel_path(path), reason=str(e)))

        artifact = Artifact(
            entries=tuple(entries),
            metadata=replace(metadata, mapped=self.resolver is not None),
        )
        return BuildResult(artifact=artifact, failures=tuple(failures))
