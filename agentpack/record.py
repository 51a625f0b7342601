"""
Selection record: the audit trail of a packaging walk.

The walk fills a SelectionBuilder; once it returns, the builder is frozen
into a SelectionRecord that nothing can change. The record is written
next to the artifact so the operator can see what was chosen.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Set, Tuple

from .utils import atomic_write_text


@dataclass(frozen=True)
class FileFailure:
    path: str
    reason: str


@dataclass(frozen=True)
class SelectionRecord:
    included: Tuple[str, ...] = ()
    include_choices: FrozenSet[str] = frozenset()
    exclude_choices: FrozenSet[str] = frozenset()
    bulk_directories: FrozenSet[str] = frozenset()
    failures: Tuple[FileFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self, *, project_name: str, timestamp: str, artifact_name: str, files_tree: str) -> Dict[str, Any]:
        return {
            "metadata": {
                "project_name": project_name,
                "timestamp": timestamp,
                "artifact_name": artifact_name,
                "files_tree": files_tree,
            },
            "include": sorted(self.include_choices),
            "exclude": sorted(self.exclude_choices),
            "bulk": sorted(self.bulk_directories),
            "unreadable": [f.path for f in self.failures],
        }

    def dump(self, path: Path, **metadata: str) -> None:
        """Write the record as JSON to `path`."""
        atomic_write_text(path, json.dumps(self.to_dict(**metadata), indent=2, ensure_ascii=False) + "\n")


@dataclass
class SelectionBuilder:
    """Mutable state owned by a single walk."""

    included: List[str] = field(default_factory=list)
    include_choices: Set[str] = field(default_factory=set)
    exclude_choices: Set[str] = field(default_factory=set)
    bulk_directories: Set[str] = field(default_factory=set)
    failures: List[FileFailure] = field(default_factory=list)
    _seen: Set[str] = field(default_factory=set, repr=False)

    def add_file(self, path: str) -> bool:
        """Append `path` to the included list; False if it was already there."""
        if path in self._seen:
            return False
        self._seen.add(path)
        self.included.append(path)
        return True

    def fail(self, path: str, reason: str) -> None:
        self.failures.append(FileFailure(path=path, reason=reason))

    def choose(self, path: str, include: bool) -> None:
        if include:
            self.include_choices.add(path)
        else:
            self.exclude_choices.add(path)

    def freeze(self) -> SelectionRecord:
        return SelectionRecord(
            included=tuple(self.included),
            include_choices=frozenset(self.include_choices),
            exclude_choices=frozenset(self.exclude_choices),
            bulk_directories=frozenset(self.bulk_directories),
            failures=tuple(self.failures),
        )
