"""
Mapping specification loading, validation, and normalization.

This module answers one question:
    "Which text must be replaced, where, and which folders stay out?"

Responsibilities:
- Load the mapping file (JSON, or YAML for .yml/.yaml files)
- Validate its whole structure eagerly
- Normalize scopes and folder names
- Expose a clean, immutable Python representation

This module does NOT:
- Decide which rules apply to a given file
- Read or rewrite project files
- Walk the filesystem
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .config import WHOLE_PROJECT_SCOPE
from .errors import CapabilityUnavailable, MappingFileNotFound, MappingFormatError
from .utils import link_preserving_path, normalize_rel_path

YAML_SUFFIXES = (".yml", ".yaml")


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Substitution:
    source: str
    placeholder: str


@dataclass(frozen=True)
class ScopedRuleGroup:
    scope: str
    substitutions: Tuple[Substitution, ...]

    @property
    def is_global(self) -> bool:
        return self.scope == WHOLE_PROJECT_SCOPE


@dataclass(frozen=True)
class MappingSpec:
    ignore_folders: FrozenSet[str] = frozenset()
    groups: Tuple[ScopedRuleGroup, ...] = ()
    source: Optional[Path] = field(default=None, compare=False)

    # ------------------------------------------------------------------
    # Loading API
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> "MappingSpec":
        """
        Load and validate a mapping file.

        Args:
            path: Path to the mapping file

        Raises:
            MappingFileNotFound: if the file does not exist
            MappingFormatError: if the content is malformed
            CapabilityUnavailable: if a YAML file is given and PyYAML is missing

        Returns:
            MappingSpec
        """

        path = Path(path)
        if not path.is_file():
            raise MappingFileNotFound(path)

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MappingFormatError(f"not valid UTF-8 text: {e}", path) from e

        if path.suffix.lower() in YAML_SUFFIXES:
            raw = cls._parse_yaml(text, path)
        else:
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as e:
                raise MappingFormatError(f"invalid JSON: {e}", path) from e

        return cls.from_dict(raw, source=link_preserving_path(path))

    @classmethod
    def from_dict(cls, data: Any, source: Optional[Path] = None) -> "MappingSpec":
        """Validate an already-parsed document."""
        if not isinstance(data, dict):
            raise MappingFormatError("expected a JSON object at top level", source)

        return cls(
            ignore_folders=cls._parse_ignore_folders(data.get("ignore-folders"), source),
            groups=cls._parse_groups(data.get("map"), source),
            source=source,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_yaml(text: str, path: Path) -> Any:
        try:
            import yaml
        except ImportError as e:
            raise CapabilityUnavailable("PyYAML", "install PyYAML to read YAML mappings") from e

        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise MappingFormatError(f"invalid YAML: {e}", path) from e

    @staticmethod
    def _parse_ignore_folders(data: Any, source: Optional[Path]) -> FrozenSet[str]:
        if data is None:
            return frozenset()
        if not isinstance(data, list):
            raise MappingFormatError("'ignore-folders' must be an array of strings", source)

        folders = set()
        for item in data:
            if not isinstance(item, str) or not item.strip():
                raise MappingFormatError(
                    f"'ignore-folders' entries must be non-empty strings, got {item!r}", source
                )
            folder = normalize_rel_path(item.strip())
            if folder == ".":
                raise MappingFormatError("'ignore-folders' cannot exclude the project root", source)
            folders.add(folder)
        return frozenset(folders)

    @staticmethod
    def _parse_groups(data: Any, source: Optional[Path]) -> Tuple[ScopedRuleGroup, ...]:
        if data is None:
            return ()
        if not isinstance(data, list):
            raise MappingFormatError("expected 'map' to be an array of objects", source)

        groups: List[ScopedRuleGroup] = []
        for idx, group in enumerate(data):
            where = f"map[{idx}]"
            if not isinstance(group, dict):
                raise MappingFormatError(f"{where} must be an object", source)

            scope = group.get("scope", WHOLE_PROJECT_SCOPE)
            if scope is None:
                scope = WHOLE_PROJECT_SCOPE
            if not isinstance(scope, str):
                raise MappingFormatError(f"{where}.scope must be a string", source)

            entries = group.get("list")
            if not isinstance(entries, list):
                raise MappingFormatError(f"{where}.list must be an array", source)

            substitutions = [
                MappingSpec._parse_entry(entry, f"{where}.list[{pos}]", source)
                for pos, entry in enumerate(entries)
            ]
            groups.append(
                ScopedRuleGroup(
                    scope=normalize_rel_path(scope.strip()) if scope.strip() else WHOLE_PROJECT_SCOPE,
                    substitutions=tuple(substitutions),
                )
            )

        return tuple(groups)

    @staticmethod
    def _parse_entry(entry: Any, where: str, source: Optional[Path]) -> Substitution:
        if not isinstance(entry, dict) or len(entry) != 1:
            raise MappingFormatError(f"{where} must be an object with exactly one key", source)

        ((from_text, to_text),) = entry.items()
        if not isinstance(from_text, str) or not from_text:
            raise MappingFormatError(f"{where} has an empty or non-string key", source)
        if not isinstance(to_text, str):
            raise MappingFormatError(f"{where} value for {from_text!r} must be a string", source)

        return Substitution(source=from_text, placeholder=to_text)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    @property
    def rule_count(self) -> int:
        return sum(len(g.substitutions) for g in self.groups)

    def relative_source(self, root: Path) -> Optional[str]:
        """
        Return the mapping file's path relative to `root`, if it lies inside.

        The location the file was named by counts, not a symlink target.
        """

        if self.source is None:
            return None
        try:
            rel = self.source.relative_to(root.resolve())
        except ValueError:
            return None
        return normalize_rel_path(rel.as_posix())

    def describe(self) -> Dict[str, Any]:
        """Return a summary without any substitution text."""
        return {
            "ignore_folders": sorted(self.ignore_folders),
            "groups": len(self.groups),
            "rules": self.rule_count,
        }
