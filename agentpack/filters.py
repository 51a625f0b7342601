"""
Path eligibility.

This module is responsible for:
- deciding whether a project-relative path may be packaged at all
- matching paths against ignore rules (git's own matcher when available,
  a small built-in evaluator otherwise)

This module does NOT:
- walk the filesystem
- ask the operator anything
- read file contents
"""

from __future__ import annotations

import fnmatch
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from .config import IGNORE_FILE, VCS_DIR, VCS_DOTFILES, git_oracle_enabled
from .log import get_logger
from .mapping import MappingSpec
from .utils import link_preserving_path, normalize_rel_path, relative_to_root

log = get_logger("filters")


# ---------------------------------------------------------------------------
# Ignore matching
# ---------------------------------------------------------------------------


@runtime_checkable
class IgnoreMatcherProtocol(Protocol):
    """Read-only answer to "is this path ignored by the project's rules?"."""

    def is_ignored(self, path: str) -> bool: ...


@dataclass(frozen=True)
class IgnorePattern:
    raw: str
    glob: str
    negated: bool = False
    anchored: bool = False
    directory: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnorePattern"]:
        """Parse one ignore-file line; blank lines and comments give None."""
        text = line.strip()
        if not text or text.startswith("#"):
            return None

        negated = text.startswith("!")
        if negated:
            text = text[1:]
        if text.startswith("\\"):
            text = text[1:]

        directory = text.endswith("/")
        text = text.rstrip("/")
        anchored = text.startswith("/")
        text = text.lstrip("/")
        if not text:
            return None

        return cls(
            raw=line.strip(),
            glob=text,
            negated=negated,
            anchored=anchored,
            directory=directory,
        )

    def matches(self, path: str, is_dir: bool = True) -> bool:
        """
        Match against `path` or any of its ancestor directories.

        Anchored patterns are tried from the root only; the others from
        every segment, so they match a basename or a relative suffix.
        """

        parts = path.split("/")
        starts = (0,) if self.anchored else range(len(parts))
        for start in starts:
            for end in range(start + 1, len(parts) + 1):
                if end == len(parts) and self.directory and not is_dir:
                    continue
                if fnmatch.fnmatchcase("/".join(parts[start:end]), self.glob):
                    return True
        return False


class PatternIgnoreMatcher:
    """
    Built-in fallback evaluator for ignore files.

    Every pattern is tried in file order and the last one that matches
    decides, so a later "!pattern" re-includes what an earlier one
    excluded. Bracket classes and "**" are not guaranteed to behave like
    git's matcher.
    """

    def __init__(self, patterns: Sequence[IgnorePattern] = (), root: Optional[Path] = None):
        self.patterns = tuple(patterns)
        self.root = root

    @classmethod
    def from_lines(cls, lines: Iterable[str], root: Optional[Path] = None) -> "PatternIgnoreMatcher":
        patterns = [p for p in (IgnorePattern.parse(line) for line in lines) if p is not None]
        return cls(patterns, root=root)

    @classmethod
    def from_file(cls, path: Path, root: Optional[Path] = None) -> "PatternIgnoreMatcher":
        if not path.is_file():
            return cls((), root=root)
        text = path.read_text(encoding="utf-8", errors="replace")
        matcher = cls.from_lines(text.splitlines(), root=root)
        log.debug("loaded %d ignore pattern(s) from %s", len(matcher.patterns), path)
        return matcher

    def _is_dir(self, path: str) -> bool:
        if self.root is None:
            return True
        return (self.root / path).is_dir()

    def is_ignored(self, path: str) -> bool:
        path = normalize_rel_path(path)
        if path == "." or not self.patterns:
            return False

        is_dir = self._is_dir(path)
        ignored = False
        for pattern in self.patterns:
            if pattern.matches(path, is_dir):
                ignored = not pattern.negated
        return ignored


class GitCheckIgnoreMatcher:
    """
    Ask `git check-ignore` about each path.

    Exit status 0 means ignored and 1 means not ignored. Anything else
    (or git failing to start) defers to the fallback matcher.
    """

    def __init__(self, root: Path, fallback: IgnoreMatcherProtocol, git: str = "git"):
        self.root = root
        self.fallback = fallback
        self.git = git

    def is_ignored(self, path: str) -> bool:
        path = normalize_rel_path(path)
        if path == ".":
            return False

        try:
            proc = subprocess.run(
                [self.git, "check-ignore", "-q", "--no-index", "--", path],
                cwd=self.root,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            log.debug("git check-ignore failed for %s: %s", path, e)
            return self.fallback.is_ignored(path)

        if proc.returncode == 0:
            return True
        if proc.returncode == 1:
            return False
        return self.fallback.is_ignored(path)


def _inside_work_tree(git: str, root: Path) -> bool:
    try:
        proc = subprocess.run(
            [git, "rev-parse", "--is-inside-work-tree"],
            cwd=root,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return False
    return proc.returncode == 0 and proc.stdout.strip() == "true"


def resolve_ignore_matcher(root: Path, use_git: Optional[bool] = None) -> IgnoreMatcherProtocol:
    """
    Return git's matcher when it can answer for `root`, else the fallback
    evaluator loaded from the project's ignore file.
    """

    fallback = PatternIgnoreMatcher.from_file(root / IGNORE_FILE, root=root)
    if use_git is None:
        use_git = git_oracle_enabled()

    git = shutil.which("git") if use_git else None
    if git and _inside_work_tree(git, root):
        log.debug("using git check-ignore as ignore oracle")
        return GitCheckIgnoreMatcher(root, fallback, git=git)

    log.debug("using built-in ignore pattern evaluator")
    return fallback


# ---------------------------------------------------------------------------
# Path filter
# ---------------------------------------------------------------------------


class ExclusionReason(str, Enum):
    SELF = "generated output or generator"
    MAPPING_FILE = "mapping specification"
    IGNORED_FOLDER = "mapping ignore-folders"
    VCS = "version control metadata"
    IGNORE_PATTERN = "ignore pattern"


def is_vcs_path(path: str) -> bool:
    parts = path.split("/")
    return VCS_DIR in parts or parts[-1] in VCS_DOTFILES


def is_under_folder(path: str, folder: str) -> bool:
    """
    Whether `path` is `folder`, lies below it, or contains the folder's
    segments as consecutive segments at any depth.
    """

    return f"/{folder}/" in f"/{path}/"


class PathFilter:
    def __init__(
        self,
        *,
        self_paths: Iterable[str] = (),
        mapping: Optional[MappingSpec] = None,
        mapping_path: Optional[str] = None,
        mapping_target: Optional[Path] = None,
        root: Optional[Path] = None,
        ignore_matcher: Optional[IgnoreMatcherProtocol] = None,
        include_vcs: bool = False,
        include_ignored: bool = False,
    ):
        self.self_paths = frozenset(normalize_rel_path(p) for p in self_paths)
        self.mapping_path = normalize_rel_path(mapping_path) if mapping_path else None
        self.mapping_target = mapping_target
        self.root = root
        self.ignore_folders = tuple(sorted(mapping.ignore_folders)) if mapping else ()
        self.ignore_matcher = ignore_matcher
        self.include_vcs = include_vcs
        self.include_ignored = include_ignored

    @classmethod
    def for_project(
        cls,
        root: Path,
        *,
        outputs: Iterable[Path] = (),
        generators: Iterable[Path] = (),
        mapping: Optional[MappingSpec] = None,
        mapping_file: Optional[Path] = None,
        ignore_matcher: Optional[IgnoreMatcherProtocol] = None,
        include_vcs: bool = False,
        include_ignored: bool = False,
    ) -> "PathFilter":
        """
        Build a filter for `root`, translating absolute output, generator
        and mapping locations into project-relative paths. Locations
        outside the project are simply not relevant.

        `mapping_file` names the mapping location when no MappingSpec
        could be loaded from it; the file is still kept out.
        """

        self_paths: List[str] = []
        for candidate in [*outputs, *generators]:
            rel = relative_to_root(root, link_preserving_path(candidate))
            if rel and rel != ".":
                self_paths.append(rel)

        location = mapping.source if mapping is not None else None
        if location is None and mapping_file is not None:
            location = link_preserving_path(mapping_file)

        mapping_path = None
        mapping_target = None
        if location is not None:
            mapping_path = MappingSpec(source=location).relative_source(root)
            mapping_target = location.resolve()

        if ignore_matcher is None and not include_ignored:
            ignore_matcher = resolve_ignore_matcher(root)

        return cls(
            self_paths=self_paths,
            mapping=mapping,
            mapping_path=mapping_path,
            mapping_target=mapping_target,
            root=root,
            ignore_matcher=ignore_matcher,
            include_vcs=include_vcs,
            include_ignored=include_ignored,
        )

    def _is_self(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.self_paths)

    def _is_mapping_file(self, path: str) -> bool:
        if self.mapping_path is not None and path == self.mapping_path:
            return True
        if self.mapping_target is None or self.root is None:
            return False
        try:
            return (self.root / path).resolve() == self.mapping_target
        except (OSError, RuntimeError):
            return False

    def explain(self, path: str) -> Optional[ExclusionReason]:
        """Return the first reason `path` is excluded, or None if eligible."""
        path = normalize_rel_path(path)
        if path == ".":
            return None

        if self._is_self(path):
            return ExclusionReason.SELF
        if self._is_mapping_file(path):
            return ExclusionReason.MAPPING_FILE
        if any(is_under_folder(path, folder) for folder in self.ignore_folders):
            return ExclusionReason.IGNORED_FOLDER
        if not self.include_vcs and is_vcs_path(path):
            return ExclusionReason.VCS
        if (
            not self.include_ignored
            and self.ignore_matcher is not None
            and self.ignore_matcher.is_ignored(path)
        ):
            return ExclusionReason.IGNORE_PATTERN
        return None

    def should_exclude(self, path: str) -> bool:
        return self.explain(path) is not None
