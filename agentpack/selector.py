"""
Filesystem walk and selection.

This module is responsible for:
- walking the project tree depth-first in a stable order
- applying the path filter to every candidate
- asking the decision source about directories and files
- recording every decision

This module does NOT:
- read file contents
- apply substitutions
- write the artifact
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List

from .errors import SelectionAborted
from .filters import PathFilter
from .log import get_logger
from .prompts import Decision, DecisionSource
from .record import SelectionBuilder, SelectionRecord
from .utils import relative_to_root

log = get_logger("selector")


def _join(parent: str, name: str) -> str:
    return name if parent == "." else f"{parent}/{name}"


class Selector:
    def __init__(self, root: str | Path, path_filter: PathFilter, decisions: DecisionSource):
        self.root = Path(root)
        self.path_filter = path_filter
        self.decisions = decisions

    def walk(self) -> SelectionRecord:
        """
        Walk the whole project and return the frozen selection.

        Exceptions raised by the decision source propagate and an
        interrupt becomes SelectionAborted; no partial record is returned.
        """

        state = SelectionBuilder()
        try:
            self._process_directory(".", state)
        except KeyboardInterrupt as e:
            raise SelectionAborted("selection interrupted by the operator") from e
        record = state.freeze()
        log.debug(
            "selection finished: %d file(s), %d include / %d exclude choice(s)",
            len(record.included),
            len(record.include_choices),
            len(record.exclude_choices),
        )
        return record

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _entries(self, rel_dir: str, state: SelectionBuilder) -> List[str]:
        try:
            return sorted(os.listdir(self.root / rel_dir))
        except OSError as e:
            log.warning("cannot read directory %s: %s", rel_dir, e.strerror or e)
            state.fail(rel_dir, e.strerror or str(e))
            return []

    def _is_walkable_dir(self, rel: str) -> bool:
        path = self.root / rel
        if path.is_symlink() and path.is_dir():
            log.debug("not following symlinked directory %s", rel)
            return False
        return path.is_dir()

    def _process_directory(self, rel_dir: str, state: SelectionBuilder) -> None:
        if rel_dir != ".":
            decision = self.decisions.ask_directory(rel_dir)
            if decision is Decision.SKIP:
                state.choose(rel_dir, include=False)
                return

            state.choose(rel_dir, include=True)
            if decision is Decision.INCLUDE_ALL:
                state.bulk_directories.add(rel_dir)
                for rel_file in self._iter_eligible_files(rel_dir, state):
                    state.add_file(rel_file)
                return

        for name in self._entries(rel_dir, state):
            rel = _join(rel_dir, name)
            if self.path_filter.should_exclude(rel):
                log.debug("excluded %s (%s)", rel, self.path_filter.explain(rel).value)
                continue

            if (self.root / rel).is_dir():
                if self._is_walkable_dir(rel):
                    self._process_directory(rel, state)
                continue

            if self.decisions.ask_file(rel) is Decision.INCLUDE:
                state.add_file(rel)
                state.choose(rel, include=True)
            else:
                state.choose(rel, include=False)

    def _iter_eligible_files(self, rel_dir: str, state: SelectionBuilder) -> Iterator[str]:
        """
        Yield every eligible file below `rel_dir`, pruning excluded directories.

        Directories that cannot be listed are recorded as failures on `state`.
        """

        def on_error(e: OSError) -> None:
            rel = relative_to_root(self.root, e.filename) if e.filename else None
            rel = rel or rel_dir
            log.warning("cannot read directory %s: %s", rel, e.strerror or e)
            state.fail(rel, e.strerror or str(e))

        for dirpath, dirnames, filenames in os.walk(self.root / rel_dir, onerror=on_error):
            rel_parent = Path(dirpath).relative_to(self.root).as_posix()
            dirnames[:] = sorted(
                d for d in dirnames
                if not self.path_filter.should_exclude(_join(rel_parent, d))
                and not (Path(dirpath) / d).is_symlink()
            )
            for name in sorted(filenames):
                rel = _join(rel_parent, name)
                if self.path_filter.should_exclude(rel):
                    continue
                yield rel
