"""
Substitution rule resolution.

Given a file path and a mapping specification, this module decides:
- which scoped rule groups cover the file
- which (from, to) pairs apply, and in which order
- whether inverting them is ambiguous

Rule sets only rewrite bytes handed to them. They never touch files.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from .config import WHOLE_PROJECT_SCOPE
from .errors import AmbiguousRuleWarning
from .log import get_logger
from .mapping import MappingSpec, ScopedRuleGroup, Substitution
from .utils import normalize_rel_path

log = get_logger("rules")


class Direction(str, Enum):
    FORWARD = "forward"
    INVERSE = "inverse"


@dataclass(frozen=True)
class ResolvedRuleSet:
    """
    Ordered (key, replacement) pairs for one file and one direction.

    For FORWARD the key is the sensitive text and the replacement the
    placeholder; for INVERSE it is the other way round. Pairs are sorted
    by descending key length.
    """

    path: str
    direction: Direction
    pairs: Tuple[Tuple[str, str], ...]

    def __bool__(self) -> bool:
        return bool(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def apply(self, data: bytes) -> bytes:
        """Apply every pair as a literal global replace, in order."""
        for key, replacement in self.pairs:
            data = data.replace(key.encode("utf-8"), replacement.encode("utf-8"))
        return data


def scope_matches(scope: str, path: str) -> bool:
    """
    Whether a rule group scoped to `scope` covers `path`.

    A directory scope only covers paths below it on a separator
    boundary: "src/a.txt" does not cover "src/a.txt.bak".
    """

    scope = normalize_rel_path(scope) if scope else WHOLE_PROJECT_SCOPE
    path = normalize_rel_path(path)
    if scope == WHOLE_PROJECT_SCOPE:
        return True
    return path == scope or path.startswith(scope + "/")


class MappingResolver:
    def __init__(self, spec: MappingSpec):
        self.spec = spec

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def matching_groups(self, path: str) -> List[Tuple[int, ScopedRuleGroup]]:
        """Return (index, group) for every group whose scope covers `path`."""
        return [
            (idx, group)
            for idx, group in enumerate(self.spec.groups)
            if scope_matches(group.scope, path)
        ]

    def substitutions(self, path: str) -> List[Substitution]:
        """In-scope substitutions in declaration order, exact duplicates removed."""
        seen = set()
        result: List[Substitution] = []
        for _, group in self.matching_groups(path):
            for sub in group.substitutions:
                if sub in seen:
                    continue
                seen.add(sub)
                result.append(sub)
        return result

    def forward_rules(self, path: str) -> ResolvedRuleSet:
        path = normalize_rel_path(path)
        subs = self.substitutions(path)
        ordered = sorted(subs, key=lambda s: len(s.source), reverse=True)
        return ResolvedRuleSet(
            path=path,
            direction=Direction.FORWARD,
            pairs=tuple((s.source, s.placeholder) for s in ordered),
        )

    def inverse_rules(self, path: str) -> ResolvedRuleSet:
        """
        Resolve placeholder -> original pairs for `path`.

        When several sources share one placeholder only the first declared
        one is kept and an AmbiguousRuleWarning is issued. Empty
        placeholders cannot be inverted and are left out.
        """

        path = normalize_rel_path(path)
        chosen: Dict[str, Substitution] = {}
        for sub in self.substitutions(path):
            if not sub.placeholder:
                log.debug("%s: %r maps to an empty string and cannot be restored", path, sub.source)
                continue
            chosen.setdefault(sub.placeholder, sub)

        for placeholder, sources in self.ambiguities(path).items():
            warnings.warn(
                AmbiguousRuleWarning(path, placeholder, sources[0], sources[1:]),
                stacklevel=2,
            )

        ordered = sorted(chosen.values(), key=lambda s: len(s.placeholder), reverse=True)
        return ResolvedRuleSet(
            path=path,
            direction=Direction.INVERSE,
            pairs=tuple((s.placeholder, s.source) for s in ordered),
        )

    def ambiguities(self, path: str) -> Dict[str, List[str]]:
        """
        Map each placeholder produced by more than one source to those
        sources, first-declared first.
        """

        by_placeholder: Dict[str, List[str]] = {}
        for sub in self.substitutions(path):
            if not sub.placeholder:
                continue
            sources = by_placeholder.setdefault(sub.placeholder, [])
            if sub.source not in sources:
                sources.append(sub.source)
        return {p: s for p, s in by_placeholder.items() if len(s) > 1}

    def rules_for(self, path: str, direction: Direction) -> ResolvedRuleSet:
        if direction is Direction.FORWARD:
            return self.forward_rules(path)
        return self.inverse_rules(path)
