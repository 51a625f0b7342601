"""
Exception hierarchy.

Structural problems (a malformed or missing mapping, an unreadable
artifact) abort the whole run. Per-file problems are represented as
outcomes in build/reconstruct reports and never raised past the loop
that produced them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class AgentPackError(Exception):
    """Base exception for agentpack operations."""
    pass


class MappingError(AgentPackError):
    """Base exception for mapping specification problems."""
    pass


class MappingFormatError(MappingError):
    """The mapping specification does not have the expected structure."""

    def __init__(self, message: str, source: Optional[Path] = None):
        self.source = source
        if source is not None:
            message = f"{source}: {message}"
        super().__init__(message)


class MappingFileNotFound(MappingError):
    """The mapping specification file does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Mapping file not found: {path}")


class ArtifactFormatError(AgentPackError):
    """The artifact cannot be read as an agentpack artifact."""
    pass


class CapabilityUnavailable(AgentPackError):
    """A capability required to honour the mapping is missing."""

    def __init__(self, capability: str, hint: str = ""):
        self.capability = capability
        message = f"Required capability unavailable: {capability}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class OverwriteDeclined(AgentPackError):
    """The operator declined to overwrite an existing file."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Not overwriting existing file: {path}")


class SelectionAborted(AgentPackError):
    """The operator aborted the interactive selection."""
    pass


class AmbiguousRuleWarning(UserWarning):
    """Several rules in scope share a placeholder, so inversion is lossy."""

    def __init__(self, path: str, placeholder: str, kept: str, dropped: Sequence[str]):
        self.path = path
        self.placeholder = placeholder
        self.kept = kept
        self.dropped = tuple(dropped)
        super().__init__(
            f"{path}: placeholder {placeholder!r} is produced by several rules; "
            f"restoring it as {kept!r}, not {', '.join(repr(d) for d in self.dropped)}"
        )
