"""
agentpack

Packages selected project files into one portable artifact that can
rebuild them elsewhere, optionally replacing sensitive text with
placeholders on the way out and restoring it on the way back.
"""

__version__ = "0.1.0"

from .archive import Artifact, ArtifactMetadata, ArchiveBuilder, build_tree
from .filters import PathFilter, resolve_ignore_matcher
from .mapping import MappingSpec
from .reconstruct import ArchiveReconstructor
from .rules import Direction, MappingResolver
from .selector import Selector

__all__ = [
    "Artifact",
    "ArtifactMetadata",
    "ArchiveBuilder",
    "build_tree",
    "PathFilter",
    "resolve_ignore_matcher",
    "MappingSpec",
    "ArchiveReconstructor",
    "Direction",
    "MappingResolver",
    "Selector",
]
