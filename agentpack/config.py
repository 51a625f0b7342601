"""
Global configuration and environment handling.

This module is responsible for:
- Defining global constants and defaults (names, formats, versions)
- Reading the few environment switches the tool honours
- Mapping outcomes to process exit statuses

Nothing in this file should depend on:
- the filesystem
- the mapping specification
- path filtering or selection
- CLI arguments
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Final, FrozenSet, Optional

# ---------------------------------------------------------------------------
# Tool / format versioning
# ---------------------------------------------------------------------------

TOOL_VERSION: Final[str] = "0.1.0"
ARTIFACT_FORMAT: Final[str] = "agentpack"
SUPPORTED_ARTIFACT_VERSION: Final[int] = 1
PAYLOAD_ENCODING: Final[str] = "base64"

# ---------------------------------------------------------------------------
# Default names
# ---------------------------------------------------------------------------

ARTIFACT_PREFIX: Final[str] = "Agent"
ARTIFACT_SUFFIX: Final[str] = ".AI"
RECORD_SUFFIX: Final[str] = ".ai_config"

IGNORE_FILE: Final[str] = ".gitignore"
VCS_DIR: Final[str] = ".git"
VCS_DOTFILES: Final[FrozenSet[str]] = frozenset(
    {".gitignore", ".gitattributes", ".gitmodules", ".gitkeep"}
)

WHOLE_PROJECT_SCOPE: Final[str] = "."

ARTIFACT_NAME_TIME_FORMAT: Final[str] = "%Y%m%d-%H%M%S"
RECORD_TIME_FORMAT: Final[str] = "%H:%M:%S %d/%m/%Y - %A"

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_LOG_LEVEL: Final[str] = "AGENTPACK_LOG_LEVEL"
ENV_NO_GIT: Final[str] = "AGENTPACK_NO_GIT"
ENV_NO_COLOR: Final[str] = "NO_COLOR"

# ---------------------------------------------------------------------------
# Exit statuses
# ---------------------------------------------------------------------------

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_INVALID_INPUT: Final[int] = 2
EXIT_CAPABILITY_UNAVAILABLE: Final[int] = 3
EXIT_ABORTED: Final[int] = 130

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_artifact_name(now: Optional[datetime] = None) -> str:
    """Return the timestamped artifact name used when none is given."""
    now = now or datetime.now()
    return f"{ARTIFACT_PREFIX}{now.strftime(ARTIFACT_NAME_TIME_FORMAT)}{ARTIFACT_SUFFIX}"


def record_timestamp(now: Optional[datetime] = None) -> str:
    """Return the human-readable timestamp stored in records and artifacts."""
    return (now or datetime.now()).strftime(RECORD_TIME_FORMAT)


def get_log_level() -> int:
    """
    Return the log level requested through the environment.

    Unknown level names fall back to WARNING.
    """

    name = os.getenv(ENV_LOG_LEVEL, "WARNING").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def git_oracle_enabled() -> bool:
    """Whether `git check-ignore` may be used as the ignore oracle."""
    return os.getenv(ENV_NO_GIT, "") not in ("1", "true", "yes")


def colors_enabled() -> bool:
    """Whether CLI output may contain ANSI color codes."""
    return ENV_NO_COLOR not in os.environ
