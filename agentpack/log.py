"""Small logging helpers to standardize agentpack logger names and configuration.

Library modules only ever call `get_logger`; the CLI calls
`setup_base_logger` once. Nothing is printed through logging that the
operator must see: user-facing output goes through the CLI helpers.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

BASE_LOGGER = "agentpack"


def setup_base_logger(*, level: int = logging.WARNING, stream: Optional[TextIO] = None) -> logging.Logger:
    """Configure the base 'agentpack' logger once and return it.

    Args:
        level: Logging level for the base logger.
        stream: Optional stream (stderr by default).

    Returns:
        The configured base logger.
    """
    base = logging.getLogger(BASE_LOGGER)
    if base.handlers:
        base.setLevel(level)
        return base

    base.setLevel(level)
    base.propagate = False

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    base.addHandler(handler)
    return base


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a namespaced logger under 'agentpack'."""
    if not name or name == BASE_LOGGER:
        return logging.getLogger(BASE_LOGGER)
    if name.startswith(BASE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{BASE_LOGGER}.{name}")
