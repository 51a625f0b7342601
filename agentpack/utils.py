"""
Shared utility helpers.

This module contains small, reusable helpers that do not belong
to path filtering, rule resolution, or archive orchestration.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def stable_hash(data: bytes) -> str:
    """Return a stable SHA-256 hex digest of arbitrary bytes."""
    return hashlib.sha256(data).hexdigest()


def short_hash(data: bytes, length: int = 8) -> str:
    """Return a short hex hash useful for display."""
    return stable_hash(data)[:length]


# ---------------------------------------------------------------------------
# Payload encoding
# ---------------------------------------------------------------------------


def encode_payload(data: bytes) -> str:
    """Encode raw bytes into the artifact's text-safe payload form."""
    return base64.b64encode(data).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """
    Decode a payload produced by `encode_payload`.

    Raises:
        ValueError: if the payload is not valid base64
    """

    try:
        return base64.b64decode(payload.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"invalid base64 payload: {e}") from e


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def normalize_rel_path(path: str | Path) -> str:
    """
    Return a project-relative path in canonical form.

    Backslashes become slashes, any "./" prefix and leading "/" are
    removed, and a trailing "/" is dropped. The project root itself
    normalizes to ".".
    """

    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    text = text.lstrip("/").rstrip("/")
    return text or "."


def relative_to_root(root: Path, path: str | Path) -> Optional[str]:
    """Return `path` relative to `root` when it lies inside it, else None."""
    try:
        rel = Path(path).resolve().relative_to(root.resolve())
    except ValueError:
        return None
    return normalize_rel_path(rel.as_posix())


def link_preserving_path(path: str | Path) -> Path:
    """
    Make `path` absolute, resolving its parent directories but not the
    last component, so a symlinked file keeps the location it was named by.
    """

    path = Path(path).absolute()
    return path.parent.resolve() / path.name


def is_safe_rel_path(path: str) -> bool:
    """Whether `path` stays inside the directory it is resolved against."""
    if not path or path == ".":
        return False
    pure = PurePosixPath(path.replace("\\", "/"))
    if pure.is_absolute() or ":" in pure.parts[0]:
        return False
    return ".." not in pure.parts


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory of a file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write text to `path` so readers never observe a partial file.

    The content goes to a temporary file in the destination directory
    which then replaces the target in one step.
    """

    ensure_parent_dir(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
