"""Logical path normalization (no traversal, no control characters)."""

import unicodedata
from pathlib import PurePosixPath

from notesync.errors import InvalidPath

MAX_PATH_LENGTH = 1000


def _is_safe_path_char(c: str) -> bool:
    """True if char is allowed in a path segment (no separators, no control chars)."""
    if c in "/\\":
        return False
    if ord(c) < 32 or ord(c) == 127:
        return False
    # Cc = control, Cs = surrogate, Co = private use, Cn = unassigned
    return unicodedata.category(c) not in ("Cc", "Cs", "Co", "Cn")


def _sanitize_segment(segment: str) -> str:
    """Return segment if safe. Rejects '.', '..', whitespace-only and invalid chars."""
    if not segment.strip() or segment in (".", ".."):
        raise InvalidPath(f"Unsafe path segment: {segment!r}")
    if not all(_is_safe_path_char(c) for c in segment):
        raise InvalidPath(f"Unsafe path segment: {segment!r}")
    return segment


def normalize_logical_path(path: str) -> str:
    """
    Normalize a client path to the workspace-relative key stored on the file row.
    Backslashes become '/', leading/trailing and repeated slashes are dropped.
    Raises InvalidPath for empty, overlong or unsafe paths.
    """
    if not path or not path.strip():
        raise InvalidPath("File path is required")
    parts = [p for p in path.replace("\\", "/").split("/") if p != ""]
    if not parts:
        raise InvalidPath("File path is required")
    normalized = "/".join(_sanitize_segment(p) for p in parts)
    if len(normalized) > MAX_PATH_LENGTH:
        raise InvalidPath(f"File path longer than {MAX_PATH_LENGTH} characters")
    return normalized


def path_extension(path: str) -> str:
    """Lower-cased extension of the last segment ('' if none)."""
    return PurePosixPath(path).suffix.lower()
