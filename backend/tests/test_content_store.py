"""Tests for content hashing, media type detection and logical path normalization."""

import hashlib

import pytest

from notesync.errors import InvalidPath
from notesync.files.content_store import compute_hash, detect_mime_type
from notesync.files.paths import MAX_PATH_LENGTH, normalize_logical_path


def test_compute_hash_is_sha256_hex() -> None:
    """Digest is the lowercase hex SHA-256 of the raw bytes."""
    assert compute_hash(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    assert compute_hash(b"X") == hashlib.sha256(b"X").hexdigest()
    assert len(compute_hash(b"hello")) == 64


def test_compute_hash_differs_for_different_content() -> None:
    assert compute_hash(b"X") != compute_hash(b"XY")


@pytest.mark.parametrize(
    "path,expected",
    [
        ("note.md", "text/markdown"),
        ("NOTE.MD", "text/markdown"),
        ("dir/note.markdown", "text/markdown"),
        ("notes.org", "text/org"),
        ("readme.txt", "text/plain"),
        ("README", "text/plain"),
        ("archive.unknownext", "text/plain"),
    ],
)
def test_detect_mime_type_overrides_and_default(path: str, expected: str) -> None:
    assert detect_mime_type(path) == expected


def test_detect_mime_type_falls_back_to_extension_table() -> None:
    """Extensions without an override use the generic table."""
    assert detect_mime_type("data.json") == "application/json"
    assert detect_mime_type("page.HTML") == "text/html"


def test_normalize_logical_path_unchanged() -> None:
    assert normalize_logical_path("notes/today.md") == "notes/today.md"
    assert normalize_logical_path("single.txt") == "single.txt"


def test_normalize_logical_path_strips_and_collapses_slashes() -> None:
    assert normalize_logical_path("/notes//today.md/") == "notes/today.md"


def test_normalize_logical_path_converts_backslashes() -> None:
    assert normalize_logical_path("notes\\today.md") == "notes/today.md"


def test_normalize_logical_path_accepts_spaces_parens_unicode() -> None:
    """Names like 'My File (1).md' and international names are kept as-is."""
    assert normalize_logical_path("My File (1).md") == "My File (1).md"
    assert normalize_logical_path("Übersicht/café.org") == "Übersicht/café.org"


def test_normalize_logical_path_rejects_traversal() -> None:
    with pytest.raises(InvalidPath, match="Unsafe path segment"):
        normalize_logical_path("../../etc/passwd")
    with pytest.raises(InvalidPath):
        normalize_logical_path("sub/..")
    with pytest.raises(InvalidPath):
        normalize_logical_path(".")


def test_normalize_logical_path_rejects_control_chars() -> None:
    with pytest.raises(InvalidPath, match="Unsafe path segment"):
        normalize_logical_path("dir/file\x00name.txt")


def test_normalize_logical_path_rejects_empty() -> None:
    with pytest.raises(InvalidPath):
        normalize_logical_path("")
    with pytest.raises(InvalidPath):
        normalize_logical_path("   ")
    with pytest.raises(InvalidPath):
        normalize_logical_path("///")


def test_normalize_logical_path_rejects_overlong() -> None:
    with pytest.raises(InvalidPath, match="longer than"):
        normalize_logical_path("a" * (MAX_PATH_LENGTH + 1))
