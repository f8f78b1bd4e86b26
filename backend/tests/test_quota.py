"""Tests for quota arithmetic (precheck and release)."""

from notesync.files.quota import precheck, release


def test_precheck_rejects_new_file_over_limit() -> None:
    """limit=100, used=90: a new 20-byte file needs 110 and is rejected."""
    check = precheck(used=90, limit=100, incoming_size=20)
    assert check.allowed is False
    assert check.projected_usage == 110
    assert check.limit == 100


def test_precheck_allows_small_file() -> None:
    """limit=100, used=90: a new 5-byte file projects to 95."""
    check = precheck(used=90, limit=100, incoming_size=5)
    assert check.allowed is True
    assert check.projected_usage == 95


def test_precheck_exactly_at_limit_is_allowed() -> None:
    check = precheck(used=90, limit=100, incoming_size=10)
    assert check.allowed is True
    assert check.projected_usage == 100


def test_precheck_overwrite_not_double_counted() -> None:
    """Overwriting a 20-byte file with 25 bytes only adds 5."""
    check = precheck(used=95, limit=100, incoming_size=25, existing_size=20)
    assert check.allowed is True
    assert check.projected_usage == 100


def test_precheck_identical_overwrite_zero_delta() -> None:
    check = precheck(used=42, limit=100, incoming_size=10, existing_size=10)
    assert check.projected_usage == 42


def test_precheck_shrinking_overwrite_allowed_even_when_over_limit() -> None:
    """A workspace already over its limit may still shrink a file."""
    check = precheck(used=120, limit=100, incoming_size=1, existing_size=30)
    assert check.allowed is True
    assert check.projected_usage == 91


def test_release_subtracts_size() -> None:
    assert release(95, 5) == 90


def test_release_clamps_at_zero() -> None:
    """Drifted bookkeeping never produces negative usage."""
    assert release(3, 10) == 0
