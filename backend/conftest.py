"""Pytest configuration: set test env before any notesync imports so DB and JWT use test values."""

import asyncio
import os
import tempfile
import uuid
from typing import Optional

import pytest

# Set before notesync.db.session or notesync.config are used so engine and settings use test paths
_tmp = tempfile.mkdtemp(prefix="notesync_test_")
_db_path = os.path.join(_tmp, "test.db")
os.environ.setdefault("NOTESYNC_DB_PATH", _db_path)
os.environ.setdefault("NOTESYNC_JWT_SECRET", "test-jwt-secret-at-least-32-characters-long")
# Bootstrap admin for API tests (login as test@example.com / testpass123)
os.environ.setdefault("NOTESYNC_ADMIN_EMAIL", "test@example.com")
os.environ.setdefault("NOTESYNC_ADMIN_INITIAL_PASSWORD", "testpass123")
# Background extraction is exercised explicitly in tests that drain it
os.environ.setdefault("NOTESYNC_ASYNC_METADATA", "false")


@pytest.fixture(scope="session")
def init_test_db():
    """Create tables once per test session."""
    from notesync.db.session import init_db

    asyncio.run(init_db())


@pytest.fixture
def session_factory(init_test_db):
    """Yield get_session so tests can use async with session_factory() as session."""
    from notesync.db.session import get_session

    return get_session


@pytest.fixture
def make_user(session_factory):
    """Async factory: insert a user with a unique email and return it."""
    from notesync.users.models import User, UserTier

    async def _make(tier: UserTier = UserTier.FREE, is_admin: bool = False) -> User:
        async with session_factory() as session:
            user = User(
                email=f"user-{uuid.uuid4().hex[:12]}@example.com",
                password_hash="not-a-real-hash",
                tier=tier.value,
                is_admin=is_admin,
            )
            session.add(user)
            await session.flush()
            return user

    return _make


@pytest.fixture
def make_workspace(session_factory):
    """Async factory: insert a workspace with explicit limit/usage and return it."""
    from notesync.workspaces.models import Workspace

    async def _make(
        owner_id: uuid.UUID,
        storage_limit_bytes: int = 1024 * 1024,
        storage_used_bytes: int = 0,
        name: Optional[str] = None,
    ) -> Workspace:
        async with session_factory() as session:
            workspace = Workspace(
                user_id=owner_id,
                name=name or f"ws-{uuid.uuid4().hex[:8]}",
                storage_limit_bytes=storage_limit_bytes,
                storage_used_bytes=storage_used_bytes,
            )
            session.add(workspace)
            await session.flush()
            return workspace

    return _make
