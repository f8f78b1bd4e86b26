"""User service: lookup, create, delete, bootstrap admin."""

import logging
import secrets
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.auth.jwt import hash_password
from notesync.config import get_settings
from notesync.users.models import User, UserCreate, UserTier

log = logging.getLogger(__name__)


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """Return user by email or None."""
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    """Return user by id or None."""
    return await session.get(User, user_id)


async def create_user(
    session: AsyncSession,
    payload: UserCreate,
    is_admin: bool = False,
) -> tuple[User, str]:
    """
    Create a new user with a generated temporary password.
    Returns (user, temporary_password). Caller must commit session.
    """
    existing = await get_user_by_email(session, payload.email)
    if existing:
        raise ValueError(f"User already exists: {payload.email}")
    temp_password = secrets.token_urlsafe(12)
    user = User(
        email=payload.email,
        password_hash=hash_password(temp_password),
        tier=UserTier.parse(payload.tier).value,
        is_admin=is_admin,
    )
    session.add(user)
    await session.flush()
    log.info("create_user id=%s email=%s tier=%s", user.id, user.email, user.tier)
    return user, temp_password


async def delete_user(session: AsyncSession, user: User) -> None:
    """Delete a user. Their workspaces (and everything in them) go with them via FK cascade."""
    log.info("delete_user id=%s email=%s", user.id, user.email)
    await session.delete(user)
    await session.flush()


async def ensure_admin_exists(session: AsyncSession) -> None:
    """
    If NOTESYNC_ADMIN_EMAIL and NOTESYNC_ADMIN_INITIAL_PASSWORD are set
    and no user exists with that email, create the first admin user.
    """
    settings = get_settings()
    if not settings.admin_email or not settings.admin_initial_password:
        return
    existing = await get_user_by_email(session, settings.admin_email)
    if existing:
        return
    log.info("Creating bootstrap admin user email=%s", settings.admin_email)
    user = User(
        email=settings.admin_email,
        password_hash=hash_password(settings.admin_initial_password),
        tier=UserTier.ENTERPRISE.value,
        is_admin=True,
    )
    session.add(user)
