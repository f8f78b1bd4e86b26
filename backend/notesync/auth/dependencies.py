"""FastAPI dependencies for auth: bearer token -> principal."""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from notesync.auth.jwt import get_subject_from_access
from notesync.db.session import get_session
from notesync.users.models import User

security = HTTPBearer(auto_error=False)
log = logging.getLogger(__name__)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> User:
    """
    Resolve Bearer token to current user; raise 401 if invalid or missing.
    The lookup uses its own short session so no transaction stays open for the
    rest of the request; the returned user is detached.
    """
    if not credentials:
        log.debug("Request missing Bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = get_subject_from_access(credentials.credentials)
    if not user_id:
        log.debug("Invalid or expired access token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    async with get_session() as session:
        user = await session.get(User, user_id)
    if not user:
        log.warning("Token valid but user not found: id=%s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Require current user to be admin."""
    if not current_user.is_admin:
        log.warning("Non-admin user attempted admin action: email=%s", current_user.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin required",
        )
    return current_user
