"""User routes: login, refresh, me, change password, admin create/list/delete."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.auth.dependencies import get_current_admin, get_current_user
from notesync.auth.jwt import (
    create_access_token,
    create_refresh_token,
    get_subject_from_refresh,
    hash_password,
    verify_password,
)
from notesync.config import get_settings
from notesync.db.session import get_db
from notesync.limiter import limiter
from notesync.users.models import (
    ChangePassword,
    RefreshRequest,
    TokenPair,
    User,
    UserCreate,
    UserCreateResponse,
    UserLogin,
    UserResponse,
)
from notesync.users.service import (
    create_user as do_create_user,
    delete_user as do_delete_user,
    get_user_by_email,
    get_user_by_id,
)

router = APIRouter(prefix="/api", tags=["users"])
log = logging.getLogger(__name__)


def _token_pair(user: User) -> TokenPair:
    settings = get_settings()
    return TokenPair(
        access_token=create_access_token(str(user.id)),
        refresh_token=create_refresh_token(str(user.id)),
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/auth/login", response_model=TokenPair)
@limiter.limit("10/minute")
async def login(
    request: Request,
    body: UserLogin,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> TokenPair:
    """Login with email and password; returns access and refresh tokens."""
    user = await get_user_by_email(session, body.email)
    if not user or not verify_password(body.password, user.password_hash):
        log.warning("Login failed for email=%s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    log.info("Login successful for email=%s", user.email)
    return _token_pair(user)


@router.post("/auth/refresh", response_model=TokenPair)
@limiter.limit("20/minute")
async def refresh(
    request: Request,
    body: RefreshRequest,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> TokenPair:
    """Exchange refresh token for new access and refresh tokens."""
    user_id = get_subject_from_refresh(body.refresh_token)
    if not user_id:
        log.warning("Refresh failed: invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    user = await get_user_by_id(session, user_id)
    if not user:
        log.warning("Refresh failed: user not found id=%s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    log.info("Refresh successful for email=%s", user.email)
    return _token_pair(user)


@router.get("/users/me", response_model=UserResponse)
async def me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Return current authenticated user."""
    return UserResponse.model_validate(current_user)


@router.post("/auth/change-password")
@limiter.limit("10/minute")
async def change_password(
    request: Request,
    body: ChangePassword,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Change the current user's password. Requires current password."""
    if not verify_password(body.current_password, current_user.password_hash):
        log.warning("Change password failed for email=%s: wrong current password", current_user.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )
    if not body.new_password or len(body.new_password.strip()) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password must be at least 8 characters",
        )
    user = await get_user_by_id(session, current_user.id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.password_hash = hash_password(body.new_password)
    await session.commit()
    log.info("Password changed for email=%s", current_user.email)
    return {"detail": "Password updated"}


@router.post("/users", response_model=UserCreateResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    payload: UserCreate,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> UserCreateResponse:
    """Create a new user (admin only). The temporary password is returned once."""
    try:
        user, temp_password = await do_create_user(session, payload, is_admin=False)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await session.refresh(user)
    log.info("Admin %s created user email=%s tier=%s", current_user.email, user.email, user.tier)
    data = UserResponse.model_validate(user).model_dump()
    return UserCreateResponse(**data, temp_password=temp_password)


@router.get("/users", response_model=list[UserResponse])
async def admin_list_users(
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> list[UserResponse]:
    """List all users (admin only)."""
    result = await session.execute(select(User).order_by(User.email))
    users = result.scalars().all()
    log.info("Admin %s listed users count=%d", current_user.email, len(users))
    return [UserResponse.model_validate(u) for u in users]


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_user(
    user_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> Response:
    """Delete a user by id (admin only). Their workspaces and files are removed by cascade."""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )
    user = await get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    log.info("Admin %s deleted user email=%s", current_user.email, user.email)
    await do_delete_user(session, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
