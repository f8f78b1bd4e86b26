"""User SQLAlchemy model, tier policy and Pydantic schemas."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr
from sqlalchemy import Boolean, DateTime, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from notesync.db.session import Base

_MIB = 1024 * 1024
_GIB = 1024 * _MIB


class UserTier(str, enum.Enum):
    """Subscription tier; decides per-workspace storage limit and workspace count."""

    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: Optional[str]) -> "UserTier":
        """Return the tier for value; unknown or empty values fall back to free."""
        try:
            return cls(value)
        except ValueError:
            return cls.FREE

    @property
    def storage_limit_bytes(self) -> int:
        return _TIER_STORAGE_LIMITS[self]

    @property
    def max_workspaces(self) -> int:
        """Maximum workspaces a user may own; -1 means unlimited."""
        return _TIER_MAX_WORKSPACES[self]


_TIER_STORAGE_LIMITS = {
    UserTier.FREE: 100 * _MIB,
    UserTier.PREMIUM: 10 * _GIB,
    UserTier.ENTERPRISE: 100 * _GIB,
}

_TIER_MAX_WORKSPACES = {
    UserTier.FREE: 1,
    UserTier.PREMIUM: 10,
    UserTier.ENTERPRISE: -1,
}


class User(Base):
    """User table: id is the principal handed to the sync engine, email is the login."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    tier: Mapped[str] = mapped_column(String(20), default=UserTier.FREE.value, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def user_tier(self) -> UserTier:
        return UserTier.parse(self.tier)


# Pydantic schemas for API
class UserCreate(BaseModel):
    """Payload for admin creating a new user."""

    email: EmailStr
    tier: UserTier = UserTier.FREE


class UserResponse(BaseModel):
    """User as returned by API (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    tier: str
    is_admin: bool
    created_at: datetime


class UserCreateResponse(UserResponse):
    """Response for admin create user; carries the generated temporary password."""

    temp_password: str


class UserLogin(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class TokenPair(BaseModel):
    """Access and refresh token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshRequest(BaseModel):
    """Refresh token request body."""

    refresh_token: str


class ChangePassword(BaseModel):
    """Request body for changing own password."""

    current_password: str
    new_password: str
