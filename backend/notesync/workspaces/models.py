"""Workspace SQLAlchemy model and Pydantic schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from notesync.db.session import Base


class Workspace(Base):
    """
    Quota-bounded container of files owned by one user.
    storage_limit_bytes is set from the owner's tier at creation and never changed;
    storage_used_bytes is the running counter maintained by uploads and deletes.
    """

    __tablename__ = "workspaces"
    __table_args__ = (
        CheckConstraint("storage_used_bytes >= 0", name="ck_workspaces_used_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_limit_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_used_bytes: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class WorkspaceCreate(BaseModel):
    """Request body for creating a workspace."""

    name: str = Field(min_length=1, max_length=255)


class WorkspaceResponse(BaseModel):
    """Workspace as returned by API."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    storage_limit_bytes: int
    storage_used_bytes: int
    created_at: datetime
    updated_at: datetime


class WorkspaceStorageInfo(BaseModel):
    """Accounted usage next to the actual sum of file sizes (for drift checks)."""

    storage_limit_bytes: int
    storage_used_bytes: int
    file_count: int
    actual_storage_used: int
