"""SQLAlchemy models for files, versions, metadata, sync operations; Pydantic projections."""

import base64
import enum
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from notesync.db.session import Base


class FileFormat(str, enum.Enum):
    """Format tag written by the metadata extractor."""

    PLAINTEXT = "plaintext"
    MARKDOWN = "markdown"
    ORGMODE = "orgmode"


class OperationType(str, enum.Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    DELETE = "delete"
    CONFLICT = "conflict"


class OperationStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class File(Base):
    """One logical file per (workspace, path); content is stored inline."""

    __tablename__ = "files"
    __table_args__ = (
        UniqueConstraint("workspace_id", "file_path", name="uq_files_workspace_path"),
        Index("idx_files_hash", "content_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), index=True, nullable=False
    )
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA-256 hex
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), default="text/plain", nullable=False)
    last_modified: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class FileVersion(Base):
    """Append-only content snapshot; removed only by cascade when the file goes."""

    __tablename__ = "file_versions"
    __table_args__ = (
        UniqueConstraint("file_id", "version_number", name="uq_file_versions_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class FileMetadata(Base):
    """Cache layer filled asynchronously after upload; may lag or be absent."""

    __tablename__ = "file_metadata"

    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("files.id", ondelete="CASCADE"), primary_key=True
    )
    format: Mapped[str] = mapped_column(String(20), nullable=False)
    parsed_blocks: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    properties: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    word_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_parsed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class SyncOperation(Base):
    """Audit row for one attempted mutation: pending -> success | failed."""

    __tablename__ = "sync_operations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), index=True, nullable=False
    )
    file_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )
    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    client_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True, nullable=False
    )


# Pydantic projections for API
class FileInfo(BaseModel):
    """Public projection of a file row; never carries the raw bytes."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    workspace_id: uuid.UUID
    file_path: str
    content_hash: str
    size_bytes: int
    mime_type: str
    last_modified: datetime
    updated_at: datetime


class FileWithContent(FileInfo):
    """File projection including raw bytes (read path only)."""

    content: bytes


class FileContentResponse(FileInfo):
    """JSON form of FileWithContent: content is standard base64."""

    content: str
    content_encoding: str = "base64"

    @classmethod
    def from_file(cls, file: FileWithContent) -> "FileContentResponse":
        data = file.model_dump(exclude={"content"})
        return cls(**data, content=base64.b64encode(file.content).decode("ascii"))


class FileVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: uuid.UUID
    version_number: int
    content_hash: str
    created_at: datetime


class FileMetadataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: uuid.UUID
    format: str
    parsed_blocks: Optional[Any] = None
    properties: Optional[Any] = None
    word_count: Optional[int] = None
    last_parsed: datetime


class SyncOperationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    workspace_id: uuid.UUID
    file_id: Optional[uuid.UUID] = None
    operation_type: str
    client_id: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    created_at: datetime
