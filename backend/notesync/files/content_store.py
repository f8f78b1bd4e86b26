"""Content-addressed file rows keyed by (workspace, logical path). Hash is SHA-256 of the body."""

import hashlib
import logging
import mimetypes
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.files.models import File
from notesync.files.paths import path_extension

log = logging.getLogger(__name__)

# Explicit overrides; anything else goes through the generic extension table
_MIME_OVERRIDES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".org": "text/org",
    ".txt": "text/plain",
}
_DEFAULT_MIME = "text/plain"


def compute_hash(body: bytes) -> str:
    """SHA-256 hex digest of file body."""
    return hashlib.sha256(body).hexdigest()


def detect_mime_type(file_path: str) -> str:
    """Media type from the path extension (case-insensitive); text/plain if unknown."""
    ext = path_extension(file_path)
    if ext in _MIME_OVERRIDES:
        return _MIME_OVERRIDES[ext]
    if ext:
        guessed, _ = mimetypes.guess_type(f"file{ext}", strict=False)
        if guessed:
            return guessed
    return _DEFAULT_MIME


async def get_file(
    session: AsyncSession, workspace_id: uuid.UUID, file_path: str
) -> Optional[File]:
    """Return the file at (workspace, path) or None."""
    result = await session.execute(
        select(File).where(File.workspace_id == workspace_id, File.file_path == file_path)
    )
    return result.scalar_one_or_none()


async def get_file_size(
    session: AsyncSession, workspace_id: uuid.UUID, file_path: str
) -> int:
    """Size of the file currently at (workspace, path); 0 if there is none."""
    result = await session.execute(
        select(File.size_bytes).where(
            File.workspace_id == workspace_id, File.file_path == file_path
        )
    )
    size = result.scalar_one_or_none()
    return size or 0


async def list_files(session: AsyncSession, workspace_id: uuid.UUID) -> List[File]:
    """All files in the workspace ordered by path (stable for client diffing)."""
    result = await session.execute(
        select(File).where(File.workspace_id == workspace_id).order_by(File.file_path)
    )
    return list(result.scalars().all())


async def upsert_file(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    file_path: str,
    content: bytes,
    content_hash: str,
    mime_type: str,
    last_modified: datetime,
) -> File:
    """
    Insert or overwrite the file at (workspace, path). The same path is the same file:
    an overwrite keeps the row id and replaces content, hash, size, type and timestamps.
    Caller owns the transaction.
    """
    now = datetime.now(timezone.utc)
    row = await get_file(session, workspace_id, file_path)
    if row:
        row.content_hash = content_hash
        row.content = content
        row.size_bytes = len(content)
        row.mime_type = mime_type
        row.last_modified = last_modified
        row.updated_at = now
    else:
        row = File(
            workspace_id=workspace_id,
            file_path=file_path,
            content_hash=content_hash,
            content=content,
            size_bytes=len(content),
            mime_type=mime_type,
            last_modified=last_modified,
            created_at=now,
            updated_at=now,
        )
        session.add(row)
    await session.flush()
    return row


async def delete_file_row(session: AsyncSession, workspace_id: uuid.UUID, file_path: str) -> int:
    """Delete the file row; versions and metadata go by cascade. Returns rows deleted."""
    result = await session.execute(
        delete(File)
        .where(File.workspace_id == workspace_id, File.file_path == file_path)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
