"""Version store: immutable content snapshots per file."""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.errors import VersioningFailure
from notesync.files.models import File, FileVersion

log = logging.getLogger(__name__)

VERSION_MODE_INCREMENT = "increment"
VERSION_MODE_FIXED = "fixed"


async def next_version_number(session: AsyncSession, file_id: uuid.UUID, mode: str) -> int:
    """Version to write next: highest + 1 in increment mode, always 1 in fixed mode."""
    if mode == VERSION_MODE_FIXED:
        return 1
    result = await session.execute(
        select(func.max(FileVersion.version_number)).where(FileVersion.file_id == file_id)
    )
    current = result.scalar_one_or_none()
    return (current or 0) + 1


async def append_version(session: AsyncSession, file: File, mode: str) -> Optional[int]:
    """
    Best-effort snapshot of the file's current content inside a SAVEPOINT.
    A failure rolls back only the savepoint, is logged, and returns None.
    """
    try:
        async with session.begin_nested():
            number = await next_version_number(session, file.id, mode)
            session.add(
                FileVersion(
                    file_id=file.id,
                    version_number=number,
                    content_hash=file.content_hash,
                    content=file.content,
                )
            )
            await session.flush()
    except SQLAlchemyError as e:
        failure = VersioningFailure(f"failed to write version for {file.file_path}: {e}")
        log.warning(
            "version_write_failed file_id=%s path=%s mode=%s error=%s",
            file.id, file.file_path, mode, failure.message,
        )
        return None
    log.debug("version_written file_id=%s version=%d", file.id, number)
    return number


async def list_versions(
    session: AsyncSession, file_id: uuid.UUID, limit: int = 50
) -> List[FileVersion]:
    """Versions of a file, newest first."""
    result = await session.execute(
        select(FileVersion)
        .where(FileVersion.file_id == file_id)
        .order_by(FileVersion.version_number.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
