"""
Metadata extractor: best-effort background pass over an uploaded file.

Classifies the format from the path extension, counts whitespace-delimited
words and upserts a file_metadata row. Block and property parsing are left
empty; richer parsers can fill parsed_blocks/properties later without
changing the upload contract.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from notesync.errors import MetadataFailure
from notesync.files.models import File, FileFormat, FileMetadata
from notesync.files.paths import path_extension

log = logging.getLogger(__name__)

_FORMAT_BY_EXTENSION = {
    ".md": FileFormat.MARKDOWN,
    ".markdown": FileFormat.MARKDOWN,
    ".org": FileFormat.ORGMODE,
}


def detect_file_format(file_path: str) -> FileFormat:
    """markdown / orgmode by extension (case-insensitive), plaintext otherwise."""
    return _FORMAT_BY_EXTENSION.get(path_extension(file_path), FileFormat.PLAINTEXT)


def count_words(content: bytes) -> int:
    """Number of whitespace-delimited tokens in the (UTF-8) content."""
    return len(content.decode("utf-8", errors="replace").split())


async def upsert_metadata(
    session: AsyncSession,
    file_id: uuid.UUID,
    file_format: FileFormat,
    word_count: int,
    parsed_blocks: Optional[Any] = None,
    properties: Optional[Any] = None,
) -> FileMetadata:
    """Insert or replace the metadata row for a file. Caller must commit."""
    now = datetime.now(timezone.utc)
    row = await session.get(FileMetadata, file_id)
    if row:
        row.format = file_format.value
        row.parsed_blocks = parsed_blocks
        row.properties = properties
        row.word_count = word_count
        row.last_parsed = now
    else:
        row = FileMetadata(
            file_id=file_id,
            format=file_format.value,
            parsed_blocks=parsed_blocks,
            properties=properties,
            word_count=word_count,
            last_parsed=now,
        )
        session.add(row)
    await session.flush()
    return row


async def get_metadata(session: AsyncSession, file_id: uuid.UUID) -> Optional[FileMetadata]:
    """Metadata row for a file, or None if extraction has not run (yet)."""
    return await session.get(FileMetadata, file_id)


class MetadataExtractor:
    """
    Fire-and-forget scheduler for metadata extraction.

    Each upload gets its own asyncio task and database session; there is no
    pool, backpressure or cancellation. Failures go to the log only.
    """

    def __init__(self, session_factory: Callable) -> None:
        self._session_factory = session_factory
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, file_id: uuid.UUID) -> asyncio.Task:
        """Start extraction in the background and return immediately."""
        task = asyncio.create_task(self.extract(file_id))
        # Keep a reference until done so the task is not garbage-collected mid-flight
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def extract(self, file_id: uuid.UUID) -> None:
        """
        Classify, count and store from the file's current row, read in the same
        transaction as the write, so a late task never stores stale counts. Never raises.
        """
        try:
            async with self._session_factory() as session:
                file = await session.get(File, file_id)
                if file is None:
                    log.debug("metadata_skipped file_id=%s: file no longer exists", file_id)
                    return
                file_format = detect_file_format(file.file_path)
                words = count_words(file.content)
                await upsert_metadata(session, file_id, file_format, words)
            log.debug(
                "metadata_stored file_id=%s format=%s words=%d",
                file_id, file_format.value, words,
            )
        except Exception as e:
            failure = MetadataFailure(f"failed to store metadata for file {file_id}: {e}")
            log.warning("metadata_failed file_id=%s error=%s", file_id, failure.message)

    async def drain(self) -> None:
        """Wait for all scheduled extractions to finish (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
