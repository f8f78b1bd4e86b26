"""
File sync service: upload pipeline, reads, listing, delete and history.

Upload runs strictly in this order:

    authorize -> quota precheck -> audit open -> transaction
    (upsert file, atomic usage commit, best-effort version) -> audit finalize
    -> background metadata extraction

Only failures inside the transaction roll back and surface to the caller.
Version writes, audit finalization after commit and metadata extraction are
advisory: their failures are logged and never change the result.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from notesync.config import Settings, get_settings
from notesync.db.session import get_session
from notesync.errors import NotFound, QuotaExceeded, TransactionFailure
from notesync.files import audit
from notesync.files.content_store import (
    compute_hash,
    delete_file_row,
    detect_mime_type,
    get_file,
    get_file_size,
    list_files,
    upsert_file,
)
from notesync.files.metadata import MetadataExtractor, get_metadata
from notesync.files.models import (
    FileInfo,
    FileMetadataResponse,
    FileVersionResponse,
    FileWithContent,
    OperationStatus,
    OperationType,
    SyncOperationResponse,
)
from notesync.files.paths import normalize_logical_path
from notesync.files.quota import commit_usage_delta, precheck, release_usage
from notesync.files.versions import append_version, list_versions
from notesync.workspaces.access import authorize
from notesync.workspaces.models import Workspace

log = logging.getLogger(__name__)


class FileService:
    """Sync engine entry point used by the HTTP layer."""

    def __init__(
        self,
        session_factory: Callable = get_session,
        settings: Optional[Settings] = None,
        extractor: Optional[MetadataExtractor] = None,
    ) -> None:
        settings = settings or get_settings()
        self._session_factory = session_factory
        self.version_mode = settings.version_mode
        self.async_metadata = settings.async_metadata
        self.extractor = extractor or MetadataExtractor(session_factory)

    async def upload_file(
        self,
        workspace_id: uuid.UUID,
        file_path: str,
        content: bytes,
        principal_id: uuid.UUID,
        last_modified: Optional[datetime] = None,
        client_id: Optional[str] = None,
    ) -> FileInfo:
        """
        Store content at (workspace, path) and return the durable file projection.
        Raises NotFound, AccessDenied, InvalidPath, QuotaExceeded or TransactionFailure.
        """
        path = normalize_logical_path(file_path)
        size = len(content)
        log.info(
            "upload_file start workspace=%s user=%s path=%s size=%d client=%s",
            workspace_id, principal_id, path, size, client_id,
        )
        content_hash = compute_hash(content)

        # Precheck rejections create no audit row
        async with self._session_factory() as session:
            workspace = await authorize(session, workspace_id, principal_id)
            existing_size = await get_file_size(session, workspace_id, path)
            check = precheck(
                workspace.storage_used_bytes, workspace.storage_limit_bytes, size, existing_size
            )
        if not check.allowed:
            log.warning(
                "Storage limit exceeded workspace=%s current_usage=%d needed_usage=%d limit=%d",
                workspace_id, workspace.storage_used_bytes, check.projected_usage, check.limit,
            )
            raise QuotaExceeded(check.projected_usage, check.limit)

        mime_type = detect_mime_type(path)
        op_id = await self._open_operation(workspace_id, OperationType.UPLOAD, client_id)

        try:
            async with self._session_factory() as session:
                # Re-read inside the transaction; the counter update below is the real gate
                existing_size = await get_file_size(session, workspace_id, path)
                file = await upsert_file(
                    session,
                    workspace_id,
                    path,
                    content,
                    content_hash,
                    mime_type,
                    last_modified or datetime.now(timezone.utc),
                )
                info = FileInfo.model_validate(file)
                delta = size - existing_size
                if not await commit_usage_delta(session, workspace_id, delta):
                    used, limit = await self._read_usage(session, workspace_id)
                    raise QuotaExceeded(used + delta, limit)
                await append_version(session, file, self.version_mode)
        except QuotaExceeded as e:
            log.warning(
                "upload_file rejected at commit workspace=%s path=%s needed=%d limit=%d",
                workspace_id, path, e.needed, e.limit,
            )
            await self._finalize_operation(op_id, OperationStatus.FAILED, error=e.message)
            raise
        except SQLAlchemyError as e:
            log.error("upload_file transaction failed workspace=%s path=%s: %s", workspace_id, path, e)
            await self._finalize_operation(op_id, OperationStatus.FAILED, error=str(e))
            raise TransactionFailure(f"failed to upload file: {e}", operation="upload") from e

        await self._finalize_operation(op_id, OperationStatus.SUCCESS, file_id=info.id)

        if self.async_metadata:
            self.extractor.schedule(info.id)

        log.info(
            "upload_file done workspace=%s path=%s file_id=%s size=%d hash=%s",
            workspace_id, path, info.id, info.size_bytes, info.content_hash,
        )
        return info

    async def get_file(
        self, workspace_id: uuid.UUID, file_path: str, principal_id: uuid.UUID
    ) -> FileInfo:
        """Metadata-only view of a file."""
        path = normalize_logical_path(file_path)
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            file = await get_file(session, workspace_id, path)
            if file is None:
                raise NotFound("File not found", resource="file")
            return FileInfo.model_validate(file)

    async def get_file_content(
        self, workspace_id: uuid.UUID, file_path: str, principal_id: uuid.UUID
    ) -> FileWithContent:
        """File view including raw bytes."""
        path = normalize_logical_path(file_path)
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            file = await get_file(session, workspace_id, path)
            if file is None:
                raise NotFound("File not found", resource="file")
            log.info("download_file workspace=%s path=%s size=%d", workspace_id, path, file.size_bytes)
            return FileWithContent.model_validate(file)

    async def list_files(
        self, workspace_id: uuid.UUID, principal_id: uuid.UUID
    ) -> List[FileInfo]:
        """All files in the workspace, ordered by path."""
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            files = await list_files(session, workspace_id)
            result = [FileInfo.model_validate(f) for f in files]
        log.info("list_files workspace=%s count=%d", workspace_id, len(result))
        return result

    async def delete_file(
        self,
        workspace_id: uuid.UUID,
        file_path: str,
        principal_id: uuid.UUID,
        client_id: Optional[str] = None,
    ) -> None:
        """Delete the file and give its bytes back to the workspace quota."""
        path = normalize_logical_path(file_path)
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            if await get_file(session, workspace_id, path) is None:
                raise NotFound("File not found", resource="file")

        op_id = await self._open_operation(workspace_id, OperationType.DELETE, client_id)
        try:
            async with self._session_factory() as session:
                size = await get_file_size(session, workspace_id, path)
                if not await delete_file_row(session, workspace_id, path):
                    raise NotFound("File not found", resource="file")
                await release_usage(session, workspace_id, size)
        except NotFound as e:
            await self._finalize_operation(op_id, OperationStatus.FAILED, error=e.message)
            raise
        except SQLAlchemyError as e:
            log.error("delete_file transaction failed workspace=%s path=%s: %s", workspace_id, path, e)
            await self._finalize_operation(op_id, OperationStatus.FAILED, error=str(e))
            raise TransactionFailure(f"failed to delete file: {e}", operation="delete") from e

        await self._finalize_operation(op_id, OperationStatus.SUCCESS)
        log.info("delete_file workspace=%s path=%s size=%d", workspace_id, path, size)

    async def list_versions(
        self,
        workspace_id: uuid.UUID,
        file_path: str,
        principal_id: uuid.UUID,
        limit: int = 50,
    ) -> List[FileVersionResponse]:
        """Version history of a file, newest first."""
        path = normalize_logical_path(file_path)
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            file = await get_file(session, workspace_id, path)
            if file is None:
                raise NotFound("File not found", resource="file")
            versions = await list_versions(session, file.id, limit)
            return [FileVersionResponse.model_validate(v) for v in versions]

    async def get_metadata(
        self, workspace_id: uuid.UUID, file_path: str, principal_id: uuid.UUID
    ) -> Optional[FileMetadataResponse]:
        """Extracted metadata, or None if extraction has not run (yet)."""
        path = normalize_logical_path(file_path)
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            file = await get_file(session, workspace_id, path)
            if file is None:
                raise NotFound("File not found", resource="file")
            row = await get_metadata(session, file.id)
            return FileMetadataResponse.model_validate(row) if row else None

    async def list_sync_operations(
        self, workspace_id: uuid.UUID, principal_id: uuid.UUID, limit: int = 50
    ) -> List[SyncOperationResponse]:
        """Audit trail for the workspace, newest first."""
        async with self._session_factory() as session:
            await authorize(session, workspace_id, principal_id)
            ops = await audit.list_operations(session, workspace_id, limit)
            return [SyncOperationResponse.model_validate(op) for op in ops]

    async def drain(self) -> None:
        """Wait for pending background metadata extraction."""
        await self.extractor.drain()

    async def _open_operation(
        self, workspace_id: uuid.UUID, operation_type: OperationType, client_id: Optional[str]
    ) -> uuid.UUID:
        try:
            async with self._session_factory() as session:
                return await audit.open_operation(session, workspace_id, operation_type, client_id)
        except SQLAlchemyError as e:
            log.error("sync_op_open failed workspace=%s type=%s: %s", workspace_id, operation_type.value, e)
            raise TransactionFailure(
                f"failed to create sync operation: {e}", operation=operation_type.value
            ) from e

    async def _finalize_operation(
        self,
        op_id: uuid.UUID,
        status: OperationStatus,
        error: Optional[str] = None,
        file_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Advisory: a failure here is logged and never changes the operation's result."""
        try:
            async with self._session_factory() as session:
                await audit.finalize_operation(session, op_id, status, error=error, file_id=file_id)
        except SQLAlchemyError as e:
            log.warning("sync_op_finalize_failed id=%s status=%s error=%s", op_id, status.value, e)

    @staticmethod
    async def _read_usage(session, workspace_id: uuid.UUID) -> tuple[int, int]:
        result = await session.execute(
            select(Workspace.storage_used_bytes, Workspace.storage_limit_bytes).where(
                Workspace.id == workspace_id
            )
        )
        row = result.one()
        return row[0], row[1]
