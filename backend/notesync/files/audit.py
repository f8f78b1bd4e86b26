"""Sync audit log: one row per attempted mutation, pending until finalized."""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.files.models import OperationStatus, OperationType, SyncOperation

log = logging.getLogger(__name__)

_CLIENT_ID_MAX = 100


async def open_operation(
    session: AsyncSession,
    workspace_id: uuid.UUID,
    operation_type: OperationType,
    client_id: Optional[str] = None,
    file_id: Optional[uuid.UUID] = None,
) -> uuid.UUID:
    """Record a pending operation and return its id. Caller must commit."""
    op = SyncOperation(
        workspace_id=workspace_id,
        file_id=file_id,
        operation_type=operation_type.value,
        client_id=client_id[:_CLIENT_ID_MAX] if client_id else None,
        status=OperationStatus.PENDING.value,
    )
    session.add(op)
    await session.flush()
    log.debug(
        "sync_op_open id=%s workspace=%s type=%s client=%s",
        op.id, workspace_id, operation_type.value, op.client_id,
    )
    return op.id


async def finalize_operation(
    session: AsyncSession,
    operation_id: uuid.UUID,
    status: OperationStatus,
    error: Optional[str] = None,
    file_id: Optional[uuid.UUID] = None,
) -> None:
    """Move a pending operation to success or failed. Caller must commit."""
    values = {"status": status.value, "error_message": error}
    if file_id is not None:
        values["file_id"] = file_id
    await session.execute(
        update(SyncOperation)
        .where(
            SyncOperation.id == operation_id,
            SyncOperation.status == OperationStatus.PENDING.value,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    log.debug("sync_op_finalize id=%s status=%s", operation_id, status.value)


async def list_operations(
    session: AsyncSession, workspace_id: uuid.UUID, limit: int = 50
) -> List[SyncOperation]:
    """Most recent operations for a workspace, newest first."""
    result = await session.execute(
        select(SyncOperation)
        .where(SyncOperation.workspace_id == workspace_id)
        .order_by(SyncOperation.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
