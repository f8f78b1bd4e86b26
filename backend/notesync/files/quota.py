"""Storage quota: projection arithmetic and the workspace usage counter."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.files.models import File
from notesync.workspaces.models import Workspace, WorkspaceStorageInfo

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaCheck:
    """Outcome of a quota precheck."""

    allowed: bool
    projected_usage: int
    limit: int


def precheck(used: int, limit: int, incoming_size: int, existing_size: int = 0) -> QuotaCheck:
    """
    Project usage after writing incoming_size bytes over a file of existing_size bytes
    (0 for a new path). Overwrites are not double-counted.
    """
    projected = used - existing_size + incoming_size
    return QuotaCheck(allowed=projected <= limit, projected_usage=projected, limit=limit)


def release(used: int, deleted_size: int) -> int:
    """Usage after deleting a file of deleted_size bytes; never below zero."""
    return max(0, used - deleted_size)


async def commit_usage_delta(session: AsyncSession, workspace_id: uuid.UUID, delta: int) -> bool:
    """
    Atomically add delta to the workspace counter, only if the result stays within the limit.
    Returns False (nothing written) when the limit would be exceeded. Caller owns the transaction.
    """
    new_used = Workspace.storage_used_bytes + delta
    result = await session.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id, new_used <= Workspace.storage_limit_bytes)
        .values(storage_used_bytes=new_used, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_usage(session: AsyncSession, workspace_id: uuid.UUID, size: int) -> None:
    """Subtract size from the workspace counter, clamped at zero. Caller owns the transaction."""
    remaining = Workspace.storage_used_bytes - size
    await session.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id)
        .values(
            storage_used_bytes=case((remaining < 0, 0), else_=remaining),
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )


async def set_usage(session: AsyncSession, workspace_id: uuid.UUID, used: int) -> None:
    """Overwrite the counter (reconciliation only). Caller owns the transaction."""
    await session.execute(
        update(Workspace)
        .where(Workspace.id == workspace_id)
        .values(storage_used_bytes=max(0, used), updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )


async def get_storage_usage(
    session: AsyncSession, workspace_id: uuid.UUID
) -> Optional[WorkspaceStorageInfo]:
    """Accounted usage plus the actual sum of file sizes; None if the workspace is missing."""
    result = await session.execute(
        select(
            Workspace.storage_limit_bytes,
            Workspace.storage_used_bytes,
            func.count(File.id),
            func.coalesce(func.sum(File.size_bytes), 0),
        )
        .outerjoin(File, File.workspace_id == Workspace.id)
        .where(Workspace.id == workspace_id)
        .group_by(Workspace.id, Workspace.storage_limit_bytes, Workspace.storage_used_bytes)
    )
    row = result.first()
    if row is None:
        return None
    return WorkspaceStorageInfo(
        storage_limit_bytes=row[0],
        storage_used_bytes=row[1],
        file_count=row[2],
        actual_storage_used=int(row[3]),
    )
