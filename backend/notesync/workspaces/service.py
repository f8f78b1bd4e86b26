"""Workspace service: create, list, fetch, storage info, usage reconciliation."""

import logging
import uuid
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.errors import NotFound, WorkspaceLimitExceeded
from notesync.files.quota import get_storage_usage, set_usage
from notesync.users.models import UserTier
from notesync.workspaces.access import authorize
from notesync.workspaces.models import Workspace, WorkspaceStorageInfo

log = logging.getLogger(__name__)


async def count_workspaces(session: AsyncSession, principal_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count(Workspace.id)).where(Workspace.user_id == principal_id)
    )
    return result.scalar_one()


async def create_workspace(
    session: AsyncSession, name: str, principal_id: uuid.UUID, tier: UserTier
) -> Workspace:
    """
    Create a workspace whose storage limit comes from the owner's tier.
    Raises WorkspaceLimitExceeded when the tier's workspace count is reached.
    Caller must commit.
    """
    current = await count_workspaces(session, principal_id)
    maximum = tier.max_workspaces
    if maximum > 0 and current >= maximum:
        log.warning(
            "Workspace limit exceeded user=%s tier=%s current=%d max=%d",
            principal_id, tier.value, current, maximum,
        )
        raise WorkspaceLimitExceeded(tier.value, current, maximum)
    workspace = Workspace(
        user_id=principal_id,
        name=name,
        storage_limit_bytes=tier.storage_limit_bytes,
        storage_used_bytes=0,
    )
    session.add(workspace)
    await session.flush()
    await session.refresh(workspace)
    log.info(
        "create_workspace id=%s user=%s name=%r storage_limit=%d",
        workspace.id, principal_id, name, workspace.storage_limit_bytes,
    )
    return workspace


async def list_workspaces(session: AsyncSession, principal_id: uuid.UUID) -> List[Workspace]:
    """Workspaces owned by the principal, newest first."""
    result = await session.execute(
        select(Workspace)
        .where(Workspace.user_id == principal_id)
        .order_by(Workspace.created_at.desc(), Workspace.name)
    )
    workspaces = list(result.scalars().all())
    log.debug("list_workspaces user=%s count=%d", principal_id, len(workspaces))
    return workspaces


async def get_workspace(
    session: AsyncSession, workspace_id: uuid.UUID, principal_id: uuid.UUID
) -> Workspace:
    """Workspace by id, through the access guard."""
    return await authorize(session, workspace_id, principal_id)


async def get_storage_info(
    session: AsyncSession, workspace_id: uuid.UUID, principal_id: uuid.UUID
) -> WorkspaceStorageInfo:
    """Accounted usage, file count and actual bytes for the workspace."""
    await authorize(session, workspace_id, principal_id)
    info = await get_storage_usage(session, workspace_id)
    if info is None:
        raise NotFound("Workspace not found", resource="workspace")
    log.info(
        "storage_info workspace=%s used=%d limit=%d files=%d actual=%d",
        workspace_id, info.storage_used_bytes, info.storage_limit_bytes,
        info.file_count, info.actual_storage_used,
    )
    return info


async def reconcile_storage(
    session: AsyncSession, workspace_id: uuid.UUID, principal_id: uuid.UUID
) -> WorkspaceStorageInfo:
    """Reset the running counter to the actual sum of file sizes. Caller must commit."""
    info = await get_storage_info(session, workspace_id, principal_id)
    drift = info.storage_used_bytes - info.actual_storage_used
    if drift:
        log.warning(
            "storage_drift workspace=%s accounted=%d actual=%d drift=%d",
            workspace_id, info.storage_used_bytes, info.actual_storage_used, drift,
        )
        await set_usage(session, workspace_id, info.actual_storage_used)
    return info.model_copy(update={"storage_used_bytes": info.actual_storage_used})
