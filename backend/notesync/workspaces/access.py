"""Access guard: the requesting principal must own the workspace."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.errors import AccessDenied, NotFound
from notesync.workspaces.models import Workspace

log = logging.getLogger(__name__)


async def authorize(
    session: AsyncSession, workspace_id: uuid.UUID, principal_id: uuid.UUID
) -> Workspace:
    """
    Load the workspace fresh from the database and check ownership.
    Raises NotFound if it does not exist, AccessDenied if another user owns it.
    """
    result = await session.execute(
        select(Workspace)
        .where(Workspace.id == workspace_id)
        .execution_options(populate_existing=True)
    )
    workspace = result.scalar_one_or_none()
    if workspace is None:
        log.info("authorize workspace=%s principal=%s: not found", workspace_id, principal_id)
        raise NotFound("Workspace not found", resource="workspace")
    if workspace.user_id != principal_id:
        log.warning(
            "Access denied: workspace belongs to different user workspace=%s owner=%s principal=%s",
            workspace_id, workspace.user_id, principal_id,
        )
        raise AccessDenied()
    return workspace
