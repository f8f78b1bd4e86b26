"""Workspace routes: create, list, get, storage info, reconcile."""

import logging
import uuid
from typing import Annotated, List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.auth.dependencies import get_current_user
from notesync.db.session import get_db
from notesync.limiter import limiter
from notesync.users.models import User
from notesync.workspaces import service
from notesync.workspaces.models import WorkspaceCreate, WorkspaceResponse, WorkspaceStorageInfo

router = APIRouter(prefix="/api/workspaces", tags=["workspaces"])
log = logging.getLogger(__name__)


@router.post("", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_workspace(
    request: Request,
    body: WorkspaceCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceResponse:
    """Create a workspace; storage limit and workspace count follow the user's tier."""
    workspace = await service.create_workspace(
        session, body.name, current_user.id, current_user.user_tier
    )
    return WorkspaceResponse.model_validate(workspace)


@router.get("")
@limiter.limit("60/minute")
async def list_workspaces(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Workspaces owned by the current user: {"workspaces": [...], "count": n}."""
    workspaces = await service.list_workspaces(session, current_user.id)
    items: List[dict] = [
        WorkspaceResponse.model_validate(w).model_dump(mode="json") for w in workspaces
    ]
    return {"workspaces": items, "count": len(items)}


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
@limiter.limit("60/minute")
async def get_workspace(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceResponse:
    """Workspace by id (404 if missing or owned by someone else)."""
    workspace = await service.get_workspace(session, workspace_id, current_user.id)
    return WorkspaceResponse.model_validate(workspace)


@router.get("/{workspace_id}/storage", response_model=WorkspaceStorageInfo)
@limiter.limit("60/minute")
async def get_workspace_storage(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceStorageInfo:
    """Accounted vs. actual storage for the workspace."""
    return await service.get_storage_info(session, workspace_id, current_user.id)


@router.post("/{workspace_id}/storage/reconcile", response_model=WorkspaceStorageInfo)
@limiter.limit("10/minute")
async def reconcile_workspace_storage(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> WorkspaceStorageInfo:
    """Reset the usage counter to the actual sum of file sizes."""
    return await service.reconcile_storage(session, workspace_id, current_user.id)
