"""File API routes: upload, get/download, list, delete, versions, metadata, sync log."""

import logging
import uuid
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Annotated, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from notesync.auth.dependencies import get_current_user
from notesync.config import get_settings
from notesync.files.models import (
    FileContentResponse,
    FileInfo,
    FileMetadataResponse,
    FileVersionResponse,
    SyncOperationResponse,
)
from notesync.files.service import FileService
from notesync.limiter import limiter
from notesync.users.models import User

router = APIRouter(prefix="/api", tags=["files"])
log = logging.getLogger(__name__)


def get_file_service(request: Request) -> FileService:
    """The FileService created at startup (see main.lifespan)."""
    return request.app.state.file_service


def _http_date(value: datetime) -> str:
    """RFC 7231 date for Last-Modified; naive values are treated as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


@router.post("/files/upload", response_model=FileInfo, status_code=status.HTTP_201_CREATED)
@limiter.limit("600/minute")
async def upload_file(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    workspace_id: Annotated[uuid.UUID, Query()],
    path: Annotated[str, Query(min_length=1)],
    last_modified: Annotated[Optional[datetime], Query()] = None,
    client_id: Annotated[Optional[str], Query(max_length=100)] = None,
) -> FileInfo:
    """
    Upload a file. Body: raw file bytes. Query: workspace_id, path, optional
    last_modified (ISO 8601, default now) and client_id. Same path overwrites.
    """
    max_bytes = get_settings().max_upload_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload larger than {max_bytes} bytes",
        )
    body = await request.body()
    if len(body) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload larger than {max_bytes} bytes",
        )
    return await service.upload_file(
        workspace_id,
        path,
        body,
        current_user.id,
        last_modified=last_modified,
        client_id=client_id,
    )


@router.get("/files/{workspace_id}/{file_path:path}", response_model=None)
@limiter.limit("600/minute")
async def get_file(
    request: Request,
    workspace_id: uuid.UUID,
    file_path: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    content: bool = False,
    download: bool = False,
) -> Response | FileInfo | FileContentResponse:
    """
    File metadata. ?content=true returns JSON with base64 content,
    ?download=true returns the raw bytes as an attachment.
    """
    if download:
        file = await service.get_file_content(workspace_id, file_path, current_user.id)
        filename = file.file_path.rsplit("/", 1)[-1]
        return Response(
            content=file.content,
            media_type=file.mime_type,
            headers={
                "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
                "Last-Modified": _http_date(file.last_modified),
                "ETag": f'"{file.content_hash}"',
            },
        )
    if content:
        file = await service.get_file_content(workspace_id, file_path, current_user.id)
        return FileContentResponse.from_file(file)
    return await service.get_file(workspace_id, file_path, current_user.id)


@router.delete("/files/{workspace_id}/{file_path:path}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("600/minute")
async def delete_file(
    request: Request,
    workspace_id: uuid.UUID,
    file_path: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    client_id: Annotated[Optional[str], Query(max_length=100)] = None,
) -> Response:
    """Delete a file; its size is returned to the workspace quota."""
    await service.delete_file(workspace_id, file_path, current_user.id, client_id=client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/workspaces/{workspace_id}/files")
@limiter.limit("60/minute")
async def list_files(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> dict:
    """All files in the workspace ordered by path: {"files": [...], "count": n}."""
    files = await service.list_files(workspace_id, current_user.id)
    return {"files": [f.model_dump(mode="json") for f in files], "count": len(files)}


@router.get(
    "/workspaces/{workspace_id}/files/versions", response_model=List[FileVersionResponse]
)
@limiter.limit("60/minute")
async def list_file_versions(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    path: Annotated[str, Query(min_length=1)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> List[FileVersionResponse]:
    """Version history for one file, newest first."""
    return await service.list_versions(workspace_id, path, current_user.id, limit=limit)


@router.get(
    "/workspaces/{workspace_id}/files/metadata", response_model=Optional[FileMetadataResponse]
)
@limiter.limit("60/minute")
async def get_file_metadata(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    path: Annotated[str, Query(min_length=1)],
) -> Optional[FileMetadataResponse]:
    """Extracted metadata; null until background extraction has run."""
    return await service.get_metadata(workspace_id, path, current_user.id)


@router.get(
    "/workspaces/{workspace_id}/sync-operations", response_model=List[SyncOperationResponse]
)
@limiter.limit("60/minute")
async def list_sync_operations(
    request: Request,
    workspace_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    limit: Annotated[Optional[int], Query(ge=1, le=500)] = None,
) -> List[SyncOperationResponse]:
    """Audit trail of sync operations, newest first."""
    limit = limit or get_settings().default_sync_operations_limit
    return await service.list_sync_operations(workspace_id, current_user.id, limit=limit)
