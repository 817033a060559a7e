"""Sync API endpoints: pull, push, status and delete per collection."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_session, require_auth
from backend.models.user import User
from backend.schemas.sync import (
    DeleteResponse,
    PullResponse,
    PushRequest,
    PushResponse,
    StatusResponse,
    SyncMetadataResponse,
)
from backend.services.sync_service import (
    PushPayload,
    delete_file_data,
    get_all_status,
    get_file_status,
    parse_file_type,
    pull_file,
    push_file,
)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/status", response_model=StatusResponse)
async def sync_status(
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[User, Depends(require_auth)],
    file_type: Annotated[str | None, Query(alias="fileType")] = None,
) -> StatusResponse:
    """Sync metadata for one file type, or for all of them."""
    if file_type:
        metadata = await get_file_status(session, user.id, parse_file_type(file_type))
        return StatusResponse(data=SyncMetadataResponse.from_model(metadata))

    status = await get_all_status(session, user.id)
    return StatusResponse(
        data={
            str(ft): SyncMetadataResponse.from_model(m) if m is not None else None
            for ft, m in status.items()
        }
    )


@router.get("/{file_type}/pull", response_model=PullResponse)
async def sync_pull(
    file_type: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[User, Depends(require_auth)],
) -> PullResponse:
    """Download the current snapshot of a collection."""
    result = await pull_file(session, user.id, parse_file_type(file_type))
    return PullResponse(
        data=result.data,
        server_timestamp=result.server_timestamp,
        last_sync_time=result.last_sync_time,
    )


@router.post("/{file_type}/push", response_model=PushResponse)
async def sync_push(
    file_type: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[User, Depends(require_auth)],
    body: PushRequest | None = None,
) -> PushResponse:
    """Replace the server snapshot of a collection (last write wins)."""
    ft = parse_file_type(file_type)
    if body is None:
        body = PushRequest()
    payload = PushPayload(
        version=body.version,
        device_id=body.device_id,
        sync_timestamp=body.sync_timestamp,
        data=body.data,
        has_data="data" in body.model_fields_set,
        device_name=body.device_name,
    )
    result = await push_file(session, user.id, ft, payload)
    return PushResponse(
        server_timestamp=result.server_timestamp,
        last_sync_time=result.last_sync_time,
        entries_count=result.entries_count,
        message=result.message,
    )


@router.delete("/{file_type}/data", response_model=DeleteResponse)
async def sync_delete(
    file_type: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[User, Depends(require_auth)],
) -> DeleteResponse:
    """Delete a collection's snapshot and metadata."""
    result = await delete_file_data(session, user.id, parse_file_type(file_type))
    return DeleteResponse(message=result.message)
