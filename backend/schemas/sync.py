"""Sync request and response schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from backend.schemas.auth import CamelModel

if TYPE_CHECKING:
    from backend.models.sync import SyncMetadata


class PushRequest(CamelModel):
    """Body of a push request."""

    version: str | None = None
    device_id: str | None = None
    sync_timestamp: str | None = None
    data: Any = None
    device_name: str | None = None


class SyncMetadataResponse(CamelModel):
    user_id: int
    file_type: str
    last_sync_time: str
    last_synced_by_device_id: str
    last_synced_at: str
    client_version: str | None = None
    device_name: str | None = None
    total_syncs: int

    @classmethod
    def from_model(cls, metadata: SyncMetadata) -> SyncMetadataResponse:
        return cls(
            user_id=metadata.user_id,
            file_type=metadata.file_type,
            last_sync_time=metadata.last_sync_time,
            last_synced_by_device_id=metadata.last_synced_by_device_id,
            last_synced_at=metadata.last_synced_at,
            client_version=metadata.client_version,
            device_name=metadata.device_name,
            total_syncs=metadata.total_syncs,
        )


class PullResponse(CamelModel):
    success: Literal[True] = True
    data: Any
    server_timestamp: str
    last_sync_time: str


class PushResponse(CamelModel):
    success: Literal[True] = True
    server_timestamp: str
    last_sync_time: str
    entries_count: int
    message: str


class StatusResponse(CamelModel):
    """Metadata for one file type, or a map over all file types (null if never synced)."""

    success: Literal[True] = True
    data: SyncMetadataResponse | dict[str, SyncMetadataResponse | None]


class DeleteResponse(CamelModel):
    success: Literal[True] = True
    message: str
