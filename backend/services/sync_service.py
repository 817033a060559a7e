"""Sync service: per-user snapshots of the app's collections, last write wins.

Each (user, file type) pair holds one whole-document snapshot plus one metadata
row. Push replaces the snapshot outright; there is no merging and no check of
the client's ``syncTimestamp`` against server state. Both upserts of a push run
in a single transaction, and the push counter is incremented in SQL, so
concurrent pushes to the same pair serialize on the database and never lose an
increment. Whichever push commits last wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, assert_never

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from backend.exceptions import (
    InternalServerError,
    InvalidDataShapeError,
    InvalidFileTypeError,
    MissingFieldError,
    NotFoundError,
)
from backend.models.sync import SyncDocument, SyncMetadata
from backend.services.datetime_service import format_iso, format_timestamp, now_utc

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class SyncFileType(StrEnum):
    """The collections a device can sync."""

    CATEGORIES = "categories"
    LOCATIONS = "locations"
    INVENTORY_ITEMS = "inventoryItems"
    TODO_ITEMS = "todoItems"
    SETTINGS = "settings"


@dataclass
class PushPayload:
    """Fields of a push request, as received."""

    version: str | None
    device_id: str | None
    sync_timestamp: str | None
    data: Any
    has_data: bool
    device_name: str | None = None


@dataclass
class PullResult:
    data: Any
    server_timestamp: str
    last_sync_time: str


@dataclass
class PushResult:
    server_timestamp: str
    last_sync_time: str
    entries_count: int
    message: str


@dataclass
class DeleteResult:
    deleted: bool
    message: str


def parse_file_type(value: str | None) -> SyncFileType:
    """Validate a raw file type string. Raises InvalidFileTypeError."""
    if not value:
        raise InvalidFileTypeError("File type is required")
    try:
        return SyncFileType(value)
    except ValueError:
        raise InvalidFileTypeError("Invalid file type") from None


def validate_push(file_type: SyncFileType, payload: PushPayload) -> int:
    """Check required fields and payload shape; return the number of entries."""
    if (
        not payload.version
        or not payload.device_id
        or not payload.sync_timestamp
        or not payload.has_data
    ):
        raise MissingFieldError(
            "Missing required fields (version, deviceId, syncTimestamp, data)"
        )

    data = payload.data
    match file_type:
        case SyncFileType.SETTINGS:
            if not isinstance(data, dict):
                raise InvalidDataShapeError("Settings must be a single object, not an array")
            return 1
        case (
            SyncFileType.CATEGORIES
            | SyncFileType.LOCATIONS
            | SyncFileType.INVENTORY_ITEMS
            | SyncFileType.TODO_ITEMS
        ):
            if not isinstance(data, list):
                raise InvalidDataShapeError("Data must be an array")
            return len(data)
        case _:
            assert_never(file_type)


async def pull_file(session: AsyncSession, user_id: int, file_type: SyncFileType) -> PullResult:
    """Return the stored snapshot, or an empty one if the pair was never pushed."""
    document = await _get_document(session, user_id, file_type)
    metadata = await get_metadata(session, user_id, file_type)
    return PullResult(
        data=document.payload if document is not None else [],
        server_timestamp=format_timestamp(now_utc()),
        last_sync_time=metadata.last_sync_time if metadata is not None else "",
    )


async def push_file(
    session: AsyncSession,
    user_id: int,
    file_type: SyncFileType,
    payload: PushPayload,
) -> PushResult:
    """Replace the snapshot for (user, file type) and record the push."""
    entries_count = validate_push(file_type, payload)

    now = now_utc()
    server_timestamp = format_timestamp(now)
    stored_at = format_iso(now)
    device_name = payload.device_name or None

    doc_stmt = sqlite_insert(SyncDocument).values(
        user_id=user_id,
        file_type=file_type.value,
        payload=payload.data,
        created_at=stored_at,
        updated_at=stored_at,
    )
    doc_stmt = doc_stmt.on_conflict_do_update(
        index_elements=[SyncDocument.user_id, SyncDocument.file_type],
        set_={
            "payload": doc_stmt.excluded.payload,
            "updated_at": doc_stmt.excluded.updated_at,
        },
    )

    meta_stmt = sqlite_insert(SyncMetadata).values(
        user_id=user_id,
        file_type=file_type.value,
        last_sync_time=server_timestamp,
        last_synced_by_device_id=payload.device_id,
        last_synced_at=server_timestamp,
        client_version=payload.version,
        device_name=device_name,
        total_syncs=1,
    )
    meta_stmt = meta_stmt.on_conflict_do_update(
        index_elements=[SyncMetadata.user_id, SyncMetadata.file_type],
        set_={
            "last_sync_time": meta_stmt.excluded.last_sync_time,
            "last_synced_by_device_id": meta_stmt.excluded.last_synced_by_device_id,
            "last_synced_at": meta_stmt.excluded.last_synced_at,
            "client_version": meta_stmt.excluded.client_version,
            "device_name": func.coalesce(
                meta_stmt.excluded.device_name, SyncMetadata.device_name
            ),
            "total_syncs": SyncMetadata.total_syncs + 1,
        },
    )

    try:
        await session.execute(doc_stmt)
        await session.execute(meta_stmt)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise InternalServerError(
            f"Push of {file_type} for user {user_id} failed: {exc}"
        ) from exc

    logger.info(
        "Pushed %s for user %d from device %s (%d entries)",
        file_type,
        user_id,
        payload.device_id,
        entries_count,
    )
    return PushResult(
        server_timestamp=server_timestamp,
        last_sync_time=server_timestamp,
        entries_count=entries_count,
        message=f"{file_type} synced successfully",
    )


async def get_metadata(
    session: AsyncSession, user_id: int, file_type: SyncFileType
) -> SyncMetadata | None:
    stmt = (
        select(SyncMetadata)
        .where(SyncMetadata.user_id == user_id, SyncMetadata.file_type == file_type.value)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_file_status(
    session: AsyncSession, user_id: int, file_type: SyncFileType
) -> SyncMetadata:
    """Metadata for one pair. Raises NotFoundError if it was never pushed."""
    metadata = await get_metadata(session, user_id, file_type)
    if metadata is None:
        raise NotFoundError("Sync metadata not found for this file type")
    return metadata


async def get_all_status(
    session: AsyncSession, user_id: int
) -> dict[SyncFileType, SyncMetadata | None]:
    """Metadata for every file type; never-pushed types map to None."""
    status: dict[SyncFileType, SyncMetadata | None] = dict.fromkeys(SyncFileType)
    stmt = (
        select(SyncMetadata)
        .where(SyncMetadata.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    for metadata in result.scalars():
        try:
            status[SyncFileType(metadata.file_type)] = metadata
        except ValueError:
            logger.warning(
                "Ignoring sync metadata with unknown file type %r for user %d",
                metadata.file_type,
                user_id,
            )
    return status


async def delete_file_data(
    session: AsyncSession, user_id: int, file_type: SyncFileType
) -> DeleteResult:
    """Remove the snapshot and metadata for a pair. Succeeds even if nothing exists."""
    try:
        doc_result = await session.execute(
            delete(SyncDocument).where(
                SyncDocument.user_id == user_id, SyncDocument.file_type == file_type.value
            )
        )
        await session.execute(
            delete(SyncMetadata).where(
                SyncMetadata.user_id == user_id, SyncMetadata.file_type == file_type.value
            )
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise InternalServerError(
            f"Delete of {file_type} for user {user_id} failed: {exc}"
        ) from exc

    deleted = (doc_result.rowcount or 0) > 0
    if deleted:
        logger.info("Deleted %s data for user %d", file_type, user_id)
        return DeleteResult(deleted=True, message=f"All {file_type} data has been deleted")
    return DeleteResult(deleted=False, message=f"No {file_type} data found to delete")


async def _get_document(
    session: AsyncSession, user_id: int, file_type: SyncFileType
) -> SyncDocument | None:
    stmt = (
        select(SyncDocument)
        .where(SyncDocument.user_id == user_id, SyncDocument.file_type == file_type.value)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
