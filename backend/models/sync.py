"""Sync snapshot and sync metadata models.

Both tables are keyed by ``(user_id, file_type)``; the unique constraint is what
lets push use ``INSERT ... ON CONFLICT DO UPDATE``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base

if TYPE_CHECKING:
    from backend.models.user import User


class SyncDocument(Base):
    """Current snapshot of one collection for one user."""

    __tablename__ = "sync_documents"
    __table_args__ = (UniqueConstraint("user_id", "file_type", name="uq_sync_documents_owner"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    file_type: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)

    user: Mapped[User] = relationship(back_populates="sync_documents")


class SyncMetadata(Base):
    """Bookkeeping for the most recent push of one collection."""

    __tablename__ = "sync_metadata"
    __table_args__ = (UniqueConstraint("user_id", "file_type", name="uq_sync_metadata_owner"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    file_type: Mapped[str] = mapped_column(String, nullable=False)
    last_sync_time: Mapped[str] = mapped_column(Text, nullable=False)
    last_synced_by_device_id: Mapped[str] = mapped_column(Text, nullable=False)
    last_synced_at: Mapped[str] = mapped_column(Text, nullable=False)
    client_version: Mapped[str | None] = mapped_column(Text, nullable=True)
    device_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_syncs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped[User] = relationship(back_populates="sync_metadata")
