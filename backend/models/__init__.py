"""SQLAlchemy ORM models for Pantry Sync."""

from backend.models.base import Base
from backend.models.sync import SyncDocument, SyncMetadata
from backend.models.user import User

__all__ = [
    "Base",
    "SyncDocument",
    "SyncMetadata",
    "User",
]
