"""Object storage gateway for uploaded images (S3-compatible, in-memory for tests)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from backend.exceptions import InternalServerError

if TYPE_CHECKING:
    from backend.config import Settings

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Defines the operations the API needs from object storage."""

    async def upload(self, key: str, content_type: str, data: bytes) -> None: ...

    def public_url(self, key: str) -> str: ...


@dataclass
class InMemoryObjectStorage:
    """Test double keeping uploaded objects in a dict."""

    base_url: str = "https://storage.test/bucket"
    objects: dict[str, tuple[str, bytes]] = field(default_factory=dict)

    async def upload(self, key: str, content_type: str, data: bytes) -> None:
        self.objects[key] = (content_type, data)

    def public_url(self, key: str) -> str:
        return f"{self.base_url.rstrip('/')}/{key}"


@dataclass
class S3ObjectStorage:
    """S3-compatible storage client (Backblaze B2 and friends).

    Uses path-style addressing, so public URLs take the form
    ``<endpoint>/<bucket>/<key>`` unless ``public_base_url`` is set.
    """

    endpoint: str
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self) -> None:
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    async def upload(self, key: str, content_type: str, data: bytes) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise InternalServerError(f"Upload of {key} to {self.bucket} failed: {exc}") from exc
        logger.info("Uploaded %s (%d bytes) to bucket %s", key, len(data), self.bucket)

    def public_url(self, key: str) -> str:
        base = self.public_base_url or f"{self.endpoint.rstrip('/')}/{self.bucket}"
        return f"{base.rstrip('/')}/{key}"


def create_storage(settings: Settings) -> ObjectStorage:
    """Build the storage gateway selected by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory object storage; uploads will not persist")
        return InMemoryObjectStorage()
    if not settings.s3_endpoint or not settings.s3_bucket:
        raise InternalServerError("S3_ENDPOINT and S3_BUCKET must be configured")
    return S3ObjectStorage(
        endpoint=settings.s3_endpoint,
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        public_base_url=settings.s3_public_base_url,
    )
