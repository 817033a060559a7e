"""Integration tests for image upload."""

from __future__ import annotations

import base64
import io
import re
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from backend.exceptions import InternalServerError
from tests.conftest import auth_headers, create_test_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from httpx import AsyncClient

    from backend.config import Settings
    from backend.services.storage_service import InMemoryObjectStorage

_URL_RE = re.compile(r"https://storage\.test/bucket/([0-9a-f]{32})\.(png|jpg|webp)")


def make_image(width: int, height: int, image_format: str = "PNG") -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color=(10, 120, 200)).save(out, format=image_format)
    return out.getvalue()


def stored_key(url: str) -> str:
    match = _URL_RE.fullmatch(url)
    assert match is not None, url
    return f"{match.group(1)}.{match.group(2)}"


class TestBase64Upload:
    @pytest.mark.asyncio
    async def test_upload_png(
        self, client: AsyncClient, token: str, storage: InMemoryObjectStorage
    ) -> None:
        raw = make_image(20, 10)
        resp = await client.post(
            "/api/images/upload",
            json={"image": base64.b64encode(raw).decode()},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        key = stored_key(resp.json()["url"])
        assert key.endswith(".png")
        assert storage.objects[key] == ("image/png", raw)

    @pytest.mark.asyncio
    async def test_upload_data_uri_with_resize(
        self, client: AsyncClient, token: str, storage: InMemoryObjectStorage
    ) -> None:
        encoded = base64.b64encode(make_image(600, 300, "JPEG")).decode()
        resp = await client.post(
            "/api/images/upload?resize=150",
            json={"image": f"data:image/jpeg;base64,{encoded}"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        key = stored_key(resp.json()["url"])
        content_type, data = storage.objects[key]
        assert content_type == "image/jpeg"
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (150, 75)

    @pytest.mark.asyncio
    async def test_content_type_follows_decoded_format(
        self, client: AsyncClient, token: str, storage: InMemoryObjectStorage
    ) -> None:
        raw = make_image(8, 8, "JPEG")
        resp = await client.post(
            "/api/images/upload",
            json={"image": f"data:image/png;base64,{base64.b64encode(raw).decode()}"},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        key = stored_key(resp.json()["url"])
        assert key.endswith(".jpg")
        assert storage.objects[key] == ("image/jpeg", raw)

    @pytest.mark.asyncio
    async def test_missing_image(self, client: AsyncClient, token: str) -> None:
        resp = await client.post("/api/images/upload", json={}, headers=auth_headers(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No image provided"

    @pytest.mark.asyncio
    async def test_not_an_image(self, client: AsyncClient, token: str) -> None:
        resp = await client.post(
            "/api/images/upload",
            json={"image": base64.b64encode(b"hello world").decode()},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Only PNG and JPG images are allowed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resize", ["0", "10001", "abc"])
    async def test_invalid_resize(self, client: AsyncClient, token: str, resize: str) -> None:
        raw = base64.b64encode(make_image(4, 4)).decode()
        resp = await client.post(
            f"/api/images/upload?resize={resize}",
            json={"image": raw},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_DATA"

    @pytest.mark.asyncio
    async def test_requires_token(self, client: AsyncClient) -> None:
        resp = await client.post("/api/images/upload", json={"image": "AAAA"})
        assert resp.status_code == 401


class TestMultipartUpload:
    @pytest.mark.asyncio
    async def test_upload_file(
        self, client: AsyncClient, token: str, storage: InMemoryObjectStorage
    ) -> None:
        raw = make_image(32, 32, "JPEG")
        resp = await client.post(
            "/api/images/upload",
            files={"image": ("photo.jpg", raw, "image/jpeg")},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200
        key = stored_key(resp.json()["url"])
        assert storage.objects[key] == ("image/jpeg", raw)

    @pytest.mark.asyncio
    async def test_declared_type_must_be_image(self, client: AsyncClient, token: str) -> None:
        resp = await client.post(
            "/api/images/upload",
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Only PNG and JPG images are allowed"

    @pytest.mark.asyncio
    async def test_wrong_field_name(self, client: AsyncClient, token: str) -> None:
        resp = await client.post(
            "/api/images/upload",
            files={"photo": ("photo.png", make_image(4, 4), "image/png")},
            headers=auth_headers(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No image provided"


class TestUploadLimits:
    @pytest.fixture
    async def small_client(
        self, test_settings: Settings, storage: InMemoryObjectStorage
    ) -> AsyncGenerator[AsyncClient]:
        settings = test_settings.model_copy(update={"max_image_upload_bytes": 100})
        async with create_test_client(settings, storage) as ac:
            yield ac

    @pytest.mark.asyncio
    async def test_oversized_base64_image(self, small_client: AsyncClient) -> None:
        token = (
            await small_client.post(
                "/api/auth/signup", json={"email": "big@example.com", "password": "secret1"}
            )
        ).json()["accessToken"]
        raw = base64.b64encode(b"x" * 101).decode()
        resp = await small_client.post(
            "/api/images/upload", json={"image": raw}, headers=auth_headers(token)
        )
        assert resp.status_code == 413
        assert resp.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"

    @pytest.mark.asyncio
    async def test_oversized_multipart_image(self, small_client: AsyncClient) -> None:
        token = (
            await small_client.post(
                "/api/auth/signup", json={"email": "big@example.com", "password": "secret1"}
            )
        ).json()["accessToken"]
        resp = await small_client.post(
            "/api/images/upload",
            files={"image": ("big.png", b"x" * 101, "image/png")},
            headers=auth_headers(token),
        )
        assert resp.status_code == 413


class TestStorageFailure:
    @pytest.mark.asyncio
    async def test_storage_error_is_reported_generically(
        self, client: AsyncClient, token: str, storage: InMemoryObjectStorage
    ) -> None:
        with patch.object(
            storage,
            "upload",
            AsyncMock(side_effect=InternalServerError("bucket gone: secret detail")),
        ):
            resp = await client.post(
                "/api/images/upload",
                json={"image": base64.b64encode(make_image(4, 4)).decode()},
                headers=auth_headers(token),
            )
        assert resp.status_code == 500
        error = resp.json()["error"]
        assert error == {
            "message": "Failed to upload image",
            "code": "SERVER_ERROR",
            "statusCode": 500,
        }
