"""Image upload endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from backend.api.deps import get_settings, get_storage, require_auth
from backend.config import Settings
from backend.exceptions import (
    InternalServerError,
    InvalidDataShapeError,
    MissingFieldError,
    PayloadTooLargeError,
    ServerError,
)
from backend.models.user import User
from backend.services.image_service import (
    ALLOWED_UPLOAD_MIME_TYPES,
    decode_base64_image,
    generate_file_name,
    parse_resize,
    process_image,
)
from backend.services.storage_service import ObjectStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["images"])


class ImageUploadResponse(BaseModel):
    url: str


async def _read_multipart_image(request: Request, max_bytes: int) -> bytes:
    form = await request.form()
    upload = form.get("image")
    if not isinstance(upload, UploadFile):
        raise MissingFieldError("No image provided")
    if upload.content_type not in ALLOWED_UPLOAD_MIME_TYPES:
        raise InvalidDataShapeError("Only PNG and JPG images are allowed")
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise PayloadTooLargeError(f"Image too large (max {max_bytes // (1024 * 1024)} MB)")
    return data


async def _read_base64_image(request: Request, max_bytes: int) -> bytes:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidDataShapeError("Invalid JSON body") from None
    if not isinstance(body, dict) or "image" not in body:
        raise MissingFieldError("No image provided")
    encoded = body["image"]
    if not encoded or not isinstance(encoded, str):
        raise InvalidDataShapeError("Invalid base64 image data")
    data = decode_base64_image(encoded)
    if len(data) > max_bytes:
        raise PayloadTooLargeError(f"Image too large (max {max_bytes // (1024 * 1024)} MB)")
    return data


@router.post("/upload", response_model=ImageUploadResponse)
async def upload_image(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[ObjectStorage, Depends(get_storage)],
    user: Annotated[User, Depends(require_auth)],
    resize: Annotated[str | None, Query()] = None,
) -> ImageUploadResponse:
    """Upload an image, optionally downscaled to ``resize`` pixels wide.

    Accepts either ``multipart/form-data`` with an ``image`` file field or a
    JSON body ``{"image": "<base64 or data URI>"}``.
    """
    width = parse_resize(resize)
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        raw = await _read_multipart_image(request, settings.max_image_upload_bytes)
    else:
        raw = await _read_base64_image(request, settings.max_image_upload_bytes)

    image = await asyncio.to_thread(process_image, raw, width)
    key = generate_file_name(image.extension)

    try:
        await storage.upload(key, image.mime_type, image.data)
    except InternalServerError as exc:
        logger.error("Image upload failed for user %d: %s", user.id, exc)
        raise ServerError("Failed to upload image") from exc

    return ImageUploadResponse(url=storage.public_url(key))
