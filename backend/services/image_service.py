"""Image intake: base64 decoding, format checks, optional downscaling."""

from __future__ import annotations

import base64
import binascii
import io
import re
import secrets
from dataclasses import dataclass

from PIL import Image

from backend.exceptions import InvalidDataShapeError

ALLOWED_UPLOAD_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/jpg"})
MAX_RESIZE_WIDTH = 10000

_DATA_URI_RE = re.compile(r"^data:image/\w+;base64,")
# Pillow format name -> (file extension, MIME type)
_FORMATS = {
    "JPEG": ("jpg", "image/jpeg"),
    "PNG": ("png", "image/png"),
    "WEBP": ("webp", "image/webp"),
}


@dataclass
class ProcessedImage:
    data: bytes
    mime_type: str
    extension: str


def decode_base64_image(encoded: str) -> bytes:
    """Strip an optional data-URI prefix and decode the base64 body."""
    body = _DATA_URI_RE.sub("", encoded, count=1)
    try:
        return base64.b64decode(body, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise InvalidDataShapeError("Invalid base64 image data") from exc


def parse_resize(value: str | None) -> int | None:
    """Validate the ``resize`` query parameter (target width in pixels)."""
    if value is None or value == "":
        return None
    try:
        width = int(value)
    except ValueError:
        width = 0
    if width <= 0 or width > MAX_RESIZE_WIDTH:
        raise InvalidDataShapeError(
            f"Invalid resize parameter. Must be a number between 1 and {MAX_RESIZE_WIDTH}"
        )
    return width


def generate_file_name(extension: str) -> str:
    """Random, unguessable object key."""
    return f"{secrets.token_hex(16)}.{extension}"


def process_image(data: bytes, width: int | None = None) -> ProcessedImage:
    """Check that ``data`` is a PNG, JPEG or WebP image and downscale it to ``width``.

    Aspect ratio is preserved and images narrower than ``width`` are left as-is
    (never enlarged). Without a resize, the original bytes are returned untouched.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format or ""
            if image_format not in _FORMATS:
                raise InvalidDataShapeError("Only PNG and JPG images are allowed")
            extension, mime_type = _FORMATS[image_format]

            if width is None or image.width <= width:
                return ProcessedImage(data=data, mime_type=mime_type, extension=extension)

            height = max(1, round(image.height * width / image.width))
            resized = image.resize((width, height), Image.Resampling.LANCZOS)
            out = io.BytesIO()
            resized.save(out, format=image_format)
            return ProcessedImage(data=out.getvalue(), mime_type=mime_type, extension=extension)
    except (OSError, Image.DecompressionBombError) as exc:
        raise InvalidDataShapeError("Only PNG and JPG images are allowed") from exc
