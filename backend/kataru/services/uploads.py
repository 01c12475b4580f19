"""Caller image uploads (base64 data URLs) into the input buckets."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid

from kataru.services.errors import InvalidInput
from kataru.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


def decode_image_data_url(data_url: str, max_bytes: int) -> tuple[bytes, str]:
    """Return ``(bytes, content_type)``; rejects non-images and oversize payloads."""
    match = _DATA_URL_RE.match(data_url.strip())
    if not match:
        raise InvalidInput("Expected a base64 data URL (data:image/...;base64,...).")

    content_type = match.group("mime").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidInput(
            f"Unsupported image type '{content_type}'. "
            f"Allowed: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}"
        )

    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInput("Image data is not valid base64.") from None

    if not data:
        raise InvalidInput("Image is empty.")
    if len(data) > max_bytes:
        raise InvalidInput(f"Image is {len(data)} bytes; the limit is {max_bytes} bytes.")
    return data, content_type


async def store_image_upload(
    storage: LocalObjectStorage,
    bucket: str,
    data_url: str,
    *,
    max_bytes: int,
) -> str:
    """Validate and store an uploaded image. Returns its storage key."""
    data, content_type = decode_image_data_url(data_url, max_bytes)
    key = f"{uuid.uuid4().hex}{ALLOWED_IMAGE_TYPES[content_type]}"
    await storage.put(bucket, key, data, content_type)
    logger.info("Stored upload %s/%s (%d bytes)", bucket, key, len(data))
    return key
