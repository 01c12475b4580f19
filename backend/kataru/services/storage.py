"""Object storage capability backed by the media volume.

Objects live at ``<MEDIA_VOLUME>/<bucket>/<key>`` and are served by the
``/media`` static mount, so the public URL of an object is
``<PUBLIC_BASE_URL>/media/<bucket>/<key>``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import AsyncIterable, Iterable
from typing import Protocol
from urllib.parse import urlparse

from kataru.services.errors import InvalidInput

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Blob store capability consumed by the core."""

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None: ...

    async def put_stream(
        self, bucket: str, key: str, chunks: AsyncIterable[bytes], content_type: str
    ) -> int: ...

    async def get(self, bucket: str, key: str) -> bytes: ...

    def public_url(self, bucket: str, key: str) -> str: ...

    async def remove(self, bucket: str, keys: Iterable[str]) -> int: ...


async def _single_chunk(data: bytes):
    yield data


def is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class LocalObjectStorage:
    """Filesystem implementation of :class:`ObjectStorage`."""

    def __init__(self, root: str, public_base_url: str) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, bucket: str, key: str) -> str:
        if not key or key.startswith("/") or ".." in key.split("/"):
            raise InvalidInput(f"Invalid storage key: {key!r}")
        return os.path.join(self.root, bucket, key)

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        """Write ``data`` atomically; an existing object under the key is replaced."""
        await self.put_stream(bucket, key, _single_chunk(data), content_type)

    async def put_stream(
        self, bucket: str, key: str, chunks: AsyncIterable[bytes], content_type: str
    ) -> int:
        """Write chunks to a temp file beside the target, then swap it in.

        Readers never see a partial object; if ``chunks`` raises, the temp
        file is removed and any previous object is left as it was.
        Returns the number of bytes written.
        """
        path = self._path(bucket, key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), suffix=".part")
        size = 0
        try:
            with os.fdopen(fd, "wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
                    size += len(chunk)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Stored %s/%s (%d bytes, %s)", bucket, key, size, content_type)
        return size

    async def get(self, bucket: str, key: str) -> bytes:
        with open(self._path(bucket, key), "rb") as f:
            return f.read()

    async def exists(self, bucket: str, key: str) -> bool:
        return os.path.isfile(self._path(bucket, key))

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_base_url}/media/{bucket}/{key}"

    async def remove(self, bucket: str, keys: Iterable[str]) -> int:
        """Delete objects, skipping ones that are already gone. Returns the count removed."""
        removed = 0
        for key in keys:
            path = self._path(bucket, key)
            try:
                os.remove(path)
                removed += 1
            except FileNotFoundError:
                continue
        return removed

    def extract_key(self, value: str, bucket: str) -> str:
        """Turn one of our own public URLs back into its storage key.

        Plain keys and foreign URLs are returned unchanged.
        """
        if not is_url(value):
            return value
        marker = f"/media/{bucket}/"
        idx = value.find(marker)
        if idx == -1:
            return value
        return value[idx + len(marker):]

    def resolve_url(self, value: str, bucket: str) -> str:
        """Public URL for a storage key; external URLs pass through."""
        return value if is_url(value) else self.public_url(bucket, value)
