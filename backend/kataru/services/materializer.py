"""Asset materializer: copy a provider-hosted result into our own storage."""

from __future__ import annotations

import logging

import httpx

from kataru.services.errors import FetchFailed, MaterializationFailure
from kataru.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPE = "video/mp4"
CHUNK_SIZE = 64 * 1024


def asset_key_for(job_id: str) -> str:
    """Storage key of a job's video; fixed per job so rewrites are idempotent."""
    return f"{job_id}.mp4"


class AssetMaterializer:
    """Fetches result bytes and writes them under a job-derived key."""

    def __init__(
        self,
        storage: LocalObjectStorage,
        bucket: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.storage = storage
        self.bucket = bucket
        self.timeout = timeout
        self._http_client = http_client

    async def materialize(self, job_id: str, result_url: str) -> str:
        """Stream ``result_url`` straight into storage. Returns the asset key.

        Chunks go to storage as they arrive, so memory use does not grow
        with the size of the video.
        """
        key = asset_key_for(job_id)
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        own_client = self._http_client is None
        try:
            async with client.stream(
                "GET", result_url, timeout=self.timeout, follow_redirects=True
            ) as response:
                if not response.is_success:
                    raise FetchFailed(
                        f"Failed to fetch generated video: HTTP {response.status_code}"
                    )
                try:
                    size = await self.storage.put_stream(
                        self.bucket,
                        key,
                        response.aiter_bytes(chunk_size=CHUNK_SIZE),
                        VIDEO_CONTENT_TYPE,
                    )
                except OSError as e:
                    raise MaterializationFailure(f"Storage write failed: {e}") from e
        except httpx.HTTPError as e:
            raise FetchFailed(f"Failed to fetch generated video: {e.__class__.__name__}") from e
        finally:
            if own_client:
                await client.aclose()

        logger.info("Video materialized for job %s: %s/%s (%d bytes)", job_id, self.bucket, key, size)
        return key
