"""Celery Beat task for retention cleanup, runs daily at 3 AM.

Selects jobs older than the retention window, removes their objects from the
avatar/product/video buckets, then deletes the rows. Best-effort: a failing
batch is logged and rows already removed stay removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from celery import shared_task

from kataru.config import get_settings
from kataru.models.job import GenerationJob, utcnow
from kataru.services.job_store import JobStore
from kataru.services.storage import LocalObjectStorage, is_url

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    removed: int = 0
    objects_removed: int = 0


def _bucket_keys(jobs: list[GenerationJob], buckets: dict[str, str]) -> dict[str, list[str]]:
    """Group each job's stored objects by bucket; external URLs are not ours to delete."""
    by_bucket: dict[str, list[str]] = {bucket: [] for bucket in buckets.values()}
    for job in jobs:
        refs = job.input_refs or {}
        for ref_name, bucket_role in (
            ("avatar_image", "avatars"),
            ("speaker_image", "avatars"),
            ("product_image", "products"),
            ("scene_image", "products"),
        ):
            key = refs.get(ref_name)
            if key and not is_url(key):
                by_bucket[buckets[bucket_role]].append(key)
        if job.result_asset_key:
            by_bucket[buckets["videos"]].append(job.result_asset_key)
    return by_bucket


async def purge_expired_jobs(
    store: JobStore,
    storage: LocalObjectStorage,
    *,
    buckets: dict[str, str],
    days: int,
    batch_size: int = 200,
) -> CleanupStats:
    """Delete jobs created more than ``days`` ago, along with their stored objects.

    ``buckets`` maps the roles ``avatars``/``products``/``videos`` to bucket names.
    """
    cutoff = utcnow() - timedelta(days=days)
    stats = CleanupStats()

    while True:
        jobs = await store.list_expired(cutoff, batch_size)
        if not jobs:
            break

        for bucket, keys in _bucket_keys(jobs, buckets).items():
            if not keys:
                continue
            try:
                stats.objects_removed += await storage.remove(bucket, keys)
            except Exception as e:
                logger.warning("Cleanup: removing %d object(s) from %s failed: %s", len(keys), bucket, e)

        try:
            deleted = await store.delete_many([job.id for job in jobs])
        except Exception as e:
            logger.error("Cleanup: deleting %d job row(s) failed: %s", len(jobs), e)
            break
        stats.removed += deleted
        logger.info("Cleanup batch: %d job(s) removed", deleted)

        if deleted == 0 or len(jobs) < batch_size:
            break

    logger.info(
        "Cleanup complete: %d job(s), %d object(s) older than %d day(s)",
        stats.removed, stats.objects_removed, days,
    )
    return stats


def bucket_roles() -> dict[str, str]:
    settings = get_settings()
    return {
        "avatars": settings.AVATAR_BUCKET,
        "products": settings.PRODUCT_BUCKET,
        "videos": settings.VIDEO_BUCKET,
    }


@shared_task
def cleanup_expired_jobs(days: int | None = None):
    """Scheduled entry point; ``days`` defaults to CLEANUP_RETENTION_DAYS."""
    from kataru.database import get_session_factory
    from kataru.services.factory import build_storage
    from kataru.tasks import run_async

    settings = get_settings()
    retention = settings.CLEANUP_RETENTION_DAYS if days is None else days
    stats = run_async(purge_expired_jobs(
        JobStore(get_session_factory()),
        build_storage(settings),
        buckets=bucket_roles(),
        days=retention,
        batch_size=settings.CLEANUP_BATCH_SIZE,
    ))
    return {"removed": stats.removed, "objects_removed": stats.objects_removed}
