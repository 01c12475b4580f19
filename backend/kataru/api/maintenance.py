"""Housekeeping endpoints: on-demand retention cleanup."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from kataru.api.deps import get_orchestrator
from kataru.config import get_settings
from kataru.schemas.job import CleanupRequest, CleanupResult
from kataru.services.orchestrator import JobOrchestrator
from kataru.tasks.cleanup_task import bucket_roles, purge_expired_jobs

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/cleanup", response_model=CleanupResult)
async def run_cleanup(
    req: CleanupRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Purge jobs older than ``days`` (default CLEANUP_RETENTION_DAYS) and their files."""
    settings = get_settings()
    days = settings.CLEANUP_RETENTION_DAYS if req.days is None else req.days
    stats = await purge_expired_jobs(
        orchestrator.store,
        orchestrator.storage,
        buckets=bucket_roles(),
        days=days,
        batch_size=settings.CLEANUP_BATCH_SIZE,
    )
    return CleanupResult(removed=stats.removed, objects_removed=stats.objects_removed)
