"""Job submission and polling endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from kataru.api.deps import get_orchestrator, http_error
from kataru.models.job import JobKind
from kataru.schemas.job import (
    ErrorBody,
    JobStatusRead,
    JobSubmitted,
    LipsyncJobCreate,
    SceneJobCreate,
)
from kataru.services.errors import KataruError
from kataru.services.orchestrator import JobOrchestrator, JobView

logger = logging.getLogger(__name__)
router = APIRouter()


def _status_read(view: JobView) -> JobStatusRead:
    error = None
    if view.error_message is not None:
        error = ErrorBody(code=view.error_code, message=view.error_message)
    return JobStatusRead(
        job_id=view.job_id,
        kind=view.kind.value,
        status=view.state,
        result_url=view.result_url,
        error=error,
    )


@router.post("/lipsync", response_model=JobSubmitted, status_code=202)
async def create_lipsync_job(
    req: LipsyncJobCreate,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Submit a talking-avatar job."""
    try:
        result = await orchestrator.submit(JobKind.LIPSYNC, req.input_refs(), req.parameters())
    except KataruError as e:
        raise http_error(e) from e
    return JobSubmitted(job_id=result.job_id, status=result.state)


@router.post("/scene-generation", response_model=JobSubmitted, status_code=202)
async def create_scene_job(
    req: SceneJobCreate,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Submit a promo-scene job."""
    try:
        result = await orchestrator.submit(
            JobKind.SCENE_GENERATION, req.input_refs(), req.parameters()
        )
    except KataruError as e:
        raise http_error(e) from e
    return JobSubmitted(job_id=result.job_id, status=result.state)


@router.get("/{job_id}", response_model=JobStatusRead)
async def get_job(job_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    """Poll a job. Finished jobs are answered without contacting the provider."""
    try:
        view = await orchestrator.poll(job_id)
    except KataruError as e:
        raise http_error(e) from e
    return _status_read(view)
