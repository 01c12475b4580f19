"""Job orchestrator: submit work to a provider and reconcile it on every poll.

State machine (see ``kataru.models.job``)::

    queued ──start ok──▶ processing ──provider done + stored──▶ done
       │                     │
       └──start rejected──▶ error ◀──provider failed / storage failed

Nothing here runs in the background: each ``submit``/``poll`` is one short
unit of work, and the job row (with its correlation id) is all that is
needed to resume after a restart.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from kataru.models.job import Done, Failed, GenerationJob, JobKind, JobState
from kataru.services.errors import (
    InvalidInput,
    JobNotFound,
    MaterializationFailure,
    PollTimeout,
    ProviderRejected,
    ProviderTerminalFailure,
    ProviderUnreachable,
)
from kataru.services.job_store import JobStore
from kataru.services.materializer import AssetMaterializer
from kataru.services.providers.base import GenerationRequest, ProviderAdapter, ProviderPhase
from kataru.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobView:
    """Provider-independent status returned to callers."""

    job_id: str
    kind: JobKind
    state: JobState
    result_url: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.DONE, JobState.ERROR)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class SubmitResult:
    job_id: str
    state: JobState


class JobOrchestrator:
    """Creates jobs, drives submission, and reconciles provider status with the store."""

    def __init__(
        self,
        store: JobStore,
        adapters: Mapping[JobKind, ProviderAdapter],
        materializer: AssetMaterializer,
        storage: LocalObjectStorage,
        *,
        video_bucket: str,
        materialize_lease: timedelta = timedelta(seconds=300),
        claim_wait_attempts: int = 10,
        claim_wait_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.adapters = dict(adapters)
        self.materializer = materializer
        self.storage = storage
        self.video_bucket = video_bucket
        self.materialize_lease = materialize_lease
        self.claim_wait_attempts = claim_wait_attempts
        self.claim_wait_interval = claim_wait_interval
        self._sleep = sleep

    def adapter_for(self, kind: JobKind | str) -> ProviderAdapter:
        try:
            kind = JobKind(kind)
            return self.adapters[kind]
        except (ValueError, KeyError):
            raise InvalidInput(f"Unsupported job kind: {kind}") from None

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        kind: JobKind | str,
        input_refs: dict[str, Any],
        parameters: dict[str, Any],
    ) -> SubmitResult:
        """Validate, persist a queued job, and hand it to the provider.

        Raises InvalidInput before anything is written. A provider rejection
        leaves the job in ``error`` (the exception carries its id); an
        unreachable provider leaves no job behind.
        """
        adapter = self.adapter_for(kind)
        refs, params = adapter.prepare(input_refs, parameters)

        job_id = str(uuid.uuid4())
        await self.store.insert(job_id, adapter.kind, refs, params)
        logger.info("Job %s queued (kind=%s)", job_id, adapter.kind.value)

        request = GenerationRequest(job_id=job_id, input_refs=refs, parameters=params)
        try:
            submission = await adapter.start(request)
        except ProviderUnreachable:
            await self.store.discard(job_id)
            logger.warning("Job %s discarded: %s unreachable", job_id, adapter.provider_name)
            raise
        except ProviderRejected as exc:
            exc.job_id = job_id
            exc.details["job_id"] = job_id
            await self.store.mark_error(job_id, exc.message, code=exc.code)
            logger.warning("Job %s rejected by %s: %s", job_id, adapter.provider_name, exc.message)
            raise
        except Exception:
            await self.store.discard(job_id)
            raise

        await self.store.mark_processing(job_id, submission.correlation_id)
        logger.info(
            "Job %s processing (%s id=%s)", job_id, adapter.provider_name, submission.correlation_id
        )
        return SubmitResult(job_id=job_id, state=JobState.PROCESSING)

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    async def poll(self, job_id: str) -> JobView:
        """Reconcile one job with its provider and return the current view.

        Terminal jobs are answered from the store alone.
        """
        job = await self._load(job_id)
        if job.is_terminal or not job.provider_correlation_id:
            return self.view(job)

        adapter = self.adapter_for(job.kind)
        try:
            status = await adapter.fetch_status(job.provider_correlation_id)
        except ProviderUnreachable as exc:
            logger.warning("Poll for job %s left unchanged: %s", job_id, exc.message)
            return self.view(job)

        if status.phase is ProviderPhase.FAILED:
            message = status.message or f"{adapter.provider_name} failed."
            if await self.store.mark_error(job_id, message, code=status.code or ProviderTerminalFailure.code):
                logger.warning("Job %s failed at provider: %s", job_id, message)
            return self.view(await self._load(job_id))

        if status.phase is ProviderPhase.SUCCEEDED and status.result_url:
            return await self._complete(job_id, status.result_url)

        # Pending, or succeeded before the asset URL is attached
        await self.store.mark_status(job_id, JobState.PROCESSING)
        return self.view(await self._load(job_id))

    async def _complete(self, job_id: str, result_url: str) -> JobView:
        """Materialize the result exactly once and mark the job done."""
        job = await self._load(job_id)
        if job.is_terminal:
            return self.view(job)

        if not await self.store.claim_materialization(job_id, self.materialize_lease):
            logger.info("Job %s is being materialized by another poll", job_id)
            return await self._await_terminal(job_id)

        try:
            asset_key = await self.materializer.materialize(job_id, result_url)
        except MaterializationFailure as exc:
            message = f"Failed to store video: {exc.message}"
            await self.store.mark_error(job_id, message, code=exc.code)
            logger.error("Job %s materialization failed: %s", job_id, exc.message)
            return self.view(await self._load(job_id))
        except Exception:
            await self.store.release_materialization(job_id)
            raise

        if not await self.store.mark_done(job_id, asset_key):
            logger.info("Job %s was completed by a concurrent poll", job_id)
        else:
            logger.info("Job %s done: %s", job_id, asset_key)
        return self.view(await self._load(job_id))

    async def _await_terminal(self, job_id: str) -> JobView:
        """Give the lease holder a moment to finish, then report what the store says."""
        job = await self._load(job_id)
        for _ in range(self.claim_wait_attempts):
            if job.is_terminal:
                break
            await self._sleep(self.claim_wait_interval)
            job = await self._load(job_id)
        return self.view(job)

    async def wait_for_result(
        self, job_id: str, *, max_attempts: int, interval: float
    ) -> JobView:
        """Poll until the job is terminal or the attempt budget runs out.

        Running out raises :class:`PollTimeout` and writes nothing, so a later
        call resumes from the stored correlation id.
        """
        for attempt in range(max_attempts):
            view = await self.poll(job_id)
            if view.is_terminal:
                return view
            logger.debug("Job %s still %s (attempt %d/%d)", job_id, view.state.value, attempt + 1, max_attempts)
            if attempt + 1 < max_attempts:
                await self._sleep(interval)
        raise PollTimeout(job_id, max_attempts)

    # ------------------------------------------------------------------

    async def _load(self, job_id: str) -> GenerationJob:
        job = await self.store.get(job_id)
        if job is None:
            raise JobNotFound("Job not found.", details={"job_id": job_id})
        return job

    def view(self, job: GenerationJob) -> JobView:
        phase = job.phase()
        result_url = None
        error_message = None
        error_code = None
        if isinstance(phase, Done):
            result_url = self.storage.public_url(self.video_bucket, phase.asset_key)
        elif isinstance(phase, Failed):
            error_message = phase.message
            error_code = phase.code
        return JobView(
            job_id=job.id,
            kind=JobKind(job.kind),
            state=job.state,
            result_url=result_url,
            error_message=error_message,
            error_code=error_code,
        )
