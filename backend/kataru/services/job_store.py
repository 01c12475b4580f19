"""Job store: durable job rows and the narrow conditional updates on them.

Every write is a single ``UPDATE ... WHERE id = :id AND <guard>`` statement.
Status guards come from ``VALID_TRANSITIONS`` (via ``allowed_sources``), so
terminal states can never be overwritten even when several polls race.
Each method returns whether the row actually changed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kataru.models.job import (
    TERMINAL_STATES,
    GenerationJob,
    JobKind,
    JobState,
    allowed_sources,
    utcnow,
)

logger = logging.getLogger(__name__)

_TERMINAL = [s.value for s in TERMINAL_STATES]


class JobStore:
    """Async SQLAlchemy repository for :class:`GenerationJob`."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(
        self,
        job_id: str,
        kind: JobKind,
        input_refs: dict[str, Any],
        parameters: dict[str, Any],
    ) -> GenerationJob:
        now = utcnow()
        job = GenerationJob(
            id=job_id,
            kind=kind.value,
            status=JobState.QUEUED.value,
            input_refs=input_refs,
            request_parameters=parameters,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
        return job

    async def get(self, job_id: str) -> GenerationJob | None:
        async with self._session_factory() as session:
            return await session.get(GenerationJob, job_id)

    async def _update(self, job_id: str, *guards: Any, **values: Any) -> bool:
        values["updated_at"] = utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job_id, *guards)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount > 0

    async def mark_processing(self, job_id: str, correlation_id: str) -> bool:
        """``queued → processing``; the only write that sets the correlation id."""
        return await self._update(
            job_id,
            GenerationJob.status.in_(allowed_sources(JobState.PROCESSING)),
            GenerationJob.provider_correlation_id.is_(None),
            status=JobState.PROCESSING.value,
            provider_correlation_id=correlation_id,
        )

    async def mark_status(self, job_id: str, state: JobState) -> bool:
        """Pass-through for non-terminal states; a no-op once a job is terminal."""
        if state in TERMINAL_STATES:
            raise ValueError(f"mark_status cannot set terminal state {state.value}")
        return await self._update(
            job_id,
            GenerationJob.status.in_(allowed_sources(state)),
            GenerationJob.status != state.value,
            status=state.value,
        )

    async def claim_materialization(self, job_id: str, lease: timedelta) -> bool:
        """Take the materialization lease; at most one live holder per job."""
        now = utcnow()
        return await self._update(
            job_id,
            GenerationJob.status.in_(allowed_sources(JobState.DONE)),
            or_(
                GenerationJob.materialize_claimed_at.is_(None),
                GenerationJob.materialize_claimed_at < now - lease,
            ),
            materialize_claimed_at=now,
        )

    async def release_materialization(self, job_id: str) -> bool:
        return await self._update(
            job_id,
            GenerationJob.status.notin_(_TERMINAL),
            materialize_claimed_at=None,
        )

    async def mark_done(self, job_id: str, asset_key: str) -> bool:
        return await self._update(
            job_id,
            GenerationJob.status.in_(allowed_sources(JobState.DONE)),
            GenerationJob.result_asset_key.is_(None),
            status=JobState.DONE.value,
            result_asset_key=asset_key,
        )

    async def mark_error(self, job_id: str, message: str, code: str | None = None) -> bool:
        return await self._update(
            job_id,
            GenerationJob.status.in_(allowed_sources(JobState.ERROR)),
            status=JobState.ERROR.value,
            error_message=message[:2000],
            error_code=code,
        )

    async def discard(self, job_id: str) -> bool:
        """Delete a job that never left ``queued`` (its submission never reached the provider)."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(GenerationJob).where(
                    GenerationJob.id == job_id,
                    GenerationJob.status == JobState.QUEUED.value,
                )
            )
            await session.commit()
        return result.rowcount > 0

    # --- Retention (bulk access, cleanup task only) ---

    async def list_expired(self, cutoff: datetime, limit: int) -> list[GenerationJob]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GenerationJob)
                .where(GenerationJob.created_at < cutoff)
                .order_by(GenerationJob.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def delete_many(self, job_ids: Sequence[str]) -> int:
        if not job_ids:
            return 0
        async with self._session_factory() as session:
            result = await session.execute(
                delete(GenerationJob).where(GenerationJob.id.in_(list(job_ids)))
            )
            await session.commit()
        return result.rowcount
