"""GenerationJob ORM model: one video generation request and its lifecycle."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from kataru.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobKind(str, enum.Enum):
    """Provider family a job targets."""

    LIPSYNC = "lipsync"
    SCENE_GENERATION = "scene-generation"


class JobState(str, enum.Enum):
    """Job lifecycle statuses, forward-only."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.DONE, JobState.ERROR})

VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.QUEUED: {JobState.PROCESSING, JobState.ERROR},
    JobState.PROCESSING: {JobState.PROCESSING, JobState.DONE, JobState.ERROR},
    JobState.DONE: set(),  # terminal state
    JobState.ERROR: set(),  # terminal state
}


def allowed_sources(target: JobState) -> list[str]:
    """Status values a row may hold for a write to move it to ``target``.

    The job store builds its conditional UPDATE guards from this.
    """
    return sorted(
        source.value for source, targets in VALID_TRANSITIONS.items() if target in targets
    )


# ---------------------------------------------------------------------------
# Tagged state variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Queued:
    pass


@dataclass(frozen=True)
class Processing:
    correlation_id: str | None


@dataclass(frozen=True)
class Done:
    asset_key: str


@dataclass(frozen=True)
class Failed:
    message: str
    code: str | None = None


JobPhase = Union[Queued, Processing, Done, Failed]


class GenerationJob(Base):
    """A video generation job targeting one provider family."""

    __tablename__ = "generation_jobs"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobState.QUEUED.value, index=True
    )

    provider_correlation_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    result_asset_key: Mapped[Optional[str]] = mapped_column(
        String(1024), nullable=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    input_refs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    request_parameters: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )

    # Lease held by the poll that is currently materializing the result
    materialize_claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    @property
    def state(self) -> JobState:
        return JobState(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def phase(self) -> JobPhase:
        """Return the stored row as a tagged state variant."""
        state = self.state
        if state is JobState.QUEUED:
            return Queued()
        if state is JobState.PROCESSING:
            return Processing(self.provider_correlation_id)
        if state is JobState.DONE:
            return Done(self.result_asset_key or "")
        return Failed(self.error_message or "", self.error_code)

    def can_transition_to(self, target: JobState) -> bool:
        """Check if the job can move to ``target`` from its current status."""
        return target in VALID_TRANSITIONS.get(self.state, set())
