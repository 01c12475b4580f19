"""ORM model package: registers all models with Base.metadata."""

from kataru.models.job import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    Done,
    Failed,
    GenerationJob,
    JobKind,
    JobPhase,
    JobState,
    Processing,
    Queued,
)

__all__ = [
    "GenerationJob",
    "JobKind",
    "JobState",
    "JobPhase",
    "Queued",
    "Processing",
    "Done",
    "Failed",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
]
