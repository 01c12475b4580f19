"""Error taxonomy shared by the orchestrator, adapters and API layer.

Every provider/storage failure is translated into one of these before it
reaches a caller; raw httpx or SQL exceptions never cross the orchestrator.
"""

from __future__ import annotations

from typing import Any


class KataruError(Exception):
    """Base class: carries a stable code and the HTTP status used by the API."""

    code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInput(KataruError):
    """Caller omitted a required field or sent an unsupported image."""

    code = "invalid_input"
    status_code = 400


class JobNotFound(KataruError):
    code = "not_found"
    status_code = 404


class ProviderNotConfigured(KataruError):
    """A provider credential is missing from settings."""

    code = "provider_not_configured"
    status_code = 500


class ProviderRejected(KataruError):
    """Provider answered a submit call with a non-success status."""

    code = "provider_rejected"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        provider_status: int | None = None,
        body: Any = None,
        job_id: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if provider_status is not None:
            details["status"] = provider_status
        if body is not None:
            details["body"] = body
        super().__init__(message, details=details)
        self.provider_status = provider_status
        self.body = body
        self.job_id = job_id


class ProviderUnreachable(KataruError):
    """Transport-level failure or timeout talking to a provider. Recoverable."""

    code = "provider_unreachable"
    status_code = 503


class ProviderTerminalFailure(KataruError):
    """The provider reported that generation failed."""

    code = "provider_failed"
    status_code = 502


class MaterializationFailure(KataruError):
    """Provider succeeded but fetching or storing the result failed."""

    code = "materialization_failed"
    status_code = 500


class FetchFailed(MaterializationFailure):
    """Downloading the provider-hosted result failed."""


class PollTimeout(KataruError):
    """Attempt budget exhausted before the job reached a terminal state.

    Nothing is written to the store; a later poll resumes where this one left off.
    """

    code = "poll_timeout"
    status_code = 504

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(
            f"Job {job_id} not finished after {attempts} poll attempts",
            details={"job_id": job_id, "attempts": attempts},
        )
        self.job_id = job_id
        self.attempts = attempts
