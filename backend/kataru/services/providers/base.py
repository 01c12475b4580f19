"""Provider adapter interface shared by the lip-sync and scene providers."""

from __future__ import annotations

import enum
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from kataru.models.job import JobKind
from kataru.services.errors import ProviderNotConfigured, ProviderUnreachable
from kataru.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one provider, passed into the adapter."""

    base_url: str
    credential: str | None = None
    default_voice: str | None = None
    timeout: float = 30.0


class ProviderPhase(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ProviderStatus:
    """Normalized result of a single status poll."""

    phase: ProviderPhase
    result_url: str | None = None
    message: str | None = None
    code: str | None = None


@dataclass(frozen=True)
class ProviderSubmission:
    correlation_id: str


@dataclass(frozen=True)
class GenerationRequest:
    """Everything an adapter needs to submit one job."""

    job_id: str
    input_refs: dict[str, str]
    parameters: dict[str, Any] = field(default_factory=dict)


def parse_body(response: httpx.Response) -> Any:
    """Response JSON, or the raw text when the body is not JSON."""
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError):
        return response.text


def extract_error_message(body: Any, fallback: str) -> str:
    """Pull ``message`` / ``error.message`` out of a provider error body."""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str) and error:
            return error
        return fallback
    if isinstance(body, str) and body.strip():
        return body.strip()
    return fallback


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Adapters never touch the job store: they translate requests into one
    provider's wire format and normalize what comes back.
    """

    kind: JobKind
    provider_name: str = "unknown"
    auth_scheme: str = "Bearer"

    def __init__(
        self,
        config: ProviderConfig,
        storage: LocalObjectStorage,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.storage = storage
        self._http_client = http_client

    @abstractmethod
    def prepare(
        self, input_refs: dict[str, Any], parameters: dict[str, Any]
    ) -> tuple[dict[str, str], dict[str, Any]]:
        """Validate and normalize caller input. Raises InvalidInput."""
        ...

    @abstractmethod
    async def start(self, request: GenerationRequest) -> ProviderSubmission:
        """Submit a generation request. Raises ProviderRejected / ProviderUnreachable."""
        ...

    @abstractmethod
    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        """Poll the provider once for the given correlation id."""
        ...

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    def _auth_header(self) -> str:
        credential = self.config.credential
        if not credential:
            raise ProviderNotConfigured(f"Missing API key for {self.provider_name}.")
        if credential.startswith(f"{self.auth_scheme} "):
            return credential
        return f"{self.auth_scheme} {credential}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Single HTTP round trip; transport failures become ProviderUnreachable."""
        headers = {"Authorization": self._auth_header()}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"

        client = self._http_client or httpx.AsyncClient(timeout=self.config.timeout)
        own_client = self._http_client is None
        try:
            return await client.request(
                method,
                self._url(path),
                headers=headers,
                timeout=self.config.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s %s failed: %s", self.provider_name, method, path, e)
            raise ProviderUnreachable(
                f"{self.provider_name} unreachable: {e.__class__.__name__}"
            ) from e
        finally:
            if own_client:
                await client.aclose()
