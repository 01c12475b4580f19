"""D-ID talking-avatar provider.

Submits ``POST /talks`` with a portrait URL, a text script and a voice;
``GET /talks/{id}`` reports ``created``/``started``/``done``/``error``.
"""

from __future__ import annotations

import logging
from typing import Any

from kataru.models.job import JobKind
from kataru.services import prompt_builder
from kataru.services.errors import InvalidInput, ProviderRejected, ProviderUnreachable
from kataru.services.providers.base import (
    GenerationRequest,
    ProviderAdapter,
    ProviderPhase,
    ProviderStatus,
    ProviderSubmission,
    extract_error_message,
    parse_body,
)

logger = logging.getLogger(__name__)


def map_talk_status(raw: str | None) -> ProviderPhase:
    """Map D-ID's status vocabulary onto the common phases."""
    if raw == "done":
        return ProviderPhase.SUCCEEDED
    if raw in ("error", "failed"):
        return ProviderPhase.FAILED
    return ProviderPhase.PENDING


class DIDLipsyncAdapter(ProviderAdapter):
    """Lip-syncs a script onto the caller's portrait image."""

    kind = JobKind.LIPSYNC
    provider_name = "D-ID"
    auth_scheme = "Basic"

    def __init__(
        self,
        *args: Any,
        avatar_bucket: str,
        product_bucket: str,
        default_voice_provider: str = "microsoft",
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.avatar_bucket = avatar_bucket
        self.product_bucket = product_bucket
        self.default_voice_provider = default_voice_provider

    def prepare(
        self, input_refs: dict[str, Any], parameters: dict[str, Any]
    ) -> tuple[dict[str, str], dict[str, Any]]:
        avatar = (input_refs.get("avatar_image") or "").strip()
        product = (input_refs.get("product_image") or "").strip()
        if not avatar or not product:
            raise InvalidInput("avatar_image and product_image are required.")

        refs = {
            "avatar_image": self.storage.extract_key(avatar, self.avatar_bucket),
            "product_image": self.storage.extract_key(product, self.product_bucket),
        }
        params = prompt_builder.normalize_lipsync_parameters(
            parameters,
            default_provider=self.default_voice_provider,
            fallback_voice_id=self.config.default_voice,
        )
        return refs, params

    async def start(self, request: GenerationRequest) -> ProviderSubmission:
        source_url = self.storage.resolve_url(
            request.input_refs["avatar_image"], self.avatar_bucket
        )
        payload = prompt_builder.build_talk_payload(request.parameters, source_url=source_url)

        response = await self._request("POST", "/talks", json=payload)
        if not response.is_success:
            body = parse_body(response)
            message = extract_error_message(body, "D-ID request failed.")
            logger.warning(
                "D-ID rejected job %s: HTTP %d %s", request.job_id, response.status_code, message
            )
            raise ProviderRejected(message, provider_status=response.status_code, body=body)

        data = parse_body(response)
        talk_id = None
        if isinstance(data, dict):
            talk_id = data.get("id") or data.get("talk_id")
        if not talk_id:
            raise ProviderRejected("D-ID did not return a talk id.", body=data)

        logger.info("D-ID talk created: %s (job=%s)", talk_id, request.job_id)
        return ProviderSubmission(correlation_id=str(talk_id))

    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        response = await self._request("GET", f"/talks/{correlation_id}")
        if not response.is_success:
            # Leave the job non-terminal; the caller simply polls again
            raise ProviderUnreachable(
                f"Failed to fetch D-ID status: HTTP {response.status_code}",
                details={"status": response.status_code, "body": parse_body(response)},
            )

        data = parse_body(response)
        if not isinstance(data, dict):
            data = {}
        phase = map_talk_status(data.get("status"))
        logger.debug("D-ID talk %s: %s", correlation_id, data.get("status"))

        if phase is ProviderPhase.FAILED:
            error = data.get("error") if isinstance(data.get("error"), dict) else {}
            return ProviderStatus(
                phase=phase,
                message=error.get("message") or "D-ID failed.",
                code="provider_failed",
            )
        if phase is ProviderPhase.SUCCEEDED:
            return ProviderStatus(phase=phase, result_url=data.get("result_url"))
        return ProviderStatus(phase=phase)

    async def list_voices(
        self, provider: str | None = None, locale: str | None = None
    ) -> list[dict[str, Any]]:
        """Voice catalogue, optionally filtered by locale prefix (e.g. ``ja``)."""
        params = {"provider": provider} if provider else None
        response = await self._request("GET", "/voices", params=params)
        if not response.is_success:
            raise ProviderUnreachable(
                f"Failed to fetch voices: HTTP {response.status_code}",
                details={"status": response.status_code},
            )

        data = parse_body(response)
        if isinstance(data, list):
            voices = data
        elif isinstance(data, dict):
            voices = data.get("voices") or []
        else:
            voices = []

        if not locale:
            return voices
        return [
            v for v in voices
            if str(v.get("language") or v.get("locale") or "").startswith(locale)
        ]
