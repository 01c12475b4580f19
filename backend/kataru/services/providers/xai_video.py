"""xAI image-to-video provider (grok-imagine-video).

Submit: ``POST /v1/videos/generations`` → ``request_id``.
Result: ``GET /v1/videos/{request_id}`` → 202/204 while rendering, 200 with
the video URL in one of several JSON layouts once done.
"""

from __future__ import annotations

import logging
from typing import Any

from kataru.models.job import JobKind
from kataru.services import prompt_builder
from kataru.services.errors import InvalidInput, ProviderRejected
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

# Rejections that mean "wrong request shape", worth one retry with the other shape
VALIDATION_STATUSES = (400, 422)
PENDING_STATUSES = (202, 204)

NO_VIDEO_URL_MESSAGE = "xAI returned 200 but no video URL was found."


def _dig(payload: Any, *path: Any) -> Any:
    node = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or len(node) <= step:
                return None
        elif not isinstance(node, dict):
            return None
        node = node[step] if isinstance(step, int) else node.get(step)
    return node


# Checked in order; the first string hit wins
RESULT_URL_PATHS: tuple[tuple[Any, ...], ...] = (
    ("url",),
    ("video", "url"),
    ("video_url",),
    ("output", "url"),
    ("data", 0, "url"),
)


def resolve_result_url(payload: Any) -> str | None:
    """Extract the video URL from any of the known result layouts."""
    for path in RESULT_URL_PATHS:
        candidate = _dig(payload, *path)
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


class XAIVideoAdapter(ProviderAdapter):
    """Renders a short promo clip from a still image and a prompt."""

    kind = JobKind.SCENE_GENERATION
    provider_name = "xAI"
    auth_scheme = "Bearer"

    def __init__(
        self,
        *args: Any,
        model: str,
        avatar_bucket: str,
        product_bucket: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.model = model
        self.avatar_bucket = avatar_bucket
        self.product_bucket = product_bucket

    def prepare(
        self, input_refs: dict[str, Any], parameters: dict[str, Any]
    ) -> tuple[dict[str, str], dict[str, Any]]:
        product = (input_refs.get("product_image") or "").strip()
        if not product:
            raise InvalidInput("product_image is required.")

        refs = {"product_image": self.storage.extract_key(product, self.product_bucket)}
        speaker = (input_refs.get("speaker_image") or "").strip()
        if speaker:
            refs["speaker_image"] = self.storage.extract_key(speaker, self.avatar_bucket)
        scene = (input_refs.get("scene_image") or "").strip()
        if scene:
            refs["scene_image"] = self.storage.extract_key(scene, self.product_bucket)

        params = prompt_builder.normalize_scene_parameters(
            parameters, has_speaker="speaker_image" in refs
        )
        return refs, params

    def source_image_url(self, input_refs: dict[str, str]) -> str:
        """Composite scene image when supplied, else the bare product image."""
        reference = input_refs.get("scene_image") or input_refs["product_image"]
        return self.storage.resolve_url(reference, self.product_bucket)

    async def start(self, request: GenerationRequest) -> ProviderSubmission:
        image_url = self.source_image_url(request.input_refs)

        response = None
        for use_image_object in (True, False):
            payload = prompt_builder.build_scene_payload(
                request.parameters,
                model=self.model,
                image_url=image_url,
                use_image_object=use_image_object,
            )
            response = await self._request("POST", "/v1/videos/generations", json=payload)
            if response.is_success or response.status_code not in VALIDATION_STATUSES:
                break
            if use_image_object:
                logger.info(
                    "xAI rejected image object for job %s (HTTP %d), retrying with image_url",
                    request.job_id, response.status_code,
                )

        if not response.is_success:
            body = parse_body(response)
            message = extract_error_message(body, "xAI request failed.")
            logger.warning(
                "xAI rejected job %s: HTTP %d %s", request.job_id, response.status_code, message
            )
            raise ProviderRejected(message, provider_status=response.status_code, body=body)

        data = parse_body(response)
        request_id = None
        if isinstance(data, dict):
            request_id = data.get("request_id") or data.get("id")
        if not request_id:
            raise ProviderRejected("xAI did not return a request_id.", body=data)

        logger.info("xAI request created: %s (job=%s)", request_id, request.job_id)
        return ProviderSubmission(correlation_id=str(request_id))

    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        response = await self._request("GET", f"/v1/videos/{correlation_id}")

        if response.status_code in PENDING_STATUSES:
            return ProviderStatus(phase=ProviderPhase.PENDING)

        if not response.is_success:
            return ProviderStatus(
                phase=ProviderPhase.FAILED,
                message=f"xAI status check failed: HTTP {response.status_code}",
                code="provider_failed",
            )

        video_url = resolve_result_url(parse_body(response))
        if not video_url:
            return ProviderStatus(
                phase=ProviderPhase.FAILED,
                message=NO_VIDEO_URL_MESSAGE,
                code="no_video_url",
            )
        return ProviderStatus(phase=ProviderPhase.SUCCEEDED, result_url=video_url)
