"""Voice catalogue for the talking-avatar provider."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from kataru.api.deps import get_orchestrator, http_error
from kataru.models.job import JobKind
from kataru.schemas.job import VoiceList
from kataru.services.errors import KataruError
from kataru.services.orchestrator import JobOrchestrator

router = APIRouter()


@router.get("", response_model=VoiceList)
async def list_voices(
    provider: str | None = None,
    locale: str | None = None,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """List D-ID voices, optionally filtered by TTS provider and locale prefix."""
    adapter = orchestrator.adapter_for(JobKind.LIPSYNC)
    try:
        voices = await adapter.list_voices(provider=provider, locale=locale)
    except KataruError as e:
        raise http_error(e) from e
    return VoiceList(voices=voices)
