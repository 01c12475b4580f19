"""Wires settings into storage, adapters, store and orchestrator."""

from __future__ import annotations

from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kataru.config import Settings
from kataru.models.job import JobKind
from kataru.services.job_store import JobStore
from kataru.services.materializer import AssetMaterializer
from kataru.services.orchestrator import JobOrchestrator
from kataru.services.providers import DIDLipsyncAdapter, ProviderConfig, XAIVideoAdapter
from kataru.services.storage import LocalObjectStorage


def build_storage(settings: Settings) -> LocalObjectStorage:
    return LocalObjectStorage(settings.MEDIA_VOLUME, settings.PUBLIC_BASE_URL)


def did_config(settings: Settings) -> ProviderConfig:
    return ProviderConfig(
        base_url=settings.D_ID_API_URL,
        credential=settings.D_ID_API_KEY or None,
        default_voice=settings.DEFAULT_VOICE_ID or None,
        timeout=settings.PROVIDER_TIMEOUT,
    )


def xai_config(settings: Settings) -> ProviderConfig:
    return ProviderConfig(
        base_url=settings.XAI_API_URL,
        credential=settings.XAI_API_KEY or None,
        timeout=settings.PROVIDER_TIMEOUT,
    )


def build_lipsync_adapter(
    settings: Settings,
    storage: LocalObjectStorage,
    http_client: httpx.AsyncClient | None = None,
) -> DIDLipsyncAdapter:
    return DIDLipsyncAdapter(
        did_config(settings),
        storage,
        http_client=http_client,
        avatar_bucket=settings.AVATAR_BUCKET,
        product_bucket=settings.PRODUCT_BUCKET,
        default_voice_provider=settings.DEFAULT_VOICE_PROVIDER,
    )


def build_scene_adapter(
    settings: Settings,
    storage: LocalObjectStorage,
    http_client: httpx.AsyncClient | None = None,
) -> XAIVideoAdapter:
    return XAIVideoAdapter(
        xai_config(settings),
        storage,
        http_client=http_client,
        model=settings.XAI_VIDEO_MODEL,
        avatar_bucket=settings.AVATAR_BUCKET,
        product_bucket=settings.PRODUCT_BUCKET,
    )


def build_orchestrator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    storage: LocalObjectStorage | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> JobOrchestrator:
    """Assemble an orchestrator; ``http_client`` is shared by adapters and downloads."""
    storage = storage or build_storage(settings)
    adapters = {
        JobKind.LIPSYNC: build_lipsync_adapter(settings, storage, http_client),
        JobKind.SCENE_GENERATION: build_scene_adapter(settings, storage, http_client),
    }
    materializer = AssetMaterializer(
        storage,
        settings.VIDEO_BUCKET,
        http_client=http_client,
        timeout=settings.DOWNLOAD_TIMEOUT,
    )
    return JobOrchestrator(
        JobStore(session_factory),
        adapters,
        materializer,
        storage,
        video_bucket=settings.VIDEO_BUCKET,
        materialize_lease=timedelta(seconds=settings.MATERIALIZE_LEASE_SECONDS),
    )
