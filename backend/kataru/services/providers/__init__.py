"""Video provider adapters.

Each adapter implements the same narrow submit/poll interface:
  prepare → start (POST create task) → fetch_status (one GET per poll)
Polling cadence and result download belong to the orchestrator.
"""

from kataru.services.providers.base import (
    GenerationRequest,
    ProviderAdapter,
    ProviderConfig,
    ProviderPhase,
    ProviderStatus,
    ProviderSubmission,
)
from kataru.services.providers.did_lipsync import DIDLipsyncAdapter
from kataru.services.providers.xai_video import XAIVideoAdapter

__all__ = [
    "GenerationRequest",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderPhase",
    "ProviderStatus",
    "ProviderSubmission",
    "DIDLipsyncAdapter",
    "XAIVideoAdapter",
]
