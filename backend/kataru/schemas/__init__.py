"""Pydantic v2 schemas package."""

from kataru.schemas.job import (
    CleanupRequest,
    CleanupResult,
    ErrorBody,
    JobStatusRead,
    JobSubmitted,
    LipsyncJobCreate,
    SceneJobCreate,
    UploadCreate,
    UploadRead,
    VoiceList,
    VoiceSelection,
)

__all__ = [
    "CleanupRequest",
    "CleanupResult",
    "ErrorBody",
    "JobStatusRead",
    "JobSubmitted",
    "LipsyncJobCreate",
    "SceneJobCreate",
    "UploadCreate",
    "UploadRead",
    "VoiceList",
    "VoiceSelection",
]
