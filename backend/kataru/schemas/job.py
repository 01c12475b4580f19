"""Pydantic v2 schemas for job submission, polling and housekeeping."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from kataru.models.job import JobState


class VoiceSelection(BaseModel):
    provider: str | None = None
    voice_id: str | None = None
    style: str | None = None


class LipsyncJobCreate(BaseModel):
    """Talking-avatar request: portrait + product image + script."""

    avatar_image: str = Field(..., description="Storage key or public URL of the portrait")
    product_image: str = Field(..., description="Storage key or public URL of the product")
    script_text: str = Field(..., max_length=5000)
    voice: VoiceSelection | None = None
    use_stitch: bool = True

    def input_refs(self) -> dict[str, str]:
        return {"avatar_image": self.avatar_image, "product_image": self.product_image}

    def parameters(self) -> dict[str, Any]:
        return {
            "script_text": self.script_text,
            "voice": self.voice.model_dump() if self.voice else None,
            "use_stitch": self.use_stitch,
        }


class SceneJobCreate(BaseModel):
    """Promo-clip request: product image (optionally a speaker/composite) + description."""

    product_image: str
    speaker_image: str | None = None
    scene_image: str | None = Field(None, description="Client-composited speaker + product image")
    product_name: str | None = Field(None, max_length=255)
    product_description: str = Field(..., max_length=2000)
    brand_tone: str | None = None
    scene_style: str | None = None
    motion_style: str | None = None
    aspect_ratio: str | None = None
    duration: int | None = Field(None, description="Seconds; clamped to the supported range")
    resolution: str | None = None

    def input_refs(self) -> dict[str, str]:
        refs = {"product_image": self.product_image}
        if self.speaker_image:
            refs["speaker_image"] = self.speaker_image
        if self.scene_image:
            refs["scene_image"] = self.scene_image
        return refs

    def parameters(self) -> dict[str, Any]:
        return self.model_dump(exclude={"product_image", "speaker_image", "scene_image"})


class JobSubmitted(BaseModel):
    job_id: str
    status: JobState


class ErrorBody(BaseModel):
    code: str | None = None
    message: str


class JobStatusRead(BaseModel):
    job_id: str
    kind: str
    status: JobState
    result_url: str | None = None
    error: ErrorBody | None = None


class VoiceList(BaseModel):
    voices: list[dict[str, Any]]


class UploadCreate(BaseModel):
    """Image upload as a base64 data URL (``data:image/png;base64,...``)."""

    bucket: str = Field(..., description="'avatars' or 'products'")
    data_url: str


class UploadRead(BaseModel):
    bucket: str
    key: str
    url: str


class CleanupRequest(BaseModel):
    days: int | None = Field(None, ge=0)


class CleanupResult(BaseModel):
    removed: int
    objects_removed: int = 0
