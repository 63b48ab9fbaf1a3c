"""Request models for the job API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vtp.domain.models import VIDEO_ID_PATTERN


class EnqueueJobRequest(BaseModel):
    """Body of POST /api/jobs."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    video_id: str = Field(min_length=1, max_length=128)
    source: str = Field(min_length=1)

    @field_validator("video_id")
    @classmethod
    def validate_video_id(cls, v: str) -> str:
        if not VIDEO_ID_PATTERN.match(v):
            raise ValueError("video_id may contain only letters, digits, '-' and '_'")
        return v

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("source must not be blank")
        return v
