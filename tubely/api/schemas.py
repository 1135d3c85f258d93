from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Boots on the ground"})
    description: str = Field(default="", json_schema_extra={"example": "First take."})


class VideoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    title: str
    description: str
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlaybackURLResponse(BaseModel):
    url: str
    expires_in: int = Field(..., description="Seconds until the URL stops working.")


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "HealthResponse",
    "VideoCreateRequest",
    "VideoResponse",
    "PlaybackURLResponse",
    "ErrorResponse",
]
