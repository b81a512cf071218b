"""Browser tracker beacon schemas."""

from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TrackRequest(BaseModel):
    """Beacon posted by the website tracker for every raw interaction."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1, max_length=50)
    session_id: UUID
    anonymous_id: Optional[UUID] = None
    event_id: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = None
    referrer: Optional[str] = None
    timestamp: Optional[Union[int, float, str]] = None
    value: Optional[float] = Field(None, allow_inf_nan=False)
    metadata: Optional[Any] = None


class TrackResponse(BaseModel):
    ok: bool = True
    stored: bool
    reason: Optional[str] = None
    request_id: str
