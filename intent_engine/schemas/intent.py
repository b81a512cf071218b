"""Intent-scoring Pydantic schemas (ingest, identify, rules, insights)."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from intent_engine.schemas.common import RuleType, ThresholdBand

RULE_DESCRIPTION_MAX_LENGTH = 500


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class IntentEventIn(BaseModel):
    """Raw inbound event.

    Fields are typed loosely on purpose: the event validator owns the
    rules and reports every problem in one field-keyed error map.
    """

    model_config = ConfigDict(extra="ignore")

    event_type: Optional[str] = None
    lead_id: Optional[str] = None
    anonymous_id: Optional[str] = None
    event_source: Optional[str] = None
    occurred_at: Optional[Union[int, float, str]] = None
    metadata: Optional[Any] = None
    dedupe_key: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = None
    path: Optional[str] = None
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None


class IdentifyRequest(BaseModel):
    """Request body for POST /api/v1/intent/identify."""

    anonymous_id: UUID
    email: EmailStr
    name: Optional[str] = Field(None, max_length=200)
    source: Optional[str] = Field(None, max_length=50)


class RuleUpdate(BaseModel):
    """Partial update for an intent rule; at least one field is required."""

    model_config = ConfigDict(extra="forbid")

    points: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=RULE_DESCRIPTION_MAX_LENGTH)
    is_active: Optional[bool] = None


class RecomputeRequest(BaseModel):
    days: Optional[int] = Field(None, ge=1, le=365)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class IngestResponse(BaseModel):
    """Outcome of recording one event.

    ``stored`` is ``False`` (with a ``reason``) when persistence was
    unavailable; the caller may retry with the same ``dedupe_key``.
    """

    event_id: Optional[UUID] = None
    subject_id: Optional[UUID] = None
    scored: bool = False
    stored: bool = True
    duplicate: bool = False
    reason: Optional[str] = None


class IdentifyResponse(BaseModel):
    identity_id: UUID
    merged: bool
    previous_anonymous_score: int
    previous_identity_score: int
    total_identity_score: int
    band: ThresholdBand
    threshold_emitted: bool


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_key: str
    rule_type: RuleType
    event_type: Optional[str] = None
    modifier_condition: Optional[Dict[str, Any]] = None
    points: int
    is_active: bool
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class EventScoreOut(BaseModel):
    event_id: UUID
    score: int
    confidence: float
    reasons: List[str] = Field(default_factory=list)
    model_version: str


class RecomputeResponse(BaseModel):
    processed: int
    subjects: int
    message: str


class TopSignal(BaseModel):
    event_id: UUID
    event_type: str
    event_source: str
    occurred_at: datetime
    score: int
    confidence: float
    reasons: List[str] = Field(default_factory=list)


class TopSignalsResponse(BaseModel):
    subject_id: UUID
    window_days: int
    signals: List[TopSignal] = Field(default_factory=list)


class TrendPoint(BaseModel):
    day: datetime
    score: int
    events: int


class TrendResponse(BaseModel):
    subject_id: UUID
    days: int
    points: List[TrendPoint] = Field(default_factory=list)
