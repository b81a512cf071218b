"""Marketing-side schemas: qualification config, lead events and auto-push."""

from typing import Any, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from intent_engine.schemas.common import MarketingStage
from intent_engine.schemas.intent import IngestResponse


class QualificationConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    m1_min: int
    m2_min: int
    m3_min: int
    m4_min: int
    m5_min: int
    auto_push_threshold: int
    decay_points_per_week: int


class QualificationConfigUpdate(BaseModel):
    """Partial update; every present field must be a non-negative integer."""

    model_config = ConfigDict(extra="forbid")

    m1_min: Optional[int] = Field(None, ge=0)
    m2_min: Optional[int] = Field(None, ge=0)
    m3_min: Optional[int] = Field(None, ge=0)
    m4_min: Optional[int] = Field(None, ge=0)
    m5_min: Optional[int] = Field(None, ge=0)
    auto_push_threshold: Optional[int] = Field(None, ge=0)
    decay_points_per_week: Optional[int] = Field(None, ge=0)


class LeadEventIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_type: Optional[str] = None
    event_source: Optional[str] = None
    occurred_at: Optional[Union[int, float, str]] = None
    metadata: Optional[Any] = None
    dedupe_key: Optional[str] = Field(None, max_length=255)


class AutoPushResponse(BaseModel):
    pushed: bool
    customer_id: Optional[UUID] = None
    reason: Optional[str] = None


class StageResult(BaseModel):
    stage: MarketingStage
    intent_score: int
    should_auto_push: bool


class LeadEventResponse(BaseModel):
    event: IngestResponse
    stage: Optional[StageResult] = None
    auto_push: Optional[AutoPushResponse] = None


class LeadLookup(BaseModel):
    """How a webhook event finds its lead: email first, then phone."""

    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)


class WebhookEventIn(LeadEventIn):
    lead_lookup: LeadLookup = Field(
        ..., validation_alias=AliasChoices("lead_lookup", "leadLookup")
    )


class WebhookEventResponse(LeadEventResponse):
    lead_id: UUID
    lead_created: bool
