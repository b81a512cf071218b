"""Pydantic schemas package, re-exports for convenience."""

# Common enums
from intent_engine.schemas.common import (
    EventType as EventType,
    RuleType as RuleType,
    ThresholdBand as ThresholdBand,
    SubjectType as SubjectType,
    MarketingStage as MarketingStage,
    SuccessResponse as SuccessResponse,
)

# Intent schemas
from intent_engine.schemas.intent import (
    IntentEventIn as IntentEventIn,
    IngestResponse as IngestResponse,
    IdentifyRequest as IdentifyRequest,
    IdentifyResponse as IdentifyResponse,
    RuleOut as RuleOut,
    RuleUpdate as RuleUpdate,
    EventScoreOut as EventScoreOut,
    RecomputeRequest as RecomputeRequest,
    RecomputeResponse as RecomputeResponse,
    TopSignalsResponse as TopSignalsResponse,
    TrendResponse as TrendResponse,
)

# Tracker beacon
from intent_engine.schemas.track import (
    TrackRequest as TrackRequest,
    TrackResponse as TrackResponse,
)

# Marketing schemas
from intent_engine.schemas.marketing import (
    QualificationConfigOut as QualificationConfigOut,
    QualificationConfigUpdate as QualificationConfigUpdate,
    LeadEventIn as LeadEventIn,
    LeadEventResponse as LeadEventResponse,
    AutoPushResponse as AutoPushResponse,
    StageResult as StageResult,
)
