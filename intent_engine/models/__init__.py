from intent_engine.models.base import Base
from intent_engine.models.intent_event import IntentEvent
from intent_engine.models.intent_score import IntentScore
from intent_engine.models.intent_rule import IntentRule
from intent_engine.models.rollup import LeadIntentRollup
from intent_engine.models.signal import IntentSignal
from intent_engine.models.subject_score import IntentSubjectScore
from intent_engine.models.identity import Identity, TrackingSession
from intent_engine.models.marketing_lead import MarketingLead
from intent_engine.models.stage_rule import StageScoringRule
from intent_engine.models.qualification_config import QualificationConfig
from intent_engine.models.sales import SalesCustomer, SalesTask

# Import event listeners to register them
from intent_engine.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "IntentEvent",
    "IntentScore",
    "IntentRule",
    "LeadIntentRollup",
    "IntentSignal",
    "IntentSubjectScore",
    "Identity",
    "TrackingSession",
    "MarketingLead",
    "StageScoringRule",
    "QualificationConfig",
    "SalesCustomer",
    "SalesTask",
]
