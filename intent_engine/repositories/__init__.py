"""Repository layer. All database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.
"""

from intent_engine.repositories.intent_event_repository import IntentEventRepository
from intent_engine.repositories.intent_score_repository import IntentScoreRepository
from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
from intent_engine.repositories.rollup_repository import RollupRepository
from intent_engine.repositories.signal_repository import SignalRepository
from intent_engine.repositories.subject_score_repository import SubjectScoreRepository
from intent_engine.repositories.identity_repository import IdentityRepository
from intent_engine.repositories.marketing_lead_repository import MarketingLeadRepository
from intent_engine.repositories.stage_rule_repository import StageRuleRepository
from intent_engine.repositories.qualification_config_repository import (
    QualificationConfigRepository,
)
from intent_engine.repositories.sales_repository import SalesRepository
from intent_engine.repositories.unit_of_work import IntentRepositories

__all__ = [
    "IntentEventRepository",
    "IntentScoreRepository",
    "IntentRuleRepository",
    "RollupRepository",
    "SignalRepository",
    "SubjectScoreRepository",
    "IdentityRepository",
    "MarketingLeadRepository",
    "StageRuleRepository",
    "QualificationConfigRepository",
    "SalesRepository",
    "IntentRepositories",
]
