from datetime import datetime, timezone
from sqlalchemy import event

from intent_engine.models.intent_rule import IntentRule
from intent_engine.models.marketing_lead import MarketingLead
from intent_engine.models.qualification_config import QualificationConfig
from intent_engine.models.rollup import LeadIntentRollup
from intent_engine.models.sales import SalesTask
from intent_engine.models.subject_score import IntentSubjectScore


# Auto updated_at
@event.listens_for(IntentRule, "before_update")
@event.listens_for(MarketingLead, "before_update")
@event.listens_for(QualificationConfig, "before_update")
@event.listens_for(LeadIntentRollup, "before_update")
@event.listens_for(IntentSubjectScore, "before_update")
@event.listens_for(SalesTask, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = datetime.now(timezone.utc)
