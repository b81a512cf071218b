from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from intent_engine.repositories.identity_repository import IdentityRepository
from intent_engine.repositories.intent_event_repository import IntentEventRepository
from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
from intent_engine.repositories.intent_score_repository import IntentScoreRepository
from intent_engine.repositories.marketing_lead_repository import MarketingLeadRepository
from intent_engine.repositories.qualification_config_repository import (
    QualificationConfigRepository,
)
from intent_engine.repositories.rollup_repository import RollupRepository
from intent_engine.repositories.sales_repository import SalesRepository
from intent_engine.repositories.signal_repository import SignalRepository
from intent_engine.repositories.stage_rule_repository import StageRuleRepository
from intent_engine.repositories.subject_score_repository import SubjectScoreRepository


@dataclass
class IntentRepositories:
    """Every repository the intent pipeline touches, sharing one session.

    Because they share the session, ``commit`` / ``rollback`` on any of
    them ends the same unit-of-work.
    """

    events: IntentEventRepository
    scores: IntentScoreRepository
    rules: IntentRuleRepository
    rollups: RollupRepository
    signals: SignalRepository
    subject_scores: SubjectScoreRepository
    identities: IdentityRepository
    leads: MarketingLeadRepository
    stage_rules: StageRuleRepository
    config: QualificationConfigRepository
    sales: SalesRepository

    @classmethod
    def from_session(cls, db: AsyncSession) -> "IntentRepositories":
        return cls(
            events=IntentEventRepository(db),
            scores=IntentScoreRepository(db),
            rules=IntentRuleRepository(db),
            rollups=RollupRepository(db),
            signals=SignalRepository(db),
            subject_scores=SubjectScoreRepository(db),
            identities=IdentityRepository(db),
            leads=MarketingLeadRepository(db),
            stage_rules=StageRuleRepository(db),
            config=QualificationConfigRepository(db),
            sales=SalesRepository(db),
        )

    async def commit(self) -> None:
        await self.events.commit()

    async def rollback(self) -> None:
        await self.events.rollback()
