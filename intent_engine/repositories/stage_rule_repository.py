import logging
from typing import List

from sqlalchemy import select, func

from intent_engine.models.stage_rule import StageScoringRule
from intent_engine.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class StageRuleRepository(BaseRepository):
    """Encapsulates queries against the ``stage_scoring_rules`` table."""

    async def get_active_rules(self) -> List[StageScoringRule]:
        result = await self._db.execute(
            select(StageScoringRule)
            .where(StageScoringRule.is_active.is_(True))
            .order_by(StageScoringRule.event_type)
        )
        return list(result.scalars().all())

    async def seed_if_empty(self) -> int:
        from intent_engine.core.default_scoring_rules import DEFAULT_STAGE_RULES

        count_result = await self._db.execute(
            select(func.count()).select_from(StageScoringRule)
        )
        if count_result.scalar():
            return 0

        logger.info("stage_scoring_rules table is empty, seeding defaults")
        for rule_data in DEFAULT_STAGE_RULES:
            self._db.add(StageScoringRule(**rule_data))
        await self._db.flush()
        return len(DEFAULT_STAGE_RULES)
