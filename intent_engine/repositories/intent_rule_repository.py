import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, update

from intent_engine.models.intent_rule import IntentRule
from intent_engine.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class IntentRuleRepository(BaseRepository):
    """Encapsulates queries against the ``intent_rules`` table."""

    async def get_active_rules(self) -> List[IntentRule]:
        """Return every active rule ordered by rule_key.

        Read fresh on each scoring call so that admin edits apply to the
        very next event.
        """
        result = await self._db.execute(
            select(IntentRule)
            .where(IntentRule.is_active.is_(True))
            .order_by(IntentRule.rule_key)
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[IntentRule]:
        result = await self._db.execute(
            select(IntentRule).order_by(IntentRule.rule_type, IntentRule.rule_key)
        )
        return list(result.scalars().all())

    async def update_fields(
        self, rule_key: str, values: Dict[str, Any]
    ) -> Optional[IntentRule]:
        """Apply *values* to the rule and return the updated row, or ``None``."""
        result = await self._db.execute(
            update(IntentRule)
            .where(IntentRule.rule_key == rule_key)
            .values(**values, updated_at=func.now())
            .returning(IntentRule)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def seed_if_empty(self) -> int:
        """Insert default intent rules when the table is empty.

        Returns the number of rules inserted (``0`` when rules already
        exist).  The canonical definitions live in
        ``intent_engine.core.default_scoring_rules.DEFAULT_INTENT_RULES``.
        """
        from intent_engine.core.default_scoring_rules import DEFAULT_INTENT_RULES

        count_result = await self._db.execute(
            select(func.count()).select_from(IntentRule)
        )
        if count_result.scalar():
            return 0

        logger.info("intent_rules table is empty, seeding defaults")
        for rule_data in DEFAULT_INTENT_RULES:
            self._db.add(IntentRule(**rule_data))
        await self._db.flush()
        logger.info("Seeded %d default intent rules", len(DEFAULT_INTENT_RULES))
        return len(DEFAULT_INTENT_RULES)
