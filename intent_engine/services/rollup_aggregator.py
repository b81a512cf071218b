import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from intent_engine.core.constants import ROLLUP_LONG_WINDOW_DAYS, ROLLUP_SHORT_WINDOW_DAYS
from intent_engine.models.rollup import LeadIntentRollup
from intent_engine.repositories.rollup_repository import RollupRepository

logger = logging.getLogger(__name__)


class RollupAggregator:
    """Rebuild a subject's 7-day / 30-day totals from its scored events.

    Totals are always recomputed from scratch; the previous rollup values
    are never incremented, so concurrent writers converge on the same
    answer once the last one commits.
    """

    def __init__(
        self,
        short_window_days: int = ROLLUP_SHORT_WINDOW_DAYS,
        long_window_days: int = ROLLUP_LONG_WINDOW_DAYS,
    ) -> None:
        self._short = timedelta(days=short_window_days)
        self._long = timedelta(days=long_window_days)

    async def recompute(
        self,
        subject_id: UUID,
        subject_type: str,
        rollup_repo: RollupRepository,
        now: Optional[datetime] = None,
    ) -> LeadIntentRollup:
        now = now or datetime.now(timezone.utc)
        score_7d, score_30d, last_event_at = await rollup_repo.compute_window_totals(
            subject_id,
            short_since=now - self._short,
            long_since=now - self._long,
        )
        rollup = await rollup_repo.upsert_totals(
            subject_id=subject_id,
            subject_type=subject_type,
            score_7d=score_7d,
            score_30d=score_30d,
            last_event_at=last_event_at,
        )
        logger.debug(
            "Rollup for %s %s: 7d=%d 30d=%d", subject_type, subject_id, score_7d, score_30d
        )
        return rollup
