from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func, case
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.intent_event import IntentEvent
from intent_engine.models.intent_score import IntentScore
from intent_engine.models.rollup import LeadIntentRollup
from intent_engine.repositories.base import BaseRepository
from intent_engine.repositories.intent_event_repository import subject_filter


class RollupRepository(BaseRepository):
    """Encapsulates queries against ``lead_intent_rollups``."""

    async def compute_window_totals(
        self, subject_id: UUID, short_since: datetime, long_since: datetime
    ) -> Tuple[int, int, Optional[datetime]]:
        """Sum event scores in both windows and find the latest event time.

        Everything is aggregated from ``intent_events`` joined to
        ``intent_scores``; nothing is read from the previous rollup.
        """
        result = await self._db.execute(
            select(
                func.coalesce(
                    func.sum(
                        case(
                            (IntentEvent.occurred_at >= short_since, IntentScore.score),
                            else_=0,
                        )
                    ),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case(
                            (IntentEvent.occurred_at >= long_since, IntentScore.score),
                            else_=0,
                        )
                    ),
                    0,
                ),
                func.max(IntentEvent.occurred_at),
            )
            .select_from(IntentEvent)
            .outerjoin(IntentScore, IntentScore.intent_event_id == IntentEvent.id)
            .where(subject_filter(subject_id))
        )
        score_7d, score_30d, last_event_at = result.one()
        return int(score_7d), int(score_30d), last_event_at

    async def upsert_totals(
        self,
        subject_id: UUID,
        subject_type: str,
        score_7d: int,
        score_30d: int,
        last_event_at: Optional[datetime],
    ) -> LeadIntentRollup:
        """Overwrite the windowed totals; ``last_band_emitted`` is preserved."""
        values = {
            "subject_type": subject_type,
            "score_7d": score_7d,
            "score_30d": score_30d,
            "last_event_at": last_event_at,
        }
        stmt = (
            pg_insert(LeadIntentRollup)
            .values(subject_id=subject_id, **values)
            .on_conflict_do_update(
                index_elements=["subject_id"],
                set_={**values, "updated_at": func.now()},
            )
            .returning(LeadIntentRollup)
            .execution_options(populate_existing=True)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one()

    async def get(self, subject_id: UUID) -> Optional[LeadIntentRollup]:
        result = await self._db.execute(
            select(LeadIntentRollup).where(LeadIntentRollup.subject_id == subject_id)
        )
        return result.scalar_one_or_none()

    async def set_last_band(self, subject_id: UUID, band: str) -> None:
        await self._db.execute(
            update(LeadIntentRollup)
            .where(LeadIntentRollup.subject_id == subject_id)
            .values(last_band_emitted=band, updated_at=func.now())
        )
