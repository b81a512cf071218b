from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.intent_score import IntentScore
from intent_engine.repositories.base import BaseRepository


class IntentScoreRepository(BaseRepository):
    """Encapsulates queries against the ``intent_scores`` table."""

    async def upsert(
        self,
        intent_event_id: UUID,
        score: int,
        confidence: float,
        reasons: List[str],
        model_version: str,
    ) -> None:
        """Insert the score for an event, or overwrite the existing one."""
        values = {
            "score": score,
            "confidence": confidence,
            "reasons": reasons,
            "model_version": model_version,
        }
        stmt = pg_insert(IntentScore).values(intent_event_id=intent_event_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["intent_event_id"],
            set_={**values, "scored_at": func.now()},
        )
        await self._db.execute(stmt)

    async def get_by_event_id(self, intent_event_id: UUID) -> Optional[IntentScore]:
        result = await self._db.execute(
            select(IntentScore)
            .where(IntentScore.intent_event_id == intent_event_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
