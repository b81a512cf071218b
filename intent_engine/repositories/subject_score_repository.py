from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.subject_score import IntentSubjectScore
from intent_engine.repositories.base import BaseRepository


class SubjectScoreRepository(BaseRepository):
    """Encapsulates queries against ``intent_subject_scores``."""

    async def get(
        self, subject_type: str, subject_id: UUID
    ) -> Optional[IntentSubjectScore]:
        result = await self._db.execute(
            select(IntentSubjectScore)
            .where(
                IntentSubjectScore.subject_type == subject_type,
                IntentSubjectScore.subject_id == subject_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def add_score(
        self,
        subject_type: str,
        subject_id: UUID,
        delta: int,
        event_at: datetime,
    ) -> None:
        """Atomically add *delta* to the subject's running total."""
        table = IntentSubjectScore.__table__
        stmt = pg_insert(IntentSubjectScore).values(
            subject_type=subject_type,
            subject_id=subject_id,
            total_score=delta,
            last_event_at=event_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["subject_type", "subject_id"],
            set_={
                "total_score": table.c.total_score + stmt.excluded.total_score,
                "last_event_at": func.greatest(
                    table.c.last_event_at, stmt.excluded.last_event_at
                ),
                "updated_at": func.now(),
            },
        )
        await self._db.execute(stmt)

    async def set_total(
        self,
        subject_type: str,
        subject_id: UUID,
        total_score: int,
        last_event_at: Optional[datetime],
    ) -> None:
        values = {"total_score": total_score, "last_event_at": last_event_at}
        stmt = pg_insert(IntentSubjectScore).values(
            subject_type=subject_type, subject_id=subject_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["subject_type", "subject_id"],
            set_={**values, "updated_at": func.now()},
        )
        await self._db.execute(stmt)

    async def update_fields(
        self, subject_type: str, subject_id: UUID, values: Dict[str, Any]
    ) -> None:
        """Update arbitrary columns; ``metadata`` maps to ``subject_metadata``."""
        if "metadata" in values:
            values = dict(values)
            values["subject_metadata"] = values.pop("metadata")
        await self._db.execute(
            update(IntentSubjectScore)
            .where(
                IntentSubjectScore.subject_type == subject_type,
                IntentSubjectScore.subject_id == subject_id,
            )
            .values(**values, updated_at=func.now())
        )
