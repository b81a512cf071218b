from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update, and_, or_, func, desc
from sqlalchemy.dialects.postgresql import insert as pg_insert

from intent_engine.models.intent_event import IntentEvent
from intent_engine.models.intent_score import IntentScore
from intent_engine.repositories.base import BaseRepository


def subject_filter(subject_id: UUID):
    """Rows that belong to *subject_id*.

    A subject is a lead when the event carries a ``lead_id``; otherwise
    it is the anonymous visitor.  Events of an anonymous visitor that were
    later attached to a lead only count toward the lead.
    """
    return or_(
        IntentEvent.lead_id == subject_id,
        and_(IntentEvent.lead_id.is_(None), IntentEvent.anonymous_id == subject_id),
    )


class IntentEventRepository(BaseRepository):
    """Encapsulates every SQL query that touches the ``intent_events`` table."""

    async def insert_event(self, **values: Any) -> Optional[UUID]:
        """Insert an event; return its id, or ``None`` on a dedupe conflict.

        ``metadata`` is accepted under its column name.
        """
        if "metadata" in values:
            values["event_metadata"] = values.pop("metadata")
        stmt = (
            pg_insert(IntentEvent)
            .values(**values)
            .on_conflict_do_nothing(
                index_elements=["event_source", "dedupe_key"],
                index_where=IntentEvent.dedupe_key.isnot(None),
            )
            .returning(IntentEvent.id)
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, event_id: UUID) -> Optional[IntentEvent]:
        result = await self._db.execute(
            select(IntentEvent).where(IntentEvent.id == event_id)
        )
        return result.scalar_one_or_none()

    async def get_by_dedupe(
        self, event_source: str, dedupe_key: str
    ) -> Optional[IntentEvent]:
        result = await self._db.execute(
            select(IntentEvent).where(
                IntentEvent.event_source == event_source,
                IntentEvent.dedupe_key == dedupe_key,
            )
        )
        return result.scalar_one_or_none()

    async def list_since(self, since: datetime) -> List[IntentEvent]:
        """Return events that occurred at or after *since*, oldest first."""
        result = await self._db.execute(
            select(IntentEvent)
            .where(IntentEvent.occurred_at >= since)
            .order_by(IntentEvent.occurred_at.asc())
        )
        return list(result.scalars().all())

    async def list_for_lead(self, lead_id: UUID) -> List[IntentEvent]:
        result = await self._db.execute(
            select(IntentEvent)
            .where(IntentEvent.lead_id == lead_id)
            .order_by(IntentEvent.occurred_at.asc())
        )
        return list(result.scalars().all())

    async def backfill_identity(self, anonymous_id: UUID, identity_id: UUID) -> int:
        """Stamp *identity_id* on the visitor's events that have none yet."""
        result = await self._db.execute(
            update(IntentEvent)
            .where(
                IntentEvent.anonymous_id == anonymous_id,
                IntentEvent.identity_id.is_(None),
            )
            .values(identity_id=identity_id)
        )
        return result.rowcount or 0

    async def attach_to_lead(self, anonymous_id: UUID, lead_id: UUID) -> int:
        """Move the visitor's unassigned events onto *lead_id*."""
        result = await self._db.execute(
            update(IntentEvent)
            .where(
                IntentEvent.anonymous_id == anonymous_id,
                IntentEvent.lead_id.is_(None),
            )
            .values(lead_id=lead_id)
        )
        return result.rowcount or 0

    async def top_scored_for_subject(
        self, subject_id: UUID, since: datetime, limit: int
    ) -> Sequence[Tuple[IntentEvent, IntentScore]]:
        """Highest-scoring events of a subject since *since*, with their scores."""
        result = await self._db.execute(
            select(IntentEvent, IntentScore)
            .join(IntentScore, IntentScore.intent_event_id == IntentEvent.id)
            .where(subject_filter(subject_id), IntentEvent.occurred_at >= since)
            .order_by(desc(IntentScore.score), desc(IntentEvent.occurred_at))
            .limit(limit)
        )
        return list(result.tuples().all())

    async def top_scored_for_identity(
        self, identity_id: UUID, since: datetime, limit: int
    ) -> Sequence[Tuple[IntentEvent, IntentScore]]:
        result = await self._db.execute(
            select(IntentEvent, IntentScore)
            .join(IntentScore, IntentScore.intent_event_id == IntentEvent.id)
            .where(
                IntentEvent.identity_id == identity_id,
                IntentEvent.occurred_at >= since,
            )
            .order_by(desc(IntentScore.score), desc(IntentEvent.occurred_at))
            .limit(limit)
        )
        return list(result.tuples().all())

    async def daily_totals(
        self, subject_id: UUID, since: datetime
    ) -> Sequence[Tuple[datetime, int, int]]:
        """Return ``(day, score_total, event_count)`` per UTC day since *since*."""
        day = func.date_trunc("day", func.timezone("UTC", IntentEvent.occurred_at))
        result = await self._db.execute(
            select(
                day.label("day"),
                func.coalesce(func.sum(IntentScore.score), 0).label("score"),
                func.count(IntentEvent.id).label("events"),
            )
            .select_from(IntentEvent)
            .outerjoin(IntentScore, IntentScore.intent_event_id == IntentEvent.id)
            .where(subject_filter(subject_id), IntentEvent.occurred_at >= since)
            .group_by(day)
            .order_by(day)
        )
        return list(result.tuples().all())
