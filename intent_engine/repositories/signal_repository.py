from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select, desc

from intent_engine.models.signal import IntentSignal
from intent_engine.repositories.base import BaseRepository


class SignalRepository(BaseRepository):
    """Append-only access to ``intent_signals``."""

    async def create(self, **kwargs: Any) -> IntentSignal:
        signal = IntentSignal(**kwargs)
        self._db.add(signal)
        await self._db.flush()
        return signal

    async def latest_band(self, subject_id: UUID) -> Optional[str]:
        """Return the band of the most recent signal for *subject_id*."""
        result = await self._db.execute(
            select(IntentSignal.band)
            .where(IntentSignal.subject_id == subject_id)
            .order_by(desc(IntentSignal.emitted_at))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_subject(self, subject_id: UUID) -> List[IntentSignal]:
        result = await self._db.execute(
            select(IntentSignal)
            .where(IntentSignal.subject_id == subject_id)
            .order_by(IntentSignal.emitted_at.asc())
        )
        return list(result.scalars().all())
