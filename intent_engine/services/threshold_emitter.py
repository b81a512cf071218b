import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from intent_engine.models.rollup import LeadIntentRollup
from intent_engine.models.signal import IntentSignal
from intent_engine.repositories.marketing_lead_repository import MarketingLeadRepository
from intent_engine.repositories.rollup_repository import RollupRepository
from intent_engine.repositories.signal_repository import SignalRepository
from intent_engine.services.bands import band_from_score, should_emit

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ThresholdEmitter:
    """Write an ``intent_signals`` row when a subject's band moves up.

    The previous band comes from the rollup's ``last_band_emitted``
    pointer, falling back to the newest signal row for subjects whose
    rollup predates the pointer.
    """

    async def previous_band(
        self,
        subject_id: UUID,
        rollup: Optional[LeadIntentRollup],
        signal_repo: SignalRepository,
    ) -> Optional[str]:
        if rollup is not None and rollup.last_band_emitted:
            return rollup.last_band_emitted
        return await signal_repo.latest_band(subject_id)

    async def evaluate(
        self,
        subject_id: UUID,
        rollup: LeadIntentRollup,
        last_event: Any,
        rollup_repo: RollupRepository,
        signal_repo: SignalRepository,
        lead_repo: MarketingLeadRepository,
    ) -> Optional[IntentSignal]:
        """Classify ``score_7d`` and emit when it is a first or upward band.

        *last_event* is the event that triggered the evaluation; its id,
        type, source and time are snapshotted onto the signal.  Returns the
        new signal, or ``None`` when nothing was emitted.
        """
        band = band_from_score(rollup.score_7d)
        previous = await self.previous_band(subject_id, rollup, signal_repo)
        if not should_emit(previous, band):
            return None

        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "lead_id": str(subject_id),
            "score": rollup.score_7d,
            "state": band,
            "source": getattr(last_event, "event_source", None),
            "last_event": {
                "id": str(last_event.id) if getattr(last_event, "id", None) else None,
                "type": getattr(last_event, "event_type", None),
                "occurred_at": _iso(getattr(last_event, "occurred_at", None)),
            },
            "timestamp": now.isoformat(),
        }
        signal = await signal_repo.create(
            subject_id=subject_id,
            band=band,
            score_7d=rollup.score_7d,
            score_30d=rollup.score_30d,
            last_event_id=getattr(last_event, "id", None),
            last_event_type=getattr(last_event, "event_type", None),
            last_event_source=getattr(last_event, "event_source", None),
            last_event_at=getattr(last_event, "occurred_at", None),
            emitted_at=now,
            payload=payload,
        )
        await rollup_repo.set_last_band(subject_id, band)
        await lead_repo.touch_last_signal(subject_id, now)

        logger.info(
            "Intent threshold %s -> %s for subject %s (score_7d=%d)",
            previous,
            band,
            subject_id,
            rollup.score_7d,
        )
        return signal
