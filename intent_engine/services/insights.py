from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from intent_engine.core.constants import TOP_SIGNALS_LIMIT, TOP_SIGNALS_WINDOW_DAYS
from intent_engine.repositories.intent_event_repository import IntentEventRepository


class IntentInsightsService:
    """Read-only views over a subject's scored events."""

    async def top_signals(
        self,
        subject_id: UUID,
        event_repo: IntentEventRepository,
        days: int = TOP_SIGNALS_WINDOW_DAYS,
        limit: int = TOP_SIGNALS_LIMIT,
    ) -> Dict[str, Any]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        rows = await event_repo.top_scored_for_subject(subject_id, since, limit)
        return {
            "subject_id": subject_id,
            "window_days": days,
            "signals": [
                {
                    "event_id": event.id,
                    "event_type": event.event_type,
                    "event_source": event.event_source,
                    "occurred_at": event.occurred_at,
                    "score": score.score,
                    "confidence": float(score.confidence),
                    "reasons": list(score.reasons or []),
                }
                for event, score in rows
            ],
        }

    async def trend(
        self,
        subject_id: UUID,
        event_repo: IntentEventRepository,
        days: int = TOP_SIGNALS_WINDOW_DAYS,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Daily score totals, one point per UTC day with zero-filled gaps."""
        now = now or datetime.now(timezone.utc)
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start = today - timedelta(days=days - 1)
        rows = await event_repo.daily_totals(subject_id, start)

        by_day: Dict[date, Tuple[int, int]] = {}
        for day, score, events in rows:
            by_day[day.date()] = (int(score), int(events))

        points: List[Dict[str, Any]] = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            score, events = by_day.get(day.date(), (0, 0))
            points.append({"day": day, "score": score, "events": events})
        return {"subject_id": subject_id, "days": days, "points": points}
