import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.config import settings
from intent_engine.core.constants import SYSTEM_EVENT_SOURCE
from intent_engine.core.exceptions import EventNotFoundError, PersistenceUnavailableError
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.scoring_engine import IntentScoringEngine, compute_score

logger = logging.getLogger(__name__)


class RecomputeService:
    """Re-score stored events under the current rules.

    Rollups are refreshed afterwards but no threshold signals are emitted:
    a rule change is not new behavior by the subject.
    """

    def __init__(
        self,
        scoring_engine: IntentScoringEngine,
        rollup_aggregator: RollupAggregator,
    ) -> None:
        self._engine = scoring_engine
        self._aggregator = rollup_aggregator

    async def rescore_event(
        self, event_id: UUID, repos: IntentRepositories
    ) -> Dict[str, Any]:
        event = await repos.events.get_by_id(event_id)
        if event is None:
            raise EventNotFoundError(f"Event {event_id} not found")

        try:
            result = await self._engine.score_and_store(
                event_id=event.id,
                event_type=event.event_type,
                event_source=event.event_source,
                metadata=event.event_metadata,
                rule_repo=repos.rules,
                score_repo=repos.scores,
            )
            subject_id, subject_type = self._subject_of(event)
            await self._aggregator.recompute(subject_id, subject_type, repos.rollups)
            await repos.commit()
        except SQLAlchemyError as exc:
            await repos.rollback()
            logger.error("Re-score of event %s failed: %s", event_id, exc)
            raise PersistenceUnavailableError("Failed to re-score event") from exc

        return {
            "event_id": event.id,
            "score": result.score,
            "confidence": result.confidence,
            "reasons": list(result.reasons),
            "model_version": self._engine.model_version,
        }

    async def recompute(
        self, repos: IntentRepositories, days: Optional[int] = None
    ) -> Dict[str, Any]:
        days = days or settings.RECOMPUTE_DEFAULT_DAYS
        now = datetime.now(timezone.utc)
        subjects: Set[Tuple[UUID, str]] = set()
        processed = 0

        try:
            rules = await repos.rules.get_active_rules()
            events = await repos.events.list_since(now - timedelta(days=days))
            for event in events:
                # Audit rows written by the system are never scored
                if event.event_source == SYSTEM_EVENT_SOURCE:
                    continue
                result = compute_score(
                    event.event_type, event.event_source, event.event_metadata, rules
                )
                await repos.scores.upsert(
                    intent_event_id=event.id,
                    score=result.score,
                    confidence=result.confidence,
                    reasons=list(result.reasons),
                    model_version=self._engine.model_version,
                )
                subjects.add(self._subject_of(event))
                processed += 1

            for subject_id, subject_type in subjects:
                await self._aggregator.recompute(
                    subject_id, subject_type, repos.rollups, now=now
                )
            await repos.commit()
        except SQLAlchemyError as exc:
            await repos.rollback()
            logger.error("Recompute over %d days failed: %s", days, exc)
            raise PersistenceUnavailableError("Recompute failed") from exc

        logger.info(
            "Recomputed %d events across %d subjects (last %d days)",
            processed,
            len(subjects),
            days,
        )
        return {
            "processed": processed,
            "subjects": len(subjects),
            "message": (
                f"Re-scored {processed} events across {len(subjects)} subjects "
                f"from the last {days} days"
            ),
        }

    @staticmethod
    def _subject_of(event: Any) -> Tuple[UUID, str]:
        if event.lead_id is not None:
            return event.lead_id, "lead"
        return event.anonymous_id, "anonymous"
