import asyncio
import logging
from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.cache import CacheService
from intent_engine.core.config import settings
from intent_engine.models.intent_event import IntentEvent
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.auto_push import AutoPushQualifier
from intent_engine.services.event_validator import EventDraft, EventValidator
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.scoring_engine import IntentScoringEngine
from intent_engine.services.stage_classifier import StageClassifier
from intent_engine.services.threshold_emitter import ThresholdEmitter

logger = logging.getLogger(__name__)

REASON_TIMEOUT = "persistence timed out"
REASON_UNAVAILABLE = "persistence unavailable"


class IntentPipeline:
    """Orchestrates the full ingest path for one behavioral event.

    Steps:
    1. Validate and normalize the payload
    2. Redis dedupe fast path (best-effort)
    3. Insert the event (``ON CONFLICT DO NOTHING`` on the dedupe index)
    4. Inside a SAVEPOINT: score, accumulate, roll up, emit
    5. Commit, then re-stage / auto-push a known marketing lead

    A failure in step 4 rolls back only the derived writes; the event is
    still committed.  Step 5 never fails the ingest.
    """

    def __init__(
        self,
        scoring_engine: IntentScoringEngine,
        rollup_aggregator: RollupAggregator,
        threshold_emitter: ThresholdEmitter,
        cache: Optional[CacheService] = None,
        stage_classifier: Optional[StageClassifier] = None,
        auto_pusher: Optional[AutoPushQualifier] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._engine = scoring_engine
        self._aggregator = rollup_aggregator
        self._emitter = threshold_emitter
        self._cache: CacheService = cache or CacheService()
        self._classifier = stage_classifier
        self._auto_pusher = auto_pusher
        self._timeout = timeout_seconds or settings.INGEST_DB_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self, payload: Mapping[str, Any], repos: IntentRepositories
    ) -> Dict[str, Any]:
        """Validate, store and score one event.

        Raises:
            InvalidArgumentError: If the payload fails validation.

        Persistence failures and timeouts do not raise; they return
        ``stored: False`` with a ``reason``.
        """
        draft = EventValidator.validate(payload)

        if draft.dedupe_key:
            cached = await self._cache.get_deduped_event(
                draft.event_source, draft.dedupe_key
            )
            if cached is not None:
                return {**cached, "stored": True, "duplicate": True}

        try:
            result = await asyncio.wait_for(self.record(draft, repos), self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Ingest of %s for %s timed out after %.1fs",
                draft.event_type,
                draft.subject_id,
                self._timeout,
            )
            await self._safe_rollback(repos)
            return self._not_stored(REASON_TIMEOUT)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning(
                "Ingest of %s for %s not stored: %s",
                draft.event_type,
                draft.subject_id,
                exc,
            )
            await self._safe_rollback(repos)
            return self._not_stored(REASON_UNAVAILABLE)

        if draft.dedupe_key:
            await self._cache.remember_deduped_event(
                draft.event_source,
                draft.dedupe_key,
                {
                    "event_id": str(result["event_id"]),
                    "subject_id": str(result["subject_id"]),
                    "scored": result["scored"],
                },
                ttl=settings.REDIS_DEDUPE_TTL,
            )

        if draft.lead_id is not None and not result["duplicate"]:
            result.update(await self._qualify_lead(draft, repos))

        return result

    async def record(
        self, draft: EventDraft, repos: IntentRepositories
    ) -> Dict[str, Any]:
        """Store *draft* and run the derived writes; commits on success.

        A retry with a known ``(event_source, dedupe_key)`` returns the
        original event untouched.  Database errors propagate.
        """
        event_id = await repos.events.insert_event(
            lead_id=draft.lead_id,
            anonymous_id=draft.anonymous_id,
            event_type=draft.event_type,
            event_source=draft.event_source,
            event_value=draft.event_value,
            occurred_at=draft.occurred_at,
            metadata=draft.metadata,
            dedupe_key=draft.dedupe_key,
        )

        if event_id is None:
            original = await repos.events.get_by_dedupe(
                draft.event_source, draft.dedupe_key
            )
            existing_score = (
                await repos.scores.get_by_event_id(original.id) if original else None
            )
            await repos.commit()
            logger.info(
                "Duplicate event %s/%s maps to %s",
                draft.event_source,
                draft.dedupe_key,
                original.id if original else None,
            )
            return {
                "event_id": original.id if original else None,
                "subject_id": (
                    (original.lead_id or original.anonymous_id) if original else None
                ),
                "scored": existing_score is not None,
                "stored": True,
                "duplicate": True,
            }

        event = await repos.events.get_by_id(event_id)
        scored = await self.process_stored_event(
            event, repos, accumulate_anonymous=True
        )
        await repos.commit()
        return {
            "event_id": event_id,
            "subject_id": draft.subject_id,
            "scored": scored,
            "stored": True,
            "duplicate": False,
        }

    async def process_stored_event(
        self,
        event: IntentEvent,
        repos: IntentRepositories,
        accumulate_anonymous: bool = False,
        emit: bool = True,
    ) -> bool:
        """Score, roll up and (optionally) emit for an already-stored event.

        Runs inside a SAVEPOINT; returns ``False`` when the derived writes
        failed and were rolled back.
        """
        subject_id = event.lead_id or event.anonymous_id
        subject_type = "lead" if event.lead_id is not None else "anonymous"
        try:
            async with repos.events.savepoint():
                result = await self._engine.score_and_store(
                    event_id=event.id,
                    event_type=event.event_type,
                    event_source=event.event_source,
                    metadata=event.event_metadata,
                    rule_repo=repos.rules,
                    score_repo=repos.scores,
                )
                if accumulate_anonymous and event.lead_id is None:
                    await repos.subject_scores.add_score(
                        "anonymous", event.anonymous_id, result.score, event.occurred_at
                    )
                rollup = await self._aggregator.recompute(
                    subject_id, subject_type, repos.rollups
                )
                if emit:
                    await self._emitter.evaluate(
                        subject_id,
                        rollup,
                        event,
                        repos.rollups,
                        repos.signals,
                        repos.leads,
                    )
        except Exception:
            logger.warning(
                "Scoring failed for event %s; event kept unscored",
                event.id,
                exc_info=True,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _qualify_lead(
        self, draft: EventDraft, repos: IntentRepositories
    ) -> Dict[str, Any]:
        """Re-stage a known marketing lead and try auto-push; never raises.

        Bounded by the same timeout as the insert.  Whatever finished before
        a failure (usually the stage) is still reported.
        """
        if self._classifier is None:
            return {}
        extra: Dict[str, Any] = {}
        try:
            await asyncio.wait_for(
                self._restage_and_push(draft.lead_id, repos, extra), self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Stage/auto-push step for lead %s timed out after %.1fs",
                draft.lead_id,
                self._timeout,
            )
            await self._safe_rollback(repos)
        except Exception:
            logger.warning(
                "Stage/auto-push step failed for lead %s", draft.lead_id, exc_info=True
            )
            await self._safe_rollback(repos)
        return extra

    async def _restage_and_push(
        self, lead_id: UUID, repos: IntentRepositories, extra: Dict[str, Any]
    ) -> None:
        lead = await repos.leads.get_by_id(lead_id)
        if lead is None:
            return
        outcome = await self._classifier.classify_lead(lead_id, repos)
        await repos.commit()
        extra["stage"] = asdict(outcome)
        if outcome.should_auto_push and self._auto_pusher is not None:
            pushed = await self._auto_pusher.push(lead_id, repos)
            extra["auto_push"] = asdict(pushed)

    @staticmethod
    async def _safe_rollback(repos: IntentRepositories) -> None:
        try:
            await repos.rollback()
        except (SQLAlchemyError, OSError):
            logger.warning("Rollback after failed ingest also failed")

    @staticmethod
    def _not_stored(reason: str) -> Dict[str, Any]:
        return {
            "event_id": None,
            "subject_id": None,
            "scored": False,
            "stored": False,
            "duplicate": False,
            "reason": reason,
        }
