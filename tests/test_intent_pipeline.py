import asyncio
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.exceptions import InvalidArgumentError
from intent_engine.services.auto_push import AutoPushResult
from intent_engine.services.intent_pipeline import (
    REASON_TIMEOUT,
    REASON_UNAVAILABLE,
    IntentPipeline,
)
from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.scoring_engine import IntentScoringEngine
from intent_engine.services.stage_classifier import StageOutcome
from intent_engine.services.threshold_emitter import ThresholdEmitter


def _pipeline(cache=None, **kwargs) -> IntentPipeline:
    return IntentPipeline(
        scoring_engine=IntentScoringEngine(),
        rollup_aggregator=RollupAggregator(),
        threshold_emitter=ThresholdEmitter(),
        cache=cache,
        **kwargs,
    )


def _stored_event(event_id, lead_id=None, anonymous_id=None, event_type="form_submit"):
    return SimpleNamespace(
        id=event_id,
        lead_id=lead_id,
        anonymous_id=anonymous_id,
        event_type=event_type,
        event_source="website",
        event_metadata={},
        occurred_at=datetime.now(timezone.utc),
    )


def _wire_new_event(repos, intent_rules, lead_id=None, anonymous_id=None, score_7d=10):
    """Configure mock repos for a fresh insert of a form_submit event."""
    event_id = uuid4()
    repos.events.insert_event = AsyncMock(return_value=event_id)
    repos.events.get_by_id = AsyncMock(
        return_value=_stored_event(event_id, lead_id=lead_id, anonymous_id=anonymous_id)
    )
    repos.rules.get_active_rules = AsyncMock(return_value=intent_rules)
    repos.rollups.compute_window_totals = AsyncMock(
        return_value=(score_7d, score_7d, datetime.now(timezone.utc))
    )
    repos.rollups.upsert_totals = AsyncMock(
        return_value=SimpleNamespace(
            score_7d=score_7d, score_30d=score_7d, last_band_emitted=None
        )
    )
    repos.signals.latest_band = AsyncMock(return_value=None)
    return event_id


class TestIngest:
    """End-to-end ingest flow against mocked repositories."""

    @pytest.mark.asyncio
    async def test_new_anonymous_event_is_scored_and_emitted(
        self, mock_repos, intent_rules
    ):
        anon = uuid4()
        event_id = _wire_new_event(mock_repos, intent_rules, anonymous_id=anon)

        result = await _pipeline().ingest(
            {"event_type": "form_submit", "anonymous_id": str(anon)}, mock_repos
        )

        assert result == {
            "event_id": event_id,
            "subject_id": anon,
            "scored": True,
            "stored": True,
            "duplicate": False,
        }
        assert mock_repos.scores.upsert.await_args.kwargs["score"] == 10
        mock_repos.subject_scores.add_score.assert_awaited_once()
        assert mock_repos.subject_scores.add_score.await_args.args[:3] == (
            "anonymous",
            anon,
            10,
        )
        mock_repos.signals.create.assert_awaited_once()
        assert mock_repos.signals.create.await_args.kwargs["band"] == "warm"
        mock_repos.events.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_lead_events_do_not_touch_anonymous_aggregate(
        self, mock_repos, intent_rules
    ):
        lead = uuid4()
        _wire_new_event(mock_repos, intent_rules, lead_id=lead)

        result = await _pipeline().ingest(
            {"event_type": "form_submit", "lead_id": str(lead)}, mock_repos
        )

        assert result["subject_id"] == lead
        mock_repos.subject_scores.add_score.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_maps_to_original_event(self, mock_repos):
        original = _stored_event(uuid4(), anonymous_id=uuid4())
        mock_repos.events.insert_event = AsyncMock(return_value=None)
        mock_repos.events.get_by_dedupe = AsyncMock(return_value=original)
        mock_repos.scores.get_by_event_id = AsyncMock(return_value=SimpleNamespace(score=10))

        result = await _pipeline().ingest(
            {
                "event_type": "form_submit",
                "anonymous_id": str(original.anonymous_id),
                "dedupe_key": "evt-42",
            },
            mock_repos,
        )

        assert result["duplicate"] is True
        assert result["stored"] is True
        assert result["event_id"] == original.id
        assert result["scored"] is True
        mock_repos.scores.upsert.assert_not_awaited()
        mock_repos.signals.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cached_dedupe_skips_the_database(
        self, mock_repos, mock_cache, mock_redis
    ):
        event_id, anon = uuid4(), uuid4()
        mock_redis.get = AsyncMock(
            return_value=json.dumps(
                {"event_id": str(event_id), "subject_id": str(anon), "scored": True}
            )
        )

        result = await _pipeline(cache=mock_cache).ingest(
            {"event_type": "click", "anonymous_id": str(anon), "dedupe_key": "evt-1"},
            mock_repos,
        )

        assert result["duplicate"] is True
        assert result["event_id"] == str(event_id)
        mock_repos.events.insert_event.assert_not_awaited()
        mock_redis.get.assert_awaited_once_with("intent_dedupe:website:evt-1")

    @pytest.mark.asyncio
    async def test_successful_insert_is_remembered_in_cache(
        self, mock_repos, mock_cache, mock_redis, intent_rules
    ):
        anon = uuid4()
        _wire_new_event(mock_repos, intent_rules, anonymous_id=anon)

        await _pipeline(cache=mock_cache).ingest(
            {"event_type": "form_submit", "anonymous_id": str(anon), "dedupe_key": "k1"},
            mock_repos,
        )

        mock_redis.setex.assert_awaited_once()
        assert mock_redis.setex.await_args.args[0] == "intent_dedupe:website:k1"

    @pytest.mark.asyncio
    async def test_scoring_failure_keeps_event_unscored(self, mock_repos, intent_rules):
        anon = uuid4()
        _wire_new_event(mock_repos, intent_rules, anonymous_id=anon)
        mock_repos.rules.get_active_rules = AsyncMock(side_effect=RuntimeError("boom"))

        result = await _pipeline().ingest(
            {"event_type": "form_submit", "anonymous_id": str(anon)}, mock_repos
        )

        assert result["stored"] is True
        assert result["scored"] is False
        mock_repos.events.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_database_failure_returns_not_stored(self, mock_repos):
        mock_repos.events.insert_event = AsyncMock(
            side_effect=SQLAlchemyError("connection refused")
        )

        result = await _pipeline().ingest(
            {"event_type": "click", "anonymous_id": str(uuid4())}, mock_repos
        )

        assert result["stored"] is False
        assert result["reason"] == REASON_UNAVAILABLE
        mock_repos.events.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_timeout_returns_not_stored(self, mock_repos):
        async def _hang(**kwargs):
            await asyncio.sleep(5)

        mock_repos.events.insert_event = AsyncMock(side_effect=_hang)

        result = await _pipeline(timeout_seconds=0.01).ingest(
            {"event_type": "click", "anonymous_id": str(uuid4())}, mock_repos
        )

        assert result["stored"] is False
        assert result["reason"] == REASON_TIMEOUT

    @pytest.mark.asyncio
    async def test_invalid_payload_raises(self, mock_repos):
        with pytest.raises(InvalidArgumentError) as exc_info:
            await _pipeline().ingest({"event_type": "nope"}, mock_repos)

        assert "event_type" in exc_info.value.errors
        mock_repos.events.insert_event.assert_not_awaited()


class TestLeadQualificationOnIngest:
    @pytest.mark.asyncio
    async def test_known_lead_is_restaged(self, mock_repos, intent_rules):
        lead = uuid4()
        _wire_new_event(mock_repos, intent_rules, lead_id=lead)
        mock_repos.leads.get_by_id = AsyncMock(return_value=SimpleNamespace(id=lead))
        classifier = AsyncMock()
        classifier.classify_lead = AsyncMock(
            return_value=StageOutcome(stage="M2", intent_score=6, should_auto_push=False)
        )
        pusher = AsyncMock()

        result = await _pipeline(stage_classifier=classifier, auto_pusher=pusher).ingest(
            {"event_type": "form_start", "lead_id": str(lead)}, mock_repos
        )

        assert result["stage"]["stage"] == "M2"
        assert "auto_push" not in result
        pusher.push.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_eligible_lead_is_auto_pushed(self, mock_repos, intent_rules):
        lead, customer = uuid4(), uuid4()
        _wire_new_event(mock_repos, intent_rules, lead_id=lead)
        mock_repos.leads.get_by_id = AsyncMock(return_value=SimpleNamespace(id=lead))
        classifier = AsyncMock()
        classifier.classify_lead = AsyncMock(
            return_value=StageOutcome(
                stage="M5", intent_score=15, should_auto_push=True, hard_intent=True
            )
        )
        pusher = AsyncMock()
        pusher.push = AsyncMock(
            return_value=AutoPushResult(pushed=True, customer_id=customer)
        )

        result = await _pipeline(stage_classifier=classifier, auto_pusher=pusher).ingest(
            {"event_type": "form_submit", "lead_id": str(lead)}, mock_repos
        )

        assert result["stored"] is True
        assert result["auto_push"]["pushed"] is True
        assert result["auto_push"]["customer_id"] == customer

    @pytest.mark.asyncio
    async def test_qualification_failure_does_not_fail_ingest(
        self, mock_repos, intent_rules
    ):
        lead = uuid4()
        _wire_new_event(mock_repos, intent_rules, lead_id=lead)
        mock_repos.leads.get_by_id = AsyncMock(return_value=SimpleNamespace(id=lead))
        classifier = AsyncMock()
        classifier.classify_lead = AsyncMock(side_effect=SQLAlchemyError("lock timeout"))

        result = await _pipeline(stage_classifier=classifier).ingest(
            {"event_type": "form_submit", "lead_id": str(lead)}, mock_repos
        )

        assert result["stored"] is True
        assert "stage" not in result
        mock_repos.events.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_stalled_qualification_is_bounded_by_timeout(
        self, mock_repos, intent_rules
    ):
        lead = uuid4()
        _wire_new_event(mock_repos, intent_rules, lead_id=lead)
        mock_repos.leads.get_by_id = AsyncMock(return_value=SimpleNamespace(id=lead))

        async def _stall(*args, **kwargs):
            await asyncio.sleep(5)

        classifier = AsyncMock()
        classifier.classify_lead = AsyncMock(side_effect=_stall)
        pusher = AsyncMock()

        result = await asyncio.wait_for(
            _pipeline(
                stage_classifier=classifier, auto_pusher=pusher, timeout_seconds=0.05
            ).ingest({"event_type": "form_submit", "lead_id": str(lead)}, mock_repos),
            timeout=2,
        )

        assert result["stored"] is True
        assert "stage" not in result
        pusher.push.assert_not_awaited()
        mock_repos.events.rollback.assert_awaited()
