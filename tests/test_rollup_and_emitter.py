from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from intent_engine.services.rollup_aggregator import RollupAggregator
from intent_engine.services.threshold_emitter import ThresholdEmitter


def _rollup(score_7d: int, score_30d: int = None, last_band_emitted=None):
    return SimpleNamespace(
        score_7d=score_7d,
        score_30d=score_30d if score_30d is not None else score_7d,
        last_band_emitted=last_band_emitted,
    )


def _event(event_type: str = "form_submit"):
    return SimpleNamespace(
        id=uuid4(),
        event_type=event_type,
        event_source="website",
        occurred_at=datetime.now(timezone.utc),
    )


class TestRollupAggregator:
    @pytest.mark.asyncio
    async def test_recompute_uses_7_and_30_day_windows(self):
        now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        subject = uuid4()
        repo = AsyncMock()
        repo.compute_window_totals = AsyncMock(return_value=(12, 31, now))
        stored = _rollup(12, 31)
        repo.upsert_totals = AsyncMock(return_value=stored)

        rollup = await RollupAggregator().recompute(subject, "anonymous", repo, now=now)

        assert rollup is stored
        repo.compute_window_totals.assert_awaited_once_with(
            subject,
            short_since=now - timedelta(days=7),
            long_since=now - timedelta(days=30),
        )
        repo.upsert_totals.assert_awaited_once_with(
            subject_id=subject,
            subject_type="anonymous",
            score_7d=12,
            score_30d=31,
            last_event_at=now,
        )

    @pytest.mark.asyncio
    async def test_custom_windows(self):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        repo = AsyncMock()
        repo.compute_window_totals = AsyncMock(return_value=(0, 0, None))

        await RollupAggregator(short_window_days=1, long_window_days=3).recompute(
            uuid4(), "lead", repo, now=now
        )

        kwargs = repo.compute_window_totals.await_args.kwargs
        assert kwargs["short_since"] == now - timedelta(days=1)
        assert kwargs["long_since"] == now - timedelta(days=3)


class TestThresholdEmitter:
    """Signals are written on first classification and upward moves only."""

    def _repos(self, latest_band=None):
        rollup_repo = AsyncMock()
        signal_repo = AsyncMock()
        signal_repo.latest_band = AsyncMock(return_value=latest_band)
        signal_repo.create = AsyncMock(side_effect=lambda **kw: SimpleNamespace(**kw))
        lead_repo = AsyncMock()
        return rollup_repo, signal_repo, lead_repo

    @pytest.mark.asyncio
    async def test_first_classification_emits(self):
        subject = uuid4()
        event = _event()
        rollup_repo, signal_repo, lead_repo = self._repos()

        signal = await ThresholdEmitter().evaluate(
            subject, _rollup(12), event, rollup_repo, signal_repo, lead_repo
        )

        assert signal is not None
        assert signal.band == "warm"
        assert signal.last_event_id == event.id
        assert signal.payload["state"] == "warm"
        assert signal.payload["score"] == 12
        assert signal.payload["lead_id"] == str(subject)
        assert signal.payload["last_event"]["type"] == "form_submit"
        rollup_repo.set_last_band.assert_awaited_once_with(subject, "warm")
        lead_repo.touch_last_signal.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_band_is_silent(self):
        rollup_repo, signal_repo, lead_repo = self._repos()

        signal = await ThresholdEmitter().evaluate(
            uuid4(),
            _rollup(15, last_band_emitted="warm"),
            _event(),
            rollup_repo,
            signal_repo,
            lead_repo,
        )

        assert signal is None
        signal_repo.create.assert_not_awaited()
        rollup_repo.set_last_band.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upward_move_emits(self):
        rollup_repo, signal_repo, lead_repo = self._repos()

        signal = await ThresholdEmitter().evaluate(
            uuid4(),
            _rollup(25, last_band_emitted="warm"),
            _event(),
            rollup_repo,
            signal_repo,
            lead_repo,
        )

        assert signal.band == "hot"

    @pytest.mark.asyncio
    async def test_decay_does_not_emit(self):
        rollup_repo, signal_repo, lead_repo = self._repos()

        signal = await ThresholdEmitter().evaluate(
            uuid4(),
            _rollup(4, last_band_emitted="critical"),
            _event(),
            rollup_repo,
            signal_repo,
            lead_repo,
        )

        assert signal is None

    @pytest.mark.asyncio
    async def test_falls_back_to_latest_signal_when_pointer_unset(self):
        rollup_repo, signal_repo, lead_repo = self._repos(latest_band="hot")

        signal = await ThresholdEmitter().evaluate(
            uuid4(), _rollup(22), _event(), rollup_repo, signal_repo, lead_repo
        )

        assert signal is None
        signal_repo.latest_band.assert_awaited_once()
