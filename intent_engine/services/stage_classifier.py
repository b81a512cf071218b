import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.schemas.common import MarketingStage

logger = logging.getLogger(__name__)

# Descending so the first threshold met wins
_STAGE_THRESHOLDS = (
    (MarketingStage.M5.value, "m5_min"),
    (MarketingStage.M4.value, "m4_min"),
    (MarketingStage.M3.value, "m3_min"),
    (MarketingStage.M2.value, "m2_min"),
)


@dataclass(frozen=True)
class StageOutcome:
    stage: str
    intent_score: int
    should_auto_push: bool
    hard_intent: bool = False


def decayed_points(
    points: int, decay_per_week: int, occurred_at: datetime, now: datetime
) -> int:
    """``max(0, points - decay_per_week * whole weeks since occurred_at)``.

    Future-dated events are treated as happening now.
    """
    days = max(0, (now - occurred_at).days)
    return max(0, points - decay_per_week * (days // 7))


def classify(
    events: Iterable[Any],
    rules_by_type: Mapping[str, Any],
    config: Any,
    now: Optional[datetime] = None,
) -> StageOutcome:
    """Pure stage decision for one lead's events.

    Events without an active rule contribute nothing.  A hard-intent rule
    whose ``stage_hint`` is ``M5`` (or unset) forces M5 regardless of the
    decayed total.
    """
    now = now or datetime.now(timezone.utc)
    decay = int(config.decay_points_per_week)
    total = 0
    hard_intent = False

    for event in events:
        rule = rules_by_type.get(event.event_type)
        if rule is None:
            continue
        total += decayed_points(int(rule.points), decay, event.occurred_at, now)
        if rule.is_hard_intent and rule.stage_hint in (None, MarketingStage.M5.value):
            hard_intent = True

    if hard_intent:
        stage = MarketingStage.M5.value
    else:
        stage = MarketingStage.M1.value
        for candidate, attr in _STAGE_THRESHOLDS:
            if total >= int(getattr(config, attr)):
                stage = candidate
                break

    return StageOutcome(
        stage=stage,
        intent_score=total,
        should_auto_push=(
            stage == MarketingStage.M5.value
            or total >= int(config.auto_push_threshold)
        ),
        hard_intent=hard_intent,
    )


class StageClassifier:
    """Decay-based M1..M5 stage classification for marketing leads."""

    async def classify_lead(
        self,
        lead_id: UUID,
        repos: IntentRepositories,
        persist: bool = True,
        now: Optional[datetime] = None,
    ) -> StageOutcome:
        config = await repos.config.get_or_create()
        rules = await repos.stage_rules.get_active_rules()
        events = await repos.events.list_for_lead(lead_id)

        outcome = classify(
            events,
            {rule.event_type: rule for rule in rules},
            config,
            now=now,
        )
        if persist:
            await repos.leads.update_stage(lead_id, outcome.stage, outcome.intent_score)
        logger.debug(
            "Lead %s staged %s (score=%d, push=%s)",
            lead_id,
            outcome.stage,
            outcome.intent_score,
            outcome.should_auto_push,
        )
        return outcome
