import math
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

from intent_engine.core.constants import (
    CLICKS_MODIFIER_CAP,
    DEFAULT_SOURCE_CONFIDENCE,
    MISSING_FIELDS_CONFIDENCE_CAP,
    MODEL_VERSION,
    SOURCE_CONFIDENCE,
)
from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
from intent_engine.repositories.intent_score_repository import IntentScoreRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    score: int
    confidence: float
    reasons: List[str] = field(default_factory=list)


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _predicate_holds(key: str, expected: Any, metadata: Mapping[str, Any]) -> bool:
    """Evaluate one named predicate of a modifier condition.

    Supported keys:
        - ``utm_medium`` / ``utm_source``  exact equality
        - ``reach_gte``  ``metadata.reach`` (absent counts as 0) ``>= expected``
        - ``path_contains``  substring of ``metadata.path`` (or ``url``)

    Any other key, ``clicks`` included, places no constraint on the match.
    """
    if key in ("utm_medium", "utm_source"):
        return metadata.get(key) == expected

    if key == "reach_gte":
        reach = _as_number(metadata.get("reach")) or 0
        threshold = _as_number(expected)
        return threshold is not None and reach >= threshold

    if key == "path_contains":
        haystack = metadata.get("path") or metadata.get("url")
        return (
            isinstance(haystack, str)
            and isinstance(expected, str)
            and bool(expected)
            and expected in haystack
        )

    return True


def modifier_contribution(
    condition: Optional[Mapping[str, Any]],
    points: int,
    metadata: Mapping[str, Any],
) -> Optional[int]:
    """Return the points a modifier adds, or ``None`` when it does not apply.

    A rule without a condition never applies; an empty condition always
    does.  Every known key of *condition* must hold.  A ``clicks``
    condition adds the click count (capped, absent counts as 0) instead of
    the rule points.
    """
    if condition is None:
        return None
    for key, expected in condition.items():
        if not _predicate_holds(key, expected, metadata):
            return None
    if "clicks" in condition:
        clicks = _as_number(metadata.get("clicks")) or 0
        return max(0, min(int(clicks), CLICKS_MODIFIER_CAP))
    return int(points or 0)


def _rule_points(
    event_type: Optional[str],
    metadata: Mapping[str, Any],
    rules: Iterable[Any],
) -> Tuple[int, List[str]]:
    active = [r for r in rules if getattr(r, "is_active", True)]
    reasons: List[str] = []

    base = next(
        (
            r
            for r in active
            if r.rule_type == "base_score" and r.event_type == event_type
        ),
        None,
    )
    if base is None:
        score = 0
        reasons.append(f"No base score defined for {event_type}")
    else:
        score = int(base.points or 0)
        reasons.append(f"Base score for {event_type}: +{score}")

    for rule in active:
        if rule.rule_type != "modifier":
            continue
        added = modifier_contribution(rule.modifier_condition, rule.points, metadata)
        if added is None:
            continue
        score += added
        label = rule.description or rule.rule_key
        reasons.append(f"{label}: +{added}")

    return max(0, score), reasons


def compute_score(
    event_type: Optional[str],
    event_source: Optional[str],
    metadata: Optional[Mapping[str, Any]],
    rules: Iterable[Any],
) -> ScoreResult:
    """Score one event against a rule snapshot.

    Pure and deterministic: the same inputs always give the same
    ``ScoreResult``.  Confidence comes from the event source tier and is
    capped when ``event_type`` or ``event_source`` is missing.
    """
    score, reasons = _rule_points(event_type, metadata or {}, rules)

    confidence = SOURCE_CONFIDENCE.get(event_source or "", DEFAULT_SOURCE_CONFIDENCE)
    if not event_type or not event_source:
        confidence = min(confidence, MISSING_FIELDS_CONFIDENCE_CAP)
        reasons.append("Missing key fields, confidence reduced")

    confidence = min(1.0, max(0.0, confidence))
    return ScoreResult(score=score, confidence=confidence, reasons=reasons)


def score_delta(
    event_type: Optional[str],
    metadata: Optional[Mapping[str, Any]],
    rules: Iterable[Any],
) -> int:
    """Points an event adds to its subject, without confidence or reasons."""
    score, _ = _rule_points(event_type, metadata or {}, rules)
    return score


class IntentScoringEngine:
    """Score events with rules loaded fresh from ``intent_rules``.

    The rule snapshot is read on every call, so an admin edit applies to
    the very next event.  Each score is upserted by event id under the
    ``rules_v1`` model version.
    """

    def __init__(self, model_version: str = MODEL_VERSION) -> None:
        self._model_version = model_version

    @property
    def model_version(self) -> str:
        return self._model_version

    async def score(
        self,
        event_type: Optional[str],
        event_source: Optional[str],
        metadata: Optional[Dict[str, Any]],
        rule_repo: IntentRuleRepository,
    ) -> ScoreResult:
        rules = await rule_repo.get_active_rules()
        return compute_score(event_type, event_source, metadata, rules)

    async def score_and_store(
        self,
        event_id: UUID,
        event_type: Optional[str],
        event_source: Optional[str],
        metadata: Optional[Dict[str, Any]],
        rule_repo: IntentRuleRepository,
        score_repo: IntentScoreRepository,
    ) -> ScoreResult:
        result = await self.score(event_type, event_source, metadata, rule_repo)
        await score_repo.upsert(
            intent_event_id=event_id,
            score=result.score,
            confidence=result.confidence,
            reasons=list(result.reasons),
            model_version=self._model_version,
        )
        logger.debug("Scored event %s: %d (%.2f)", event_id, result.score, result.confidence)
        return result
