from typing import Dict, FrozenSet, Tuple

from intent_engine.schemas.common import EventType, MarketingStage, ThresholdBand

MODEL_VERSION: str = "rules_v1"

ALLOWED_EVENT_TYPES: FrozenSet[str] = frozenset(e.value for e in EventType)

# Written by the auto-push qualifier only; never accepted from callers
AUTO_PUSH_AUDIT_EVENT_TYPE: str = "auto_pushed_to_sales"
SYSTEM_EVENT_SOURCE: str = "system"

# Events posted to the generic marketing webhook, and leads it creates
WEBHOOK_EVENT_SOURCE: str = "webhook"
WEBHOOK_LEAD_SOURCE_TYPE: str = "website"

EVENT_TYPE_CHECK_CLAUSE: str = (
    "event_type IN ("
    + ", ".join(repr(e.value) for e in EventType)
    + f", {AUTO_PUSH_AUDIT_EVENT_TYPE!r})"
)

# Ordinal of each band; emission only ever moves up this ladder
BAND_ORDER: Tuple[str, ...] = tuple(b.value for b in ThresholdBand)
BAND_RANK: Dict[str, int] = {band: rank for rank, band in enumerate(BAND_ORDER)}

# Lower bound (inclusive) of each band on the 7-day score
BAND_BREAKPOINTS: Tuple[Tuple[int, str], ...] = (
    (30, ThresholdBand.critical.value),
    (20, ThresholdBand.hot.value),
    (10, ThresholdBand.warm.value),
    (0, ThresholdBand.cold.value),
)

BAND_CHECK_CLAUSE: str = f"band IN ({', '.join(repr(b) for b in BAND_ORDER)})"

MARKETING_STAGES: Tuple[str, ...] = tuple(s.value for s in MarketingStage)
STAGE_CHECK_CLAUSE: str = (
    f"marketing_stage IN ({', '.join(repr(s) for s in MARKETING_STAGES)})"
)

# Confidence by event source tier
SOURCE_CONFIDENCE: Dict[str, float] = {
    "crm": 0.85,
    "website": 0.85,
    "content_ops": 0.7,
}
DEFAULT_SOURCE_CONFIDENCE: float = 0.55
MISSING_FIELDS_CONFIDENCE_CAP: float = 0.55

# Modifier whose contribution is the metadata click count, capped
CLICKS_MODIFIER_CAP: int = 20

ROLLUP_SHORT_WINDOW_DAYS: int = 7
ROLLUP_LONG_WINDOW_DAYS: int = 30

# Tracker beacon thresholds below which a raw event is not an intent signal
TIME_ON_PAGE_MIN_SECONDS: int = 30
SCROLL_DEPTH_MIN_PERCENT: int = 60
RETURN_VISIT_LOOKBACK_DAYS: int = 30
PRICING_PATH_MARKER: str = "/pricing"

TOP_SIGNALS_WINDOW_DAYS: int = 30
TOP_SIGNALS_LIMIT: int = 10
