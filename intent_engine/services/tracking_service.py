import asyncio
import json
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.config import settings
from intent_engine.core.constants import (
    ALLOWED_EVENT_TYPES,
    PRICING_PATH_MARKER,
    RETURN_VISIT_LOOKBACK_DAYS,
    SCROLL_DEPTH_MIN_PERCENT,
    TIME_ON_PAGE_MIN_SECONDS,
)
from intent_engine.core.exceptions import InvalidArgumentError
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.schemas.common import EventType
from intent_engine.services.event_validator import EventValidator
from intent_engine.services.intent_pipeline import (
    REASON_TIMEOUT,
    REASON_UNAVAILABLE,
    IntentPipeline,
)

logger = logging.getLogger(__name__)

REASON_BELOW_THRESHOLD = "below engagement threshold"
REASON_UNSUPPORTED = "unsupported event"
REASON_DUPLICATE = "duplicate"

# Minimum beacon value for raw engagement events to count as intent
_ENGAGEMENT_MINIMUMS = {
    EventType.time_on_page.value: TIME_ON_PAGE_MIN_SECONDS,
    EventType.scroll_depth.value: SCROLL_DEPTH_MIN_PERCENT,
}


class TrackingService:
    """Turn raw tracker beacons into intent events.

    One beacon can record up to three events: the raw event itself (when
    it clears the engagement minimums), a derived ``pricing_view`` for
    views/clicks on a pricing URL, and a derived ``return_visit`` the
    first time a session is seen for a visitor who had another session in
    the last 30 days.  The tracker always gets ``ok: true``.
    """

    def __init__(
        self, pipeline: IntentPipeline, timeout_seconds: Optional[float] = None
    ) -> None:
        self._pipeline = pipeline
        self._timeout = timeout_seconds or settings.INGEST_DB_TIMEOUT_SECONDS

    def build_payloads(
        self,
        beacon: Dict[str, Any],
        occurred_at: datetime,
        anonymous_id: UUID,
        is_return_visit: bool,
    ) -> List[Dict[str, Any]]:
        """Return the intent-event payloads a beacon should produce."""
        event = beacon["event"]
        session_id = beacon["session_id"]
        event_id = beacon.get("event_id")
        url = beacon.get("url") or ""
        value = beacon.get("value")

        base: Dict[str, Any] = {
            "anonymous_id": str(anonymous_id),
            "event_source": settings.DEFAULT_EVENT_SOURCE,
            "occurred_at": occurred_at,
            "metadata": {**(beacon.get("metadata") or {}), "session_id": str(session_id)},
            "url": beacon.get("url"),
            "referrer": beacon.get("referrer"),
        }
        payloads: List[Dict[str, Any]] = []

        minimum = _ENGAGEMENT_MINIMUMS.get(event)
        if event in ALLOWED_EVENT_TYPES and (
            minimum is None or (value is not None and value >= minimum)
        ):
            payloads.append(
                {
                    **base,
                    "event_type": event,
                    "dedupe_key": event_id,
                    "event_value": int(value) if value is not None else None,
                }
            )

        if (
            event in (EventType.page_view.value, EventType.click.value)
            and PRICING_PATH_MARKER in url
        ):
            payloads.append(
                {
                    **base,
                    "event_type": EventType.pricing_view.value,
                    "dedupe_key": f"pricing_view:{event_id}" if event_id else None,
                }
            )

        if is_return_visit:
            payloads.append(
                {
                    **base,
                    "event_type": EventType.return_visit.value,
                    "dedupe_key": f"return_visit:{session_id}",
                }
            )
        return payloads

    async def track(
        self, beacon: Dict[str, Any], repos: IntentRepositories
    ) -> Dict[str, Any]:
        request_id = uuid4().hex
        occurred_at = datetime.now(timezone.utc)
        if beacon.get("timestamp") is not None:
            try:
                occurred_at = EventValidator.parse_timestamp(beacon["timestamp"])
            except (ValueError, TypeError) as exc:
                raise InvalidArgumentError.for_field(
                    "timestamp", "timestamp must be an ISO-8601 string or unix seconds"
                ) from exc
        metadata = beacon.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidArgumentError.for_field("metadata", "metadata must be an object")
        if metadata is not None:
            try:
                json.dumps(metadata, allow_nan=False, default=str)
            except ValueError as exc:
                raise InvalidArgumentError.for_field(
                    "metadata", "metadata must be JSON-serializable"
                ) from exc
        value = beacon.get("value")
        if value is not None and not math.isfinite(value):
            raise InvalidArgumentError.for_field("value", "value must be a finite number")

        try:
            stored, reason = await asyncio.wait_for(
                self._record(beacon, occurred_at, repos), self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Tracker beacon %s timed out", request_id)
            await self._safe_rollback(repos)
            stored, reason = False, REASON_TIMEOUT
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Tracker beacon %s not stored: %s", request_id, exc)
            await self._safe_rollback(repos)
            stored, reason = False, REASON_UNAVAILABLE

        return {"ok": True, "stored": stored, "reason": reason, "request_id": request_id}

    async def _record(
        self,
        beacon: Dict[str, Any],
        occurred_at: datetime,
        repos: IntentRepositories,
    ):
        session_id: UUID = beacon["session_id"]
        # Without a visitor id the session stands in for it
        anonymous_id: UUID = beacon.get("anonymous_id") or session_id

        is_return_visit = await repos.identities.has_other_recent_session(
            anonymous_id,
            session_id,
            since=occurred_at - timedelta(days=RETURN_VISIT_LOOKBACK_DAYS),
        )
        await repos.identities.touch_session(session_id, anonymous_id, occurred_at)
        await repos.commit()

        payloads = self.build_payloads(beacon, occurred_at, anonymous_id, is_return_visit)
        if not payloads:
            event = beacon["event"]
            reason = (
                REASON_BELOW_THRESHOLD
                if event in ALLOWED_EVENT_TYPES
                else REASON_UNSUPPORTED
            )
            return False, reason

        stored_any = False
        for payload in payloads:
            draft = EventValidator.validate(payload)
            result = await self._pipeline.record(draft, repos)
            stored_any = stored_any or not result["duplicate"]
        return stored_any, None if stored_any else REASON_DUPLICATE

    @staticmethod
    async def _safe_rollback(repos: IntentRepositories) -> None:
        try:
            await repos.rollback()
        except (SQLAlchemyError, OSError):
            logger.warning("Rollback after failed beacon also failed")
