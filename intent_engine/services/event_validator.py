import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from intent_engine.core.config import settings
from intent_engine.core.constants import ALLOWED_EVENT_TYPES
from intent_engine.core.exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

# Convenience top-level fields folded into ``metadata``
_FOLDED_FIELDS = (
    "url",
    "path",
    "referrer",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
)

_MAX_SOURCE_LENGTH = 50


@dataclass
class EventDraft:
    """A validated, normalized event ready to be stored."""

    event_type: str
    event_source: str
    occurred_at: datetime
    lead_id: Optional[UUID] = None
    anonymous_id: Optional[UUID] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    dedupe_key: Optional[str] = None
    event_value: Optional[int] = None

    @property
    def subject_id(self) -> UUID:
        return self.lead_id or self.anonymous_id  # type: ignore[return-value]

    @property
    def subject_type(self) -> str:
        return "lead" if self.lead_id is not None else "anonymous"


class EventValidator:
    """Validation and normalization for inbound intent events.

    Every problem found is collected into one field-keyed map and raised
    as a single :class:`InvalidArgumentError`, so the caller sees all of
    them at once.
    """

    @staticmethod
    def parse_timestamp(value: Any) -> datetime:
        """Parse an ISO-8601 string or unix seconds into an aware UTC datetime.

        Raises ``ValueError`` for anything else.
        """
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, bool):
            raise ValueError("boolean is not a timestamp")
        elif isinstance(value, (int, float)):
            try:
                parsed = datetime.fromtimestamp(value, tz=timezone.utc)
            except (OverflowError, OSError) as exc:
                raise ValueError(str(exc)) from exc
        elif isinstance(value, str) and value.strip():
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            raise ValueError("unsupported timestamp")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def _parse_uuid(value: Any) -> UUID:
        if isinstance(value, UUID):
            return value
        return UUID(str(value).strip())

    @staticmethod
    def _blank_to_none(value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def validate(
        cls,
        payload: Mapping[str, Any],
        default_source: Optional[str] = None,
        max_metadata_bytes: Optional[int] = None,
    ) -> EventDraft:
        """Return a normalized :class:`EventDraft` or raise ``InvalidArgumentError``."""
        default_source = default_source or settings.DEFAULT_EVENT_SOURCE
        max_metadata_bytes = max_metadata_bytes or settings.METADATA_MAX_BYTES
        errors: Dict[str, str] = {}

        # event_type
        event_type = cls._blank_to_none(payload.get("event_type"))
        if event_type is None:
            errors["event_type"] = "event_type is required"
        elif not isinstance(event_type, str) or event_type.strip() not in ALLOWED_EVENT_TYPES:
            errors["event_type"] = (
                f"Unsupported event_type {event_type!r}; allowed: "
                + ", ".join(sorted(ALLOWED_EVENT_TYPES))
            )
        else:
            event_type = event_type.strip()

        # subject reference
        ids: Dict[str, Optional[UUID]] = {}
        for key in ("lead_id", "anonymous_id"):
            raw = cls._blank_to_none(payload.get(key))
            ids[key] = None
            if raw is None:
                continue
            try:
                ids[key] = cls._parse_uuid(raw)
            except (ValueError, TypeError, AttributeError):
                errors[key] = f"{key} must be a UUID"
        if (
            payload.get("lead_id") in (None, "")
            and payload.get("anonymous_id") in (None, "")
        ):
            errors["lead_id"] = "lead_id or anonymous_id is required"

        # event_source
        event_source = cls._blank_to_none(payload.get("event_source"))
        if event_source is None:
            event_source = default_source
        elif not isinstance(event_source, str):
            errors["event_source"] = "event_source must be a string"
        elif len(event_source.strip()) > _MAX_SOURCE_LENGTH:
            errors["event_source"] = (
                f"event_source must be at most {_MAX_SOURCE_LENGTH} characters"
            )
        else:
            event_source = event_source.strip()

        # occurred_at
        occurred_raw = cls._blank_to_none(payload.get("occurred_at"))
        occurred_at = datetime.now(timezone.utc)
        if occurred_raw is not None:
            try:
                occurred_at = cls.parse_timestamp(occurred_raw)
            except (ValueError, TypeError):
                errors["occurred_at"] = (
                    "occurred_at must be an ISO-8601 timestamp or unix seconds"
                )

        # metadata
        metadata: Dict[str, Any] = {}
        raw_metadata = payload.get("metadata")
        if raw_metadata is not None and not isinstance(raw_metadata, Mapping):
            errors["metadata"] = "metadata must be an object"
        elif raw_metadata is not None:
            metadata = {
                str(k): cls._blank_to_none(v) for k, v in raw_metadata.items()
            }
        for key in _FOLDED_FIELDS:
            value = cls._blank_to_none(payload.get(key))
            if value is not None:
                metadata[key] = value
        if "metadata" not in errors:
            try:
                size = len(
                    json.dumps(
                        metadata, separators=(",", ":"), allow_nan=False, default=str
                    ).encode("utf-8")
                )
            except (TypeError, ValueError):
                errors["metadata"] = "metadata must be JSON-serializable"
            else:
                if size > max_metadata_bytes:
                    errors["metadata"] = (
                        f"metadata exceeds {max_metadata_bytes} bytes ({size})"
                    )

        # dedupe_key
        dedupe_key = cls._blank_to_none(payload.get("dedupe_key"))
        if dedupe_key is not None:
            dedupe_key = str(dedupe_key).strip()

        # event_value
        event_value = payload.get("event_value")
        if event_value is not None:
            if (
                isinstance(event_value, bool)
                or not isinstance(event_value, (int, float))
                or not math.isfinite(event_value)
            ):
                errors["event_value"] = "event_value must be a finite number"
            else:
                event_value = int(event_value)

        if errors:
            logger.warning("Rejected intent event: %s", errors)
            raise InvalidArgumentError("Invalid event payload", errors=errors)

        return EventDraft(
            event_type=event_type,
            event_source=event_source,
            occurred_at=occurred_at,
            lead_id=ids["lead_id"],
            anonymous_id=ids["anonymous_id"],
            metadata=metadata,
            dedupe_key=dedupe_key,
            event_value=event_value,
        )
