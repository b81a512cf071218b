import logging
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.constants import (
    WEBHOOK_EVENT_SOURCE,
    WEBHOOK_LEAD_SOURCE_TYPE,
)
from intent_engine.core.exceptions import (
    InvalidArgumentError,
    LeadNotFoundError,
    PersistenceUnavailableError,
)
from intent_engine.models.marketing_lead import MarketingLead
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.event_validator import EventValidator
from intent_engine.services.intent_pipeline import IntentPipeline

logger = logging.getLogger(__name__)

_PLACEHOLDER_LEAD = UUID(int=0)


class MarketingEventService:
    """Record an event against a marketing lead.

    The event is stored with the flat stage-rule points as its
    ``event_value`` and then runs the full intent pipeline, including
    re-staging and auto-push.
    """

    def __init__(self, pipeline: IntentPipeline) -> None:
        self._pipeline = pipeline

    async def record_lead_event(
        self,
        lead_id: UUID,
        payload: Dict[str, Any],
        repos: IntentRepositories,
    ) -> Dict[str, Any]:
        lead = await repos.leads.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} not found")
        return await self._record(lead_id, payload, repos)

    async def record_webhook_event(
        self,
        email: Optional[str],
        phone: Optional[str],
        payload: Dict[str, Any],
        repos: IntentRepositories,
    ) -> Dict[str, Any]:
        """Find the lead by email, then phone, creating an M1 lead if neither
        matches, and record the event for it.

        Raises:
            InvalidArgumentError: If neither email nor phone is given, or the
                event itself is invalid.
            PersistenceUnavailableError: If the lead lookup or insert fails.
        """
        email = (email or "").strip() or None
        phone = (phone or "").strip() or None
        if email is None and phone is None:
            raise InvalidArgumentError.for_field(
                "lead_lookup", "email or phone is required"
            )

        payload = {
            **payload,
            "event_source": payload.get("event_source") or WEBHOOK_EVENT_SOURCE,
        }
        # Reject a bad event before a lead is created for it
        EventValidator.validate({**payload, "lead_id": str(_PLACEHOLDER_LEAD)})

        try:
            lead, created = await self._find_or_create_lead(email, phone, repos)
        except SQLAlchemyError as exc:
            await repos.rollback()
            logger.error("Webhook lead lookup failed: %s", exc)
            raise PersistenceUnavailableError("Failed to find or create lead") from exc

        lead_id = lead.id
        result = await self._record(lead_id, payload, repos)
        return {**result, "lead_id": lead_id, "lead_created": created}

    async def _find_or_create_lead(
        self,
        email: Optional[str],
        phone: Optional[str],
        repos: IntentRepositories,
    ) -> Tuple[MarketingLead, bool]:
        lead = None
        if email is not None:
            lead = await repos.leads.get_by_email(email)
        if lead is None and phone is not None:
            lead = await repos.leads.get_by_phone(phone)
        if lead is not None:
            return lead, False

        lead = await repos.leads.create(
            email=email,
            phone=phone,
            source_type=WEBHOOK_LEAD_SOURCE_TYPE,
            marketing_stage="M1",
            intent_score=0,
        )
        await repos.commit()
        logger.info("Created marketing lead %s from webhook", lead.id)
        return lead, True

    async def _record(
        self,
        lead_id: UUID,
        payload: Dict[str, Any],
        repos: IntentRepositories,
    ) -> Dict[str, Any]:
        rules = await repos.stage_rules.get_active_rules()
        points = next(
            (r.points for r in rules if r.event_type == payload.get("event_type")), 0
        )

        result = await self._pipeline.ingest(
            {**payload, "lead_id": str(lead_id), "event_value": points}, repos
        )
        return {
            "event": result,
            "stage": result.get("stage"),
            "auto_push": result.get("auto_push"),
        }
