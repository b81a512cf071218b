import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from intent_engine.core.config import settings
from intent_engine.core.constants import AUTO_PUSH_AUDIT_EVENT_TYPE, SYSTEM_EVENT_SOURCE
from intent_engine.core.exceptions import PersistenceUnavailableError
from intent_engine.repositories.unit_of_work import IntentRepositories
from intent_engine.services.stage_classifier import StageClassifier

logger = logging.getLogger(__name__)

REASON_LEAD_NOT_FOUND = "lead not found"
REASON_DISABLED = "auto-push disabled"
REASON_ALREADY_PUSHED = "already pushed"
REASON_NOT_READY = "not ready for sales push"

SALES_TASK_TITLE = "Call + qualify within 24h"


@dataclass(frozen=True)
class AutoPushResult:
    pushed: bool
    customer_id: Optional[UUID] = None
    reason: Optional[str] = None


class _AlreadyClaimed(Exception):
    """Another request set ``sales_customer_id`` first."""


class AutoPushQualifier:
    """Push an M5 / over-threshold marketing lead into the sales queue once.

    The at-most-once guarantee rests on the conditional update of
    ``marketing_leads.sales_customer_id``; if that update loses a race the
    customer and task written in the same SAVEPOINT are rolled back.
    """

    def __init__(
        self,
        stage_classifier: StageClassifier,
        task_due_hours: Optional[int] = None,
    ) -> None:
        self._classifier = stage_classifier
        self._task_due_hours = task_due_hours or settings.SALES_TASK_DUE_HOURS

    async def push(self, lead_id: UUID, repos: IntentRepositories) -> AutoPushResult:
        """Run the qualifier for *lead_id*.

        Short-circuits, in order: missing lead, auto-push disabled, already
        pushed, not eligible.  Database failures roll back and raise
        :class:`PersistenceUnavailableError`; the lead stays eligible.
        """
        lead = await repos.leads.get_by_id(lead_id)
        if lead is None:
            return AutoPushResult(pushed=False, reason=REASON_LEAD_NOT_FOUND)
        if not lead.auto_push_enabled:
            return AutoPushResult(pushed=False, reason=REASON_DISABLED)
        if lead.sales_customer_id is not None:
            return AutoPushResult(pushed=False, reason=REASON_ALREADY_PUSHED)

        outcome = await self._classifier.classify_lead(lead_id, repos)
        if not outcome.should_auto_push:
            await repos.commit()
            return AutoPushResult(pushed=False, reason=REASON_NOT_READY)

        now = datetime.now(timezone.utc)
        try:
            async with repos.leads.savepoint():
                customer = await repos.sales.create_customer(
                    marketing_lead_id=lead.id,
                    company_name=lead.company_name,
                    contact_name=lead.contact_name,
                    email=lead.email,
                    phone=lead.phone,
                )
                await repos.sales.create_task(
                    customer_id=customer.id,
                    title=SALES_TASK_TITLE,
                    priority="high",
                    status="pending",
                    due_at=now + timedelta(hours=self._task_due_hours),
                )
                if not await repos.leads.claim_sales_customer(lead_id, customer.id):
                    raise _AlreadyClaimed()
                await repos.events.insert_event(
                    lead_id=lead_id,
                    event_type=AUTO_PUSH_AUDIT_EVENT_TYPE,
                    event_source=SYSTEM_EVENT_SOURCE,
                    occurred_at=now,
                    metadata={
                        "customer_id": str(customer.id),
                        "stage": outcome.stage,
                        "intent_score": outcome.intent_score,
                    },
                )
            await repos.commit()
        except _AlreadyClaimed:
            await repos.commit()
            logger.info("Lead %s was pushed by a concurrent request", lead_id)
            return AutoPushResult(pushed=False, reason=REASON_ALREADY_PUSHED)
        except SQLAlchemyError as exc:
            await repos.rollback()
            logger.error("Auto-push failed for lead %s: %s", lead_id, exc)
            raise PersistenceUnavailableError("Auto-push failed; lead left eligible") from exc

        logger.info(
            "Lead %s pushed to sales as customer %s (stage=%s, score=%d)",
            lead_id,
            customer.id,
            outcome.stage,
            outcome.intent_score,
        )
        return AutoPushResult(pushed=True, customer_id=customer.id)
