from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update, func

from intent_engine.models.marketing_lead import MarketingLead
from intent_engine.repositories.base import BaseRepository


class MarketingLeadRepository(BaseRepository):
    """Encapsulates every SQL query that touches ``marketing_leads``."""

    async def get_by_id(self, lead_id: UUID) -> Optional[MarketingLead]:
        result = await self._db.execute(
            select(MarketingLead)
            .where(MarketingLead.id == lead_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[MarketingLead]:
        """Case-insensitive lookup; the oldest lead wins when several match."""
        result = await self._db.execute(
            select(MarketingLead)
            .where(func.lower(MarketingLead.email) == email.lower())
            .order_by(MarketingLead.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone: str) -> Optional[MarketingLead]:
        result = await self._db.execute(
            select(MarketingLead)
            .where(MarketingLead.phone == phone)
            .order_by(MarketingLead.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> MarketingLead:
        lead = MarketingLead(**kwargs)
        self._db.add(lead)
        await self._db.flush()
        return lead

    async def update_stage(self, lead_id: UUID, stage: str, intent_score: int) -> None:
        await self._db.execute(
            update(MarketingLead)
            .where(MarketingLead.id == lead_id)
            .values(
                marketing_stage=stage,
                intent_score=intent_score,
                updated_at=func.now(),
            )
        )

    async def touch_last_signal(self, lead_id: UUID, at: datetime) -> int:
        """Stamp ``last_signal_at``; a no-op when no lead has this id."""
        result = await self._db.execute(
            update(MarketingLead)
            .where(MarketingLead.id == lead_id)
            .values(last_signal_at=at, updated_at=func.now())
        )
        return result.rowcount or 0

    async def claim_sales_customer(self, lead_id: UUID, customer_id: UUID) -> bool:
        """Set ``sales_customer_id`` only if it is still unset.

        Returns ``False`` when another request already claimed the lead.
        """
        result = await self._db.execute(
            update(MarketingLead)
            .where(
                MarketingLead.id == lead_id,
                MarketingLead.sales_customer_id.is_(None),
            )
            .values(sales_customer_id=customer_id, updated_at=func.now())
        )
        return (result.rowcount or 0) == 1
