from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from intent_engine.core.constants import STAGE_CHECK_CLAUSE
from intent_engine.models.base import Base


class MarketingLead(Base):
    """Prospect owned by marketing until it is pushed to sales.

    ``intent_score`` holds the decayed stage-classifier total and
    ``marketing_stage`` its M1..M5 stage.  ``sales_customer_id`` is written
    at most once, by the auto-push qualifier.
    """

    __tablename__ = "marketing_leads"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    company_name = Column(String(200), nullable=True)
    contact_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    source_type = Column(String(50), nullable=True)
    marketing_stage = Column(String(5), nullable=False, server_default="M1")
    intent_score = Column(Integer, nullable=False, server_default=text("0"))
    last_signal_at = Column(DateTime(timezone=True), nullable=True)
    auto_push_enabled = Column(Boolean, nullable=False, server_default=text("true"))
    sales_customer_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(STAGE_CHECK_CLAUSE, name="ck_marketing_lead_stage"),
        CheckConstraint("intent_score >= 0", name="ck_marketing_lead_score"),
        Index("idx_marketing_leads_email", "email"),
    )
