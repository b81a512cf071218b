from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    CheckConstraint,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from intent_engine.core.constants import BAND_ORDER
from intent_engine.models.base import Base


class LeadIntentRollup(Base):
    """Windowed score totals for a subject, rebuilt from scratch on every event.

    ``last_band_emitted`` is the hysteresis pointer consulted before a new
    threshold signal is written.
    """

    __tablename__ = "lead_intent_rollups"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    subject_id = Column(UUID(as_uuid=True), nullable=False)
    subject_type = Column(String(20), nullable=False, server_default="lead")
    score_7d = Column(Integer, nullable=False, server_default=text("0"))
    score_30d = Column(Integer, nullable=False, server_default=text("0"))
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    last_band_emitted = Column(String(20), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("subject_id", name="uq_lead_intent_rollups_subject"),
        CheckConstraint(
            "subject_type IN ('lead', 'anonymous')", name="ck_rollup_subject_type"
        ),
        CheckConstraint(
            "last_band_emitted IS NULL OR last_band_emitted IN ("
            + ", ".join(repr(b) for b in BAND_ORDER)
            + ")",
            name="ck_rollup_last_band",
        ),
    )
