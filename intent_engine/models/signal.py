from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from intent_engine.core.constants import BAND_CHECK_CLAUSE
from intent_engine.models.base import Base


class IntentSignal(Base):
    """Append-only record of a subject crossing into a higher band."""

    __tablename__ = "intent_signals"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    subject_id = Column(UUID(as_uuid=True), nullable=False)
    band = Column(String(20), nullable=False)
    score_7d = Column(Integer, nullable=False, server_default=text("0"))
    score_30d = Column(Integer, nullable=False, server_default=text("0"))
    last_event_id = Column(UUID(as_uuid=True), nullable=True)
    last_event_type = Column(String(50), nullable=True)
    last_event_source = Column(String(50), nullable=True)
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    emitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    payload = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))

    __table_args__ = (
        CheckConstraint(BAND_CHECK_CLAUSE, name="ck_intent_signal_band"),
        Index("idx_intent_signals_subject_emitted", "subject_id", "emitted_at"),
    )
