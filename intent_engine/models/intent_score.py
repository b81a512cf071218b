from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    DateTime,
    CheckConstraint,
    ForeignKey,
    ARRAY,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class IntentScore(Base):
    """Score computed for one event; upserted by ``intent_event_id``."""

    __tablename__ = "intent_scores"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    intent_event_id = Column(
        UUID(as_uuid=True),
        ForeignKey("intent_events.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    score = Column(Integer, nullable=False, server_default=text("0"))
    confidence = Column(Numeric(4, 3), nullable=False, server_default=text("0"))
    reasons = Column(ARRAY(String), nullable=False, server_default=text("'{}'"))
    model_version = Column(String(50), nullable=False)
    scored_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("IntentEvent")

    __table_args__ = (
        CheckConstraint("score >= 0", name="ck_intent_score_non_negative"),
        CheckConstraint(
            "confidence BETWEEN 0 AND 1", name="ck_intent_score_confidence_range"
        ),
    )
