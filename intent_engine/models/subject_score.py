from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    CheckConstraint,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class IntentSubjectScore(Base):
    """Running intent total for an anonymous visitor or a known identity."""

    __tablename__ = "intent_subject_scores"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    subject_type = Column(String(20), nullable=False)
    subject_id = Column(UUID(as_uuid=True), nullable=False)
    total_score = Column(Integer, nullable=False, server_default=text("0"))
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    last_threshold_emitted = Column(String(20), nullable=True)
    subject_metadata = Column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "subject_type", "subject_id", name="uq_intent_subject_scores_subject"
        ),
        CheckConstraint(
            "subject_type IN ('anonymous', 'identity')",
            name="ck_intent_subject_type",
        ),
    )
