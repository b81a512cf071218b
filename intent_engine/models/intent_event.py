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

from intent_engine.core.constants import EVENT_TYPE_CHECK_CLAUSE
from intent_engine.models.base import Base


class IntentEvent(Base):
    """A single behavioral signal tied to a lead and/or anonymous visitor.

    Rows are immutable apart from backfilling ``identity_id`` / ``lead_id``
    once an anonymous visitor is identified.  ``(event_source, dedupe_key)``
    is unique whenever ``dedupe_key`` is present, so client retries land on
    the original row.
    """

    __tablename__ = "intent_events"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    lead_id = Column(UUID(as_uuid=True), nullable=True)
    anonymous_id = Column(UUID(as_uuid=True), nullable=True)
    identity_id = Column(UUID(as_uuid=True), nullable=True)
    event_type = Column(String(50), nullable=False)
    event_source = Column(String(50), nullable=False, server_default="website")
    event_value = Column(Integer, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # ``metadata`` is reserved on declarative classes
    event_metadata = Column("metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    dedupe_key = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "lead_id IS NOT NULL OR anonymous_id IS NOT NULL",
            name="ck_intent_event_subject",
        ),
        CheckConstraint(EVENT_TYPE_CHECK_CLAUSE, name="ck_intent_event_type"),
        Index(
            "uq_intent_events_source_dedupe",
            "event_source",
            "dedupe_key",
            unique=True,
            postgresql_where=text("dedupe_key IS NOT NULL"),
        ),
        Index("idx_intent_events_lead_occurred", "lead_id", "occurred_at"),
        Index("idx_intent_events_anon_occurred", "anonymous_id", "occurred_at"),
    )
