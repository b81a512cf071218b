from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    CheckConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class IntentRule(Base):
    """Database-driven scoring rule.

    ``base_score`` rules give the points for one ``event_type``;
    ``modifier`` rules add points when every predicate in
    ``modifier_condition`` holds for the event metadata.  Seeded from
    ``DEFAULT_INTENT_RULES`` when the table is empty.
    """

    __tablename__ = "intent_rules"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    rule_key = Column(String(100), nullable=False, unique=True)
    rule_type = Column(String(20), nullable=False)
    event_type = Column(String(50), nullable=True)
    modifier_condition = Column(JSONB, nullable=True)
    points = Column(Integer, nullable=False, server_default=text("0"))
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "rule_type IN ('base_score', 'modifier')", name="ck_intent_rule_type"
        ),
        CheckConstraint("points >= 0", name="ck_intent_rule_points"),
    )
