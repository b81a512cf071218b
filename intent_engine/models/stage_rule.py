from sqlalchemy import (
    Column,
    String,
    Integer,
    Boolean,
    DateTime,
    CheckConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class StageScoringRule(Base):
    """Flat points per event type used by the decay-based stage classifier."""

    __tablename__ = "stage_scoring_rules"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    rule_name = Column(String(100), nullable=False)
    event_type = Column(String(50), nullable=False, unique=True)
    points = Column(Integer, nullable=False, server_default=text("0"))
    is_hard_intent = Column(Boolean, nullable=False, server_default=text("false"))
    stage_hint = Column(String(5), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_stage_rule_points"),
        CheckConstraint(
            "stage_hint IS NULL OR stage_hint IN ('M1', 'M2', 'M3', 'M4', 'M5')",
            name="ck_stage_rule_hint",
        ),
    )
