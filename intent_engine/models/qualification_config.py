from sqlalchemy import Column, Integer, DateTime, CheckConstraint, text
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class QualificationConfig(Base):
    """Singleton row (``id = 1``) holding the stage thresholds."""

    __tablename__ = "qualification_config"
    id = Column(Integer, primary_key=True, server_default=text("1"))
    m1_min = Column(Integer, nullable=False, server_default=text("0"))
    m2_min = Column(Integer, nullable=False, server_default=text("6"))
    m3_min = Column(Integer, nullable=False, server_default=text("16"))
    m4_min = Column(Integer, nullable=False, server_default=text("31"))
    m5_min = Column(Integer, nullable=False, server_default=text("46"))
    auto_push_threshold = Column(Integer, nullable=False, server_default=text("31"))
    decay_points_per_week = Column(Integer, nullable=False, server_default=text("1"))
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_qualification_config_singleton"),
        CheckConstraint(
            "m1_min <= m2_min AND m2_min <= m3_min AND m3_min <= m4_min "
            "AND m4_min <= m5_min",
            name="ck_qualification_config_ascending",
        ),
    )
