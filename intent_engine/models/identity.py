from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class Identity(Base):
    """A known person, keyed by normalized (lower-cased) email."""

    __tablename__ = "identities"
    identity_id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(200), nullable=True)
    source = Column(String(50), nullable=True)
    first_identified_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    identity_metadata = Column(
        "metadata", JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )


class TrackingSession(Base):
    """Browser session reported by the tracker beacon."""

    __tablename__ = "tracking_sessions"
    session_id = Column(UUID(as_uuid=True), primary_key=True)
    anonymous_id = Column(UUID(as_uuid=True), nullable=False)
    identity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("identities.identity_id", ondelete="SET NULL"),
        nullable=True,
    )
    first_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_tracking_sessions_anon_seen", "anonymous_id", "last_seen_at"),
    )
