from sqlalchemy import Column, String, DateTime, CheckConstraint, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from intent_engine.models.base import Base


class SalesCustomer(Base):
    __tablename__ = "sales_customers"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    marketing_lead_id = Column(UUID(as_uuid=True), nullable=True)
    company_name = Column(String(200), nullable=True)
    contact_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    source = Column(String(50), nullable=False, server_default="marketing_auto_push")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tasks = relationship(
        "SalesTask", back_populates="customer", cascade="all, delete-orphan"
    )


class SalesTask(Base):
    __tablename__ = "sales_tasks"
    id = Column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("sales_customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = Column(String(200), nullable=False)
    priority = Column(String(20), nullable=False, server_default="medium")
    status = Column(String(20), nullable=False, server_default="pending")
    due_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    customer = relationship("SalesCustomer", back_populates="tasks")

    __table_args__ = (
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="ck_sales_task_priority"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'overdue')", name="ck_sales_task_status"
        ),
    )
