"""Subscription model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class Subscription(Base):
    """A customer's subscription to a merchant's plan."""

    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, nullable=False, index=True)
    customer_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False, default="active")
    livemode = Column(Boolean, nullable=False, default=True)
    renews = Column(Boolean, nullable=False, default=True)
    interval_unit = Column(String, nullable=False, default="month")
    interval_count = Column(Integer, nullable=False, default=1)
    current_billing_period_start = Column(DateTime(timezone=True), nullable=True)
    current_billing_period_end = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    billing_periods = relationship("BillingPeriod", back_populates="subscription", cascade="all, delete-orphan")
