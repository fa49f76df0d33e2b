"""UsageCredit model (usage-credit grants)."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.sql import func

from database import Base


class UsageCredit(Base):
    """Usage credit issued to a subscription for one usage meter.

    Never mutated after issue; expiry is recorded as a ledger debit.
    """

    __tablename__ = "usage_credits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=False, index=True)
    usage_meter_id = Column(String, ForeignKey("usage_meters.id"), nullable=False, index=True)
    billing_period_id = Column(String, ForeignKey("billing_periods.id"), nullable=True)
    credit_type = Column(String, nullable=False, default="grant")
    status = Column(String, nullable=False, default="posted")
    source_reference_type = Column(String, nullable=False)
    issued_amount = Column(Integer, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    livemode = Column(Boolean, nullable=False, default=True)
    notes = Column(String, nullable=True)
    credit_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
