"""LedgerAccount model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class LedgerAccount(Base):
    """Balance-tracking unit for one (subscription, usage meter) pair."""

    __tablename__ = "ledger_accounts"
    __table_args__ = (
        UniqueConstraint("subscription_id", "usage_meter_id", name="uq_ledger_accounts_subscription_meter"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=False, index=True)
    usage_meter_id = Column(String, ForeignKey("usage_meters.id"), nullable=True)
    livemode = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
