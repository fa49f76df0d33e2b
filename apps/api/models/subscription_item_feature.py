"""SubscriptionItemFeature model for usage-credit-grant entitlements."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from database import Base


class SubscriptionItemFeature(Base):
    """Usage credit entitlement attached to a subscription."""

    __tablename__ = "subscription_item_features"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=False, index=True)
    usage_meter_id = Column(String, ForeignKey("usage_meters.id"), nullable=True)
    amount = Column(Integer, nullable=False, default=0)
    renewal_frequency = Column(String, nullable=False, default="every_billing_period")
    expired_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
