"""LedgerEntry model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class LedgerEntry(Base):
    """Immutable, append-only balance movement. Posted rows are never edited."""

    __tablename__ = "ledger_entries"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ledger_transaction_id = Column(String, ForeignKey("ledger_transactions.id"), nullable=False, index=True)
    ledger_account_id = Column(String, ForeignKey("ledger_accounts.id"), nullable=False, index=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=True, index=True)
    organization_id = Column(String, nullable=False, index=True)
    usage_meter_id = Column(String, ForeignKey("usage_meters.id"), nullable=True)
    billing_period_id = Column(String, ForeignKey("billing_periods.id"), nullable=True)
    entry_type = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False)
    entry_timestamp = Column(DateTime(timezone=True), nullable=False)
    description = Column(String, nullable=True)
    entry_metadata = Column("metadata", JSON, nullable=True)
    livemode = Column(Boolean, nullable=False, default=True)
    discarded_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    source_usage_credit_id = Column(String, ForeignKey("usage_credits.id"), nullable=True, index=True)
    source_usage_event_id = Column(String, nullable=True)
    source_credit_application_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    ledger_transaction = relationship("LedgerTransaction", back_populates="entries")
