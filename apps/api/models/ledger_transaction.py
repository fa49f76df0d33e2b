"""LedgerTransaction model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class LedgerTransaction(Base):
    """Atomic container grouping ledger entries written together."""

    __tablename__ = "ledger_transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String, ForeignKey("subscriptions.id"), nullable=True, index=True)
    livemode = Column(Boolean, nullable=False, default=True)
    type = Column(String, nullable=False)
    description = Column(String, nullable=True)
    transaction_metadata = Column("metadata", JSON, nullable=True)
    initiating_source_type = Column(String, nullable=True)
    initiating_source_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    entries = relationship("LedgerEntry", back_populates="ledger_transaction")
