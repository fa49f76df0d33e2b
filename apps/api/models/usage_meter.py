"""UsageMeter model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from database import Base


class UsageMeter(Base):
    """A merchant-defined meter that usage and usage credits are measured against."""

    __tablename__ = "usage_meters"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    livemode = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
