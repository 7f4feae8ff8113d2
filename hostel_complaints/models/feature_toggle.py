"""
Feature toggle model - runtime boolean switches
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime

from hostel_complaints.database import Base
from hostel_complaints.utils.helpers import utcnow


class FeatureToggle(Base):
    __tablename__ = "feature_toggles"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
