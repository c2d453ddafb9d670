"""
AdvisorPerformance model — routing state used for load-balanced assignment.
"""
from sqlalchemy import Column, Boolean, Integer, Text, DateTime
from sqlalchemy.sql import func

from leadflow.database import Base


class AdvisorPerformance(Base):
    __tablename__ = 'advisor_performance'

    advisor_id = Column(Text, primary_key=True)
    routing_enabled = Column(Boolean, default=True)
    current_weekly_assignments = Column(Integer, default=0)
    capacity_per_week = Column(Integer, default=50)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
