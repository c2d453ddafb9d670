"""
Lead model — a prospective student owned by a CRM user.

The workflow engine reads leads for personalization and branching, and may
mutate status, tags, score, priority, program interest and assignment.
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime, JSON
from sqlalchemy.sql import func

from leadflow.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Text, nullable=False, index=True)   # owning CRM user
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    email = Column(Text, default='')
    phone = Column(Text, nullable=True)
    status = Column(Text, default='new')
    source = Column(Text, nullable=True)
    tags = Column(JSON, default=list)
    lead_score = Column(Integer, default=0)
    priority = Column(Text, nullable=True)
    program_interest = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    country = Column(Text, nullable=True)
    assigned_to = Column(Text, nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
