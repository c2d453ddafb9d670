"""
LeadTask model — follow-up work items created by create-task steps.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from leadflow.database import Base


class LeadTask(Base):
    __tablename__ = 'lead_tasks'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default='')
    description = Column(Text, default='')
    task_type = Column(Text, default='follow_up')
    priority = Column(Text, default='medium')
    due_date = Column(DateTime(timezone=True), nullable=True)
    assigned_to = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='pending')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
