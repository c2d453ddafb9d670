"""
Notification model — in-app notifications for staff users.
"""
import uuid

from sqlalchemy import Column, Boolean, Text, DateTime, JSON
from sqlalchemy.sql import func

from leadflow.database import Base


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Text, nullable=False, index=True)   # recipient
    type = Column(Text, nullable=False)                  # lead_assigned/workflow_notification
    title = Column(Text, nullable=True)
    message = Column(Text, default='')
    data = Column(JSON, default=dict)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
