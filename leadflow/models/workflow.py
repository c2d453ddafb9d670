"""
Workflow model — a user-authored automation (trigger + ordered steps).

trigger_config holds the serialized builder output:
    {"elements": [{"type": "trigger", "config": {...}}, {"type": "email", ...}],
     "settings": {"reEnrollmentAllowed": false}}

The engine treats everything except execution_stats as read-only.
"""
import uuid

from sqlalchemy import Column, Boolean, Text, DateTime, JSON
from sqlalchemy.sql import func

from leadflow.database import Base


class Workflow(Base):
    __tablename__ = 'workflows'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False, default='')
    is_active = Column(Boolean, default=True)
    trigger_config = Column(JSON, default=dict)
    enrollment_settings = Column(JSON, default=dict)
    execution_stats = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
