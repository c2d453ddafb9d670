"""
StepExecution model — immutable audit record, one row per attempted step.
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey

from leadflow.database import Base


class StepExecution(Base):
    __tablename__ = 'workflow_step_executions'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    enrollment_id = Column(Text, ForeignKey('workflow_enrollments.id'), nullable=False, index=True)
    step_index = Column(Integer, nullable=False)
    step_type = Column(Text, nullable=False)
    step_config = Column(JSON, default=dict)     # snapshot of the authored config
    status = Column(Text, nullable=False)        # completed/failed
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    result = Column(JSON, default=dict)
    error_message = Column(Text, nullable=True)
