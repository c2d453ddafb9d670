"""
WorkflowEnrollment model — one lead's traversal of one workflow.

current_step_index is a 0-based cursor into the workflow's element list.
Rows are never deleted by the engine; terminal state is status='completed'
with an exit_reason.
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.sql import func

from leadflow.database import Base


class WorkflowEnrollment(Base):
    __tablename__ = 'workflow_enrollments'
    __table_args__ = (
        Index('ix_enrollment_workflow_lead', 'workflow_id', 'lead_id'),
        Index('ix_enrollment_status_scheduled', 'status', 'next_step_scheduled_at'),
    )

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow_id = Column(Text, ForeignKey('workflows.id'), nullable=False)
    # Nulled when the lead is deleted; the scheduler then exits with 'lead_deleted'
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(Text, nullable=False)
    current_step_index = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default='active')
    step_history = Column(JSON, default=list)
    # `metadata` is reserved on declarative classes
    enrollment_metadata = Column('metadata', JSON, default=dict)
    next_step_scheduled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    exit_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
