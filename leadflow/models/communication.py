"""
LeadCommunication model — outbound/inbound message log per lead.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from leadflow.database import Base


class LeadCommunication(Base):
    __tablename__ = 'lead_communications'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    lead_id = Column(Text, ForeignKey('leads.id'), nullable=False, index=True)
    user_id = Column(Text, nullable=True)
    type = Column(Text, nullable=False)          # email/sms
    direction = Column(Text, nullable=False, default='outbound')
    subject = Column(Text, nullable=True)
    content = Column(Text, default='')
    status = Column(Text, default='sent')
    created_at = Column(DateTime(timezone=True), server_default=func.now())
