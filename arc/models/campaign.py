"""
Campaign model — creator-manager campaign, the reconciliation target for 'crm' access requests.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from arc.database import Base


class Campaign(Base):
    __tablename__ = 'arc_campaigns'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(Text, ForeignKey('projects.id'), nullable=False)
    name = Column(Text, nullable=False, default='')
    status = Column(Text, nullable=False, default='draft')   # draft / live / paused / ended
    created_at = Column(DateTime(timezone=True), server_default=func.now())
