"""
AccessRequest model — a project's request for an ARC product (leaderboard, gamified, CRM).

Once approved it should point at a live arena or campaign; the backfill
routine repairs approved requests that do not.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from arc.database import Base


class AccessRequest(Base):
    __tablename__ = 'arc_access_requests'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(Text, ForeignKey('projects.id'), nullable=False, index=True)
    product_type = Column(Text, nullable=False)              # ms / gamified / crm
    status = Column(Text, nullable=False, default='pending')  # pending / approved / rejected
    decided_at = Column(DateTime(timezone=True), nullable=True)
    arena_id = Column(Text, nullable=True)
    campaign_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
