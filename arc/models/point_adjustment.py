"""
PointAdjustment model — append-only ledger of moderator corrections.

Rows are never updated or deleted; a creator's adjustments are summed into base points.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from arc.database import Base


class PointAdjustment(Base):
    __tablename__ = 'arc_point_adjustments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    arena_id = Column(Text, ForeignKey('arenas.id'), nullable=False, index=True)
    creator_profile_id = Column(Text, nullable=False)
    points_delta = Column(Integer, nullable=False, default=0)  # signed
    reason = Column(Text, nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
