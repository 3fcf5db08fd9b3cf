"""
Arena model — a time-boxed scoring container for a project.

At most one arena per (project, kind group) may be 'active'. That invariant is
enforced by arc.engine.lifecycle, not by a storage constraint.
"""
import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from arc.database import Base


class Arena(Base):
    __tablename__ = 'arenas'
    __table_args__ = (
        Index('ix_arenas_project_status', 'project_id', 'status'),
    )

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(Text, ForeignKey('projects.id'), nullable=False)
    name = Column(Text, nullable=False, default='')
    slug = Column(Text, nullable=False, unique=True)
    kind = Column(Text, nullable=False, default='ms')        # ms / legacy_ms / gamified
    status = Column(Text, nullable=False, default='draft')   # see config.ARENA_STATUSES
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)
