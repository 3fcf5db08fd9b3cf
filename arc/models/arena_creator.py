"""
ArenaCreator model — one row per creator who explicitly joined an arena.

Never auto-deleted. profile_id is null until the creator claims a profile.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from arc.database import Base


class ArenaCreator(Base):
    __tablename__ = 'arena_creators'

    id = Column(Integer, primary_key=True, autoincrement=True)
    arena_id = Column(Text, ForeignKey('arenas.id'), nullable=False, index=True)
    profile_id = Column(Text, nullable=True)
    twitter_username = Column(Text, nullable=False)
    arc_points = Column(Integer, default=0)     # manually-assigned base points
    ring = Column(Text, nullable=True)          # core / momentum / discovery (advisory)
    created_at = Column(DateTime(timezone=True), server_default=func.now())  # join time
