"""
FollowVerification model — a creator confirmed to follow the project account.

Only rows with a non-null verified_at grant the follow multiplier.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from arc.database import Base


class FollowVerification(Base):
    __tablename__ = 'arc_project_follows'

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Text, ForeignKey('projects.id'), nullable=False, index=True)
    twitter_username = Column(Text, nullable=False)
    profile_id = Column(Text, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
