"""
Profile registries used as avatar caches.

Profile        — primary registry, also the write-back target for live lookups.
TrackedProfile — secondary, less authoritative registry fed by tracking jobs.

Usernames may be stored as 'Name', 'name' or '@name'; readers try every variant.
"""
import uuid

from sqlalchemy import Column, Integer, Text, DateTime
from sqlalchemy.sql import func

from arc.database import Base


class Profile(Base):
    __tablename__ = 'profiles'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=True)
    twitter_id = Column(Text, nullable=True)
    profile_image_url = Column(Text, nullable=True)
    smart_followers_count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TrackedProfile(Base):
    __tablename__ = 'tracked_profiles'

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, nullable=False, index=True)
    x_user_id = Column(Text, nullable=True)
    name = Column(Text, nullable=True)
    profile_image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
