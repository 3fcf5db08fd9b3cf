"""
Project model — the account a campaign belongs to. Owns arenas, mentions and follow verifications.
"""
import uuid

from sqlalchemy import Column, Text, DateTime
from sqlalchemy.sql import func

from arc.database import Base


class Project(Base):
    __tablename__ = 'projects'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    slug = Column(Text, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
