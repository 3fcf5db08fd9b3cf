"""
UserRole model — role grants read by the super-admin gate.
"""
from sqlalchemy import Column, Integer, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from arc.database import Base


class UserRole(Base):
    __tablename__ = 'akari_user_roles'
    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    role = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
