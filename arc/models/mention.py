"""
Mention model — one social post about a project (the project_tweets table).

Rows with is_official = False are organic creator activity and the sole input
to auto-tracked scoring.
"""
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from arc.database import Base


class Mention(Base):
    __tablename__ = 'project_tweets'
    __table_args__ = (
        Index('ix_project_tweets_project_created', 'project_id', 'created_at'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Text, ForeignKey('projects.id'), nullable=False)
    tweet_id = Column(Text, nullable=True)
    author_handle = Column(Text, nullable=False)
    likes = Column(Integer, default=0)
    replies = Column(Integer, default=0)
    retweets = Column(Integer, default=0)
    is_official = Column(Boolean, default=False)
    text = Column(Text, nullable=True)
    sentiment_score = Column(Float, nullable=True)          # 0-100
    author_profile_image_url = Column(Text, nullable=True)  # avatar snapshot at ingest time
    created_at = Column(DateTime(timezone=True), server_default=func.now())
