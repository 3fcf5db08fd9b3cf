"""
Mention Aggregator — raw project mentions → per-creator engagement points.

Each organic (is_official = False) mention is worth
likes + 2×replies + 3×retweets. An optional `as_of` cutoff keeps only
mentions created strictly before it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from arc.engine.base import MentionRow, before, normalize_handle
from arc.models.mention import Mention

logger = logging.getLogger('engine.mentions')


@dataclass
class MentionStats:
    """Per-creator totals, used for points and CT heat."""
    points: int = 0
    count: int = 0
    likes: int = 0
    retweets: int = 0


def fetch_mentions(session, project_id: str, as_of: Optional[datetime] = None) -> List[MentionRow]:
    """
    Load the project's organic mentions, oldest first.

    Rows with a handle that normalizes to '' are dropped here so every later
    step can trust MentionRow.handle.
    """
    query = session.query(
        Mention.author_handle,
        Mention.likes,
        Mention.replies,
        Mention.retweets,
        Mention.created_at,
        Mention.text,
        Mention.sentiment_score,
        Mention.tweet_id,
    ).filter(
        Mention.project_id == project_id,
        Mention.is_official.isnot(True),
    )
    if as_of is not None:
        query = query.filter(Mention.created_at < as_of)

    rows = []
    for m in query.order_by(Mention.created_at.asc()).all():
        handle = normalize_handle(m.author_handle)
        if not handle:
            continue
        rows.append(MentionRow(
            handle=handle,
            source_handle=(m.author_handle or '').strip().lstrip('@'),
            likes=m.likes or 0,
            replies=m.replies or 0,
            retweets=m.retweets or 0,
            created_at=m.created_at,
            text=m.text,
            sentiment_score=m.sentiment_score,
            tweet_id=m.tweet_id,
        ))
    return rows


def load_mentions_safe(session, project_id: str) -> List[MentionRow]:
    """fetch_mentions() that degrades to an empty list on a failed read."""
    try:
        return fetch_mentions(session, project_id)
    except Exception:
        logger.error("Failed to load mentions — continuing without auto-tracked points",
                     exc_info=True, extra={'project_id': project_id})
        session.rollback()
        return []


def aggregate_stats(mentions: Iterable[MentionRow], as_of: Optional[datetime] = None) -> Dict[str, MentionStats]:
    """Sum points, counts and raw engagement per normalized handle."""
    stats: Dict[str, MentionStats] = {}
    for mention in mentions:
        if not mention.handle or not before(mention.created_at, as_of):
            continue
        s = stats.setdefault(mention.handle, MentionStats())
        s.points += mention.engagement_points
        s.count += 1
        s.likes += mention.likes or 0
        s.retweets += mention.retweets or 0
    return stats


def aggregate_points(mentions: Iterable[MentionRow], as_of: Optional[datetime] = None) -> Dict[str, int]:
    """handle → summed engagement points. Handles with no mentions are absent."""
    return {handle: s.points for handle, s in aggregate_stats(mentions, as_of).items()}


def mention_points(session, project_id: str, as_of: Optional[datetime] = None) -> Dict[str, int]:
    """Query + aggregate in one call."""
    return aggregate_points(fetch_mentions(session, project_id, as_of=as_of))
