"""
Creator signal metrics — ct_heat, signal_score, trust_band per entry.

Metrics are decoration: a failure for one creator is logged and leaves that
creator's fields None, never failing the board.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from arc.config import SIGNAL_WINDOW
from arc.engine.base import LeaderboardEntry, MentionRow, before, normalize_handle, utcnow
from arc.engine.mentions import aggregate_stats
from arc.models.profile import Profile
from arc.services.profile_cache import handle_variants
from arc.services.scoring import build_signal_posts, compute_ct_heat, compute_signal_score

logger = logging.getLogger('engine.signals')

_WINDOWS = {'24h': timedelta(hours=24), '7d': timedelta(days=7), '30d': timedelta(days=30)}


def load_smart_followers(session, handles: Iterable[str]) -> Dict[str, int]:
    """
    normalized handle → smart_followers_count from the primary profile registry (non-critical).

    Registry usernames are stored as typed ('Alice', '@alice', ...), so each
    handle is matched case-insensitively with and without the '@'; a bare
    username wins over an '@' one.
    """
    variant_to_handle = {}
    for handle in handles:
        for variant in handle_variants(handle):
            variant_to_handle.setdefault(variant.lower(), normalize_handle(handle))
    if not variant_to_handle:
        return {}
    try:
        rows = session.query(func.lower(Profile.username), Profile.smart_followers_count).filter(
            func.lower(Profile.username).in_(list(variant_to_handle)),
            Profile.smart_followers_count.isnot(None),
        ).all()
    except Exception:
        session.rollback()
        logger.warning("Smart follower lookup failed — signal scores use 0", exc_info=True)
        return {}

    rank = {variant: i for i, variant in enumerate(variant_to_handle)}
    found = {}
    for username, count in sorted(rows, key=lambda r: rank.get(r[0], len(rank))):
        handle = variant_to_handle.get(username)
        if handle and handle not in found:
            found[handle] = count
    return found


def _group_by_handle(mentions: Iterable[MentionRow]) -> Dict[str, List[MentionRow]]:
    grouped: Dict[str, List[MentionRow]] = {}
    for m in mentions:
        grouped.setdefault(m.handle, []).append(m)
    return grouped


def creator_ct_heat(stats) -> Optional[int]:
    """CT heat for a single creator: their own volume and average engagement."""
    if stats is None or stats.count == 0:
        return None
    return compute_ct_heat(
        mentions_count=stats.count,
        avg_likes=stats.likes / stats.count,
        avg_retweets=stats.retweets / stats.count,
        unique_authors=1,
    )


def attach_signal_metrics(entries: List[LeaderboardEntry], mentions: List[MentionRow],
                          smart_followers: Dict[str, int] = None,
                          now: Optional[datetime] = None,
                          window: str = SIGNAL_WINDOW) -> List[LeaderboardEntry]:
    """
    Fill ct_heat / signal_score / trust_band.

    CT heat uses all of the creator's organic mentions; the signal score only
    the posts inside `window`. Creators with no posts in the window keep
    signal_score and trust_band None.
    """
    now = now or utcnow()
    smart_followers = smart_followers or {}
    window_start = now - _WINDOWS.get(window, _WINDOWS['7d'])

    stats = aggregate_stats(mentions)
    by_handle = _group_by_handle(mentions)

    for entry in entries:
        handle = entry.twitter_username
        try:
            entry.ct_heat = creator_ct_heat(stats.get(handle))

            recent = [
                m for m in by_handle.get(handle, [])
                if m.created_at is not None and not before(m.created_at, window_start)
            ]
            if recent:
                result = compute_signal_score(
                    build_signal_posts(recent),
                    window=window,
                    is_joined=entry.is_joined,
                    smart_followers_count=smart_followers.get(handle, 0),
                    now=now,
                )
                entry.signal_score = result.signal_score
                entry.trust_band = result.trust_band
        except Exception:
            logger.warning("Signal metrics failed for @%s", handle, exc_info=True)
            entry.ct_heat = None
            entry.signal_score = None
            entry.trust_band = None

    return entries
