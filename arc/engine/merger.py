"""
Score Merger — one LeaderboardEntry per creator from either source.

    joined:              multiplier = 1.5 if follow-verified else 1.0
                         score = floor(base_points × multiplier)
    auto-tracked only:   multiplier = 1.0, score = points   (only if points > 0)
    both:                auto points are added to base_points *before* the
                         joined creator's multiplier is applied
"""
import math
from typing import Dict, List

from arc.config import BASE_MULTIPLIER, FOLLOW_VERIFIED_MULTIPLIER
from arc.engine.base import LeaderboardEntry, ResolvedCreator


def follow_multiplier(follow_verified: bool) -> float:
    return FOLLOW_VERIFIED_MULTIPLIER if follow_verified else BASE_MULTIPLIER


def weighted_score(base_points: int, multiplier: float) -> int:
    return int(math.floor(base_points * multiplier))


def merge_scores(auto_points: Dict[str, int],
                 creators: Dict[str, ResolvedCreator],
                 source_handles: Dict[str, str] = None) -> List[LeaderboardEntry]:
    """
    Combine auto-tracked points with joined creators.

    Args:
        auto_points:    handle → mention points (Mention Aggregator output)
        creators:       handle → ResolvedCreator (Participation Resolver output)
        source_handles: optional handle → original-case handle for auto-tracked
                        creators, kept for avatar lookups

    Returns entries in merge order: joined creators first, then auto-tracked.
    """
    source_handles = source_handles or {}
    entries: Dict[str, LeaderboardEntry] = {}

    for handle, creator in creators.items():
        multiplier = follow_multiplier(creator.follow_verified)
        entries[handle] = LeaderboardEntry(
            twitter_username=handle,
            base_points=creator.base_points,
            multiplier=multiplier,
            score=weighted_score(creator.base_points, multiplier),
            is_joined=True,
            is_auto_tracked=False,
            follow_verified=creator.follow_verified,
            ring=creator.ring,
            joined_at=creator.joined_at,
            profile_id=creator.profile_id,
            source_handle=creator.source_handle,
        )

    for handle, points in auto_points.items():
        entry = entries.get(handle)
        if entry is not None:
            entry.base_points += points
            entry.score = weighted_score(entry.base_points, entry.multiplier)
        elif points > 0:
            entries[handle] = LeaderboardEntry(
                twitter_username=handle,
                base_points=points,
                multiplier=BASE_MULTIPLIER,
                score=points,
                is_joined=False,
                is_auto_tracked=True,
                source_handle=source_handles.get(handle, handle),
            )

    return list(entries.values())
