"""
Ranker & Contribution Calculator.

Sorts by score descending with a deterministic tie-break so repeated calls on
unchanged data always produce the same order:

    1. score, highest first
    2. join time, earliest first (auto-tracked creators have none and sort after joined ones)
    3. handle, lexical
"""
from datetime import datetime
from typing import Dict, List, Optional

from arc.engine.base import LeaderboardEntry, as_naive_utc

_NEVER_JOINED = datetime.max


def _sort_key(entry: LeaderboardEntry):
    joined_at = as_naive_utc(entry.joined_at) if entry.joined_at else _NEVER_JOINED
    return (-entry.score, joined_at, entry.twitter_username)


def contribution_pct(score: int, total: int) -> Optional[float]:
    """score as a percentage of total, or None when there is no mindshare at all."""
    if total <= 0:
        return None
    return (score / total) * 100


def rank_entries(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Sort in place, assign ranks 1..N and contribution percentages."""
    entries.sort(key=_sort_key)
    total = sum(e.score for e in entries)
    for index, entry in enumerate(entries):
        entry.rank = index + 1
        entry.contribution_pct = contribution_pct(entry.score, total)
    return entries


def contribution_shares(entries: List[LeaderboardEntry]) -> Dict[str, float]:
    """handle → contribution pct (0.0 when undefined)."""
    return {e.twitter_username: e.contribution_pct or 0.0 for e in entries}
