"""
Historical Delta Engine — trend deltas against 7 d / 1 mo / 3 mo ago.

For every cutoff the merge → rank → contribution pipeline is replayed over the
rows already loaded for the current board, restricted to what existed before
the cutoff (mentions, joins, adjustments and follow verifications). The three
replays run concurrently and are joined before deltas are applied.

    delta = round((current_pct − historical_pct) × 100)   in basis points
    delta = None only when both percentages are exactly zero
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional

from arc.config import HISTORY_WINDOWS
from arc.engine.base import LeaderboardEntry, MentionRow, Participation, round_half_up, utcnow
from arc.engine.mentions import aggregate_points
from arc.engine.merger import merge_scores
from arc.engine.participation import resolve_participation
from arc.engine.ranking import contribution_shares, rank_entries

logger = logging.getLogger('engine.history')


def historical_shares(mentions: List[MentionRow], participation: Participation,
                      cutoff: datetime) -> Dict[str, float]:
    """handle → contribution pct of the board as it stood just before `cutoff`."""
    auto_points = aggregate_points(mentions, as_of=cutoff)
    creators = resolve_participation(participation, as_of=cutoff)
    entries = rank_entries(merge_scores(auto_points, creators))
    return contribution_shares(entries)


def delta_bps(current_pct: Optional[float], historical_pct: Optional[float]) -> Optional[int]:
    current = current_pct or 0.0
    historical = historical_pct or 0.0
    if current == 0 and historical == 0:
        return None
    return round_half_up((current - historical) * 100)


def compute_cutoffs(now: Optional[datetime] = None) -> Dict[str, datetime]:
    now = now or utcnow()
    return {field: now - window for field, window in HISTORY_WINDOWS.items()}


def apply_deltas(entries: List[LeaderboardEntry], mentions: List[MentionRow],
                 participation: Participation, now: Optional[datetime] = None) -> List[LeaderboardEntry]:
    """
    Fill delta7d / delta1m / delta3m on every entry.

    A cutoff whose replay fails leaves its delta field None on every entry;
    the board itself is never failed by history.
    """
    cutoffs = compute_cutoffs(now)
    shares: Dict[str, Optional[Dict[str, float]]] = {}

    with ThreadPoolExecutor(max_workers=len(cutoffs)) as executor:
        futures = {
            field: executor.submit(historical_shares, mentions, participation, cutoff)
            for field, cutoff in cutoffs.items()
        }
        for field, future in futures.items():
            try:
                shares[field] = future.result()
            except Exception:
                logger.error("Historical replay for %s failed (cutoff %s)",
                             field, cutoffs[field].isoformat(), exc_info=True)
                shares[field] = None

    for entry in entries:
        for field, historical in shares.items():
            if historical is None:
                setattr(entry, field, None)
                continue
            setattr(entry, field, delta_bps(entry.contribution_pct,
                                            historical.get(entry.twitter_username)))
    return entries
