"""
Leaderboard pipeline — one project's ranked mindshare board, recomputed per request.

    load    participation (required) + organic mentions (best effort)
    merge   auto-tracked points with joined creators
    rank    score desc, deterministic tie-break, contribution %
    history 7d / 1mo / 3mo deltas from an in-memory replay
    signals ct_heat, signal_score, trust_band
    enrich  avatars through the tiered fallback chain

Only a failed project lookup or creator read fails the call; every later step
degrades to None fields.
"""
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from arc.engine.base import LeaderboardResult, MentionRow, utcnow
from arc.engine.enrichment import enrich_avatars
from arc.engine.history import apply_deltas
from arc.engine.mentions import aggregate_points, load_mentions_safe
from arc.engine.merger import merge_scores
from arc.engine.participation import load_participation, resolve_participation
from arc.engine.ranking import rank_entries
from arc.engine.signals import attach_signal_metrics, load_smart_followers
from arc.models.project import Project

logger = logging.getLogger('engine.leaderboard')


class ProjectNotFoundError(Exception):
    def __init__(self, project_id):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


def latest_source_handles(mentions: List[MentionRow]) -> Dict[str, str]:
    """normalized handle → the handle as most recently written by its author."""
    handles = {}
    for m in mentions:
        if m.source_handle:
            handles[m.handle] = m.source_handle
    return handles


def build_leaderboard(session, project_id: str, now: Optional[datetime] = None,
                      client=None) -> LeaderboardResult:
    """
    Compute the full leaderboard for `project_id`.

    Raises:
        ProjectNotFoundError: no such project
        LeaderboardUnavailableError: the arena or its creators could not be read
    """
    start = time.time()
    now = now or utcnow()

    if session.get(Project, project_id) is None:
        raise ProjectNotFoundError(project_id)

    participation = load_participation(session, project_id)
    mentions = load_mentions_safe(session, project_id)

    entries = merge_scores(
        aggregate_points(mentions),
        resolve_participation(participation),
        source_handles=latest_source_handles(mentions),
    )
    rank_entries(entries)

    apply_deltas(entries, mentions, participation, now=now)

    smart_followers = load_smart_followers(session, [e.twitter_username for e in entries])
    attach_signal_metrics(entries, mentions, smart_followers=smart_followers, now=now)

    enrich_avatars(session, project_id, entries, client=client)

    logger.info("Leaderboard built: %d entries (%d joined) in %.2fs",
                len(entries), sum(1 for e in entries if e.is_joined), time.time() - start,
                extra={'project_id': project_id, 'arena_id': participation.arena_id})

    return LeaderboardResult(
        entries=entries,
        arena_id=participation.arena_id,
        arena_name=participation.arena_name,
    )
