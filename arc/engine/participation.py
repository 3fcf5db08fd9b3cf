"""
Participation Resolver — explicitly joined creators of the project's active arena.

Loads the arena's creators (required), point adjustments and follow
verifications (both optional: a failed read is logged and treated as empty),
then resolves per-creator base points and follow status, optionally as of a
past cutoff.
"""
import logging
from datetime import datetime
from typing import Dict, Optional

from arc.config import MINDSHARE_KINDS
from arc.engine.base import (
    AdjustmentRow, CreatorRow, FollowRow, Participation, ResolvedCreator,
    before, normalize_handle,
)
from arc.models.arena import Arena
from arc.models.arena_creator import ArenaCreator
from arc.models.follow_verification import FollowVerification
from arc.models.point_adjustment import PointAdjustment

logger = logging.getLogger('engine.participation')


class LeaderboardUnavailableError(Exception):
    """A read the leaderboard cannot do without (the creator list) failed."""


def find_active_arena(session, project_id: str) -> Optional[Arena]:
    """Most recently created active mindshare arena, or None."""
    return session.query(Arena).filter(
        Arena.project_id == project_id,
        Arena.status == 'active',
        Arena.kind.in_(MINDSHARE_KINDS),
    ).order_by(Arena.created_at.desc()).first()


def load_participation(session, project_id: str) -> Participation:
    """Load creators, adjustments and follow verifications for the active arena."""
    try:
        arena = find_active_arena(session, project_id)
    except Exception as e:
        logger.error("Failed to look up active arena", exc_info=True, extra={'project_id': project_id})
        raise LeaderboardUnavailableError('Failed to fetch arena') from e

    if arena is None:
        logger.info("No active arena — auto-tracked only", extra={'project_id': project_id})
        return Participation()

    participation = Participation(arena_id=arena.id, arena_name=arena.name)

    try:
        for c in session.query(ArenaCreator).filter(ArenaCreator.arena_id == arena.id).all():
            handle = normalize_handle(c.twitter_username)
            if not handle:
                continue
            participation.creators.append(CreatorRow(
                handle=handle,
                source_handle=(c.twitter_username or '').strip().lstrip('@'),
                profile_id=c.profile_id or None,
                arc_points=int(c.arc_points or 0),
                ring=c.ring,
                joined_at=c.created_at,
            ))
    except Exception as e:
        logger.error("Failed to fetch arena creators", exc_info=True, extra={'arena_id': arena.id})
        raise LeaderboardUnavailableError('Failed to fetch arena creators') from e

    try:
        adjustments = session.query(PointAdjustment).filter(
            PointAdjustment.arena_id == arena.id,
        ).all()
        participation.adjustments = [
            AdjustmentRow(
                profile_id=a.creator_profile_id,
                points_delta=int(a.points_delta or 0),
                created_at=a.created_at,
            )
            for a in adjustments
        ]
    except Exception:
        session.rollback()
        logger.error("Failed to fetch point adjustments — continuing without them",
                     exc_info=True, extra={'arena_id': arena.id})

    try:
        follows = session.query(FollowVerification).filter(
            FollowVerification.project_id == project_id,
            FollowVerification.verified_at.isnot(None),
        ).all()
        participation.follows = [
            FollowRow(handle=normalize_handle(f.twitter_username), verified_at=f.verified_at)
            for f in follows
            if normalize_handle(f.twitter_username)
        ]
    except Exception:
        session.rollback()
        logger.error("Failed to fetch follow verifications — continuing without them",
                     exc_info=True, extra={'project_id': project_id})

    logger.info("Arena %s: %d creators, %d adjustments, %d verified follows",
                arena.id, len(participation.creators), len(participation.adjustments),
                len(participation.follows))
    return participation


def resolve_participation(participation: Participation,
                          as_of: Optional[datetime] = None) -> Dict[str, ResolvedCreator]:
    """
    Per-creator base points and follow status.

    base_points = arc_points + Σ adjustments for the creator's profile.
    With `as_of`, only joins, adjustments and verifications strictly before
    the cutoff count.
    """
    adjustment_totals: Dict[str, int] = {}
    for adj in participation.adjustments:
        if not adj.profile_id or not before(adj.created_at, as_of):
            continue
        adjustment_totals[adj.profile_id] = adjustment_totals.get(adj.profile_id, 0) + adj.points_delta

    verified = {
        f.handle for f in participation.follows
        if f.verified_at is not None and before(f.verified_at, as_of)
    }

    resolved: Dict[str, ResolvedCreator] = {}
    for creator in participation.creators:
        if as_of is not None and not before(creator.joined_at, as_of):
            continue
        base_points = creator.arc_points
        if creator.profile_id:
            base_points += adjustment_totals.get(creator.profile_id, 0)
        resolved[creator.handle] = ResolvedCreator(
            handle=creator.handle,
            source_handle=creator.source_handle,
            base_points=base_points,
            follow_verified=creator.handle in verified,
            profile_id=creator.profile_id,
            ring=creator.ring,
            joined_at=creator.joined_at,
        )
    return resolved
