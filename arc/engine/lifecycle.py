"""
Arena Lifecycle Manager — status transitions and single-active-arena activation.

    draft ──► scheduled ──► active ──► ended
      │           │            │
      └───────────┴────────────┴─────► cancelled
      draft ──► active

Activation is one transaction: the project's arenas of the same kind group
are locked together (one SELECT … FOR UPDATE ordered by id), every other
active one is ended, then the target is activated. Any failure rolls the whole
thing back, so the target is never left active next to a sibling that was not
ended.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from arc.config import ARENA_KIND_GROUPS, ARENA_STATUSES, ARENA_TRANSITIONS
from arc.engine.base import is_valid_uuid, utcnow
from arc.models.arena import Arena

logger = logging.getLogger('engine.lifecycle')


class InvalidArenaIdError(ValueError):
    pass


class InvalidStatusError(ValueError):
    pass


class ArenaNotFoundError(LookupError):
    def __init__(self, arena_id):
        self.arena_id = arena_id
        super().__init__(f"Arena {arena_id} not found")


class InvalidArenaKindError(Exception):
    """Only mindshare arenas can be activated through the leaderboard lifecycle."""


class InvalidTransitionError(Exception):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move arena from '{current}' to '{target}'")


class ArenaActivationError(Exception):
    """The activation transaction failed and was rolled back."""


@dataclass
class ActivationResult:
    project_id: str
    activated_arena_id: str
    ended_arena_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'projectId': self.project_id,
            'activatedArenaId': self.activated_arena_id,
            'endedArenaIds': self.ended_arena_ids,
        }


def kind_group(kind: Optional[str]) -> Optional[str]:
    """'mindshare' / 'gamified' / None for an unknown kind."""
    for group, kinds in ARENA_KIND_GROUPS.items():
        if (kind or 'ms') in kinds:
            return group
    return None


def can_transition(current: str, target: str) -> bool:
    return target in ARENA_TRANSITIONS.get(current, set())


def lock_group(session, arena: Arena) -> List[Arena]:
    """
    Lock every arena of `arena`'s project and kind group, target included.

    One SELECT … FOR UPDATE ordered by id, so concurrent activations in the
    same group always take row locks in the same order.
    """
    kinds = ARENA_KIND_GROUPS.get(kind_group(arena.kind), (arena.kind,))
    return session.query(Arena).filter(
        Arena.project_id == arena.project_id,
        Arena.kind.in_(kinds),
    ).order_by(Arena.id).with_for_update().populate_existing().all()


def end_other_active(session, arena: Arena, now: datetime, group: Optional[List[Arena]] = None) -> List[str]:
    """
    End every other active arena of `arena`'s project and kind group.

    Locks the group's rows first unless the caller already holds them. Does not commit.
    """
    if group is None:
        group = lock_group(session, arena)

    ended = []
    for other in group:
        if other.id == arena.id or other.status != 'active':
            continue
        other.status = 'ended'
        other.ends_at = now
        other.updated_at = now
        ended.append(other.id)
    session.flush()
    return ended


def mark_active(session, arena: Arena, now: datetime, group: Optional[List[Arena]] = None) -> List[str]:
    """End the group's other active arenas, then activate `arena`. Does not commit."""
    ended = end_other_active(session, arena, now, group=group)
    arena.status = 'active'
    arena.updated_at = now
    if arena.starts_at is None:
        arena.starts_at = now
    arena.ends_at = None
    session.flush()
    return ended


def _load_locked(session, arena_id: str) -> Arena:
    if not is_valid_uuid(arena_id):
        raise InvalidArenaIdError(f"Invalid arena id: {arena_id!r}")
    arena = session.query(Arena).filter(Arena.id == arena_id).with_for_update().first()
    if arena is None:
        raise ArenaNotFoundError(arena_id)
    return arena


def _load_group_locked(session, arena_id: str):
    """(target, locked group): reads the target unlocked, then locks its whole group at once."""
    if not is_valid_uuid(arena_id):
        raise InvalidArenaIdError(f"Invalid arena id: {arena_id!r}")
    arena = session.query(Arena).filter(Arena.id == arena_id).first()
    if arena is None:
        raise ArenaNotFoundError(arena_id)
    group = lock_group(session, arena)
    if not any(a.id == arena_id for a in group):
        raise ArenaNotFoundError(arena_id)
    return arena, group


_DOMAIN_ERRORS = (InvalidArenaIdError, InvalidStatusError, ArenaNotFoundError,
                  InvalidArenaKindError, InvalidTransitionError)


def activate_arena(session, arena_id: str, now: Optional[datetime] = None) -> ActivationResult:
    """
    Make `arena_id` the project's only active mindshare arena.

    Re-activating an already active arena is allowed and still ends any
    stray sibling that is active alongside it.
    """
    now = now or utcnow()
    try:
        arena, group = _load_group_locked(session, arena_id)
        if kind_group(arena.kind) != 'mindshare':
            raise InvalidArenaKindError(f"Arena kind '{arena.kind}' cannot be activated here")
        if arena.status != 'active' and not can_transition(arena.status, 'active'):
            raise InvalidTransitionError(arena.status, 'active')

        ended = mark_active(session, arena, now, group=group)
        session.commit()
    except _DOMAIN_ERRORS:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.error("Activation failed — rolled back", exc_info=True, extra={'arena_id': arena_id})
        raise ArenaActivationError(str(e)) from e

    logger.info("Arena activated (ended %d sibling(s))", len(ended),
                extra={'arena_id': arena.id, 'project_id': arena.project_id})
    return ActivationResult(project_id=arena.project_id, activated_arena_id=arena.id,
                            ended_arena_ids=ended)


def transition_arena(session, arena_id: str, status: str, now: Optional[datetime] = None) -> Arena:
    """Apply any allowed status change; 'active' goes through activate_arena."""
    if status not in ARENA_STATUSES:
        raise InvalidStatusError(f"Unknown arena status: {status!r}")
    if status == 'active':
        activate_arena(session, arena_id, now=now)
        return session.get(Arena, arena_id)

    now = now or utcnow()
    try:
        arena = _load_locked(session, arena_id)
        if not can_transition(arena.status, status):
            raise InvalidTransitionError(arena.status, status)

        previous = arena.status
        arena.status = status
        arena.updated_at = now
        if status in ('ended', 'cancelled'):
            arena.ends_at = now
        session.commit()
    except _DOMAIN_ERRORS:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.error("Status change to %s failed — rolled back", status, exc_info=True,
                     extra={'arena_id': arena_id})
        raise

    logger.info("Arena %s → %s", previous, status, extra={'arena_id': arena.id, 'project_id': arena.project_id})
    return arena
