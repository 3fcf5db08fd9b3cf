"""
Access-request backfill — repair approved requests that point at nothing live.

For each approved request not already linked to a live arena/campaign:

    1. match it to an existing unclaimed entity of the same project and
       product group (nearest creation time to the decision time, greedy,
       exclusive, earliest decision first)
    2. otherwise create a fresh arena (unique slug) or campaign

Matched entities are linked and made live (updatedCount); created ones count
as createdCount. Arena groups keep a single active arena: when one is already
active, pending requests are linked to it rather than matched elsewhere, and a
second request in the same pass reuses the arena the first one made live.
A dry run performs the same planning and counting without writing anything.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from arc.config import (
    ARENA_KIND_GROUPS, BACKFILL_DEFAULT_LIMIT, BACKFILL_MATCH_WINDOW, BACKFILL_MAX_LIMIT,
    REQUEST_PRODUCT_TYPES,
)
from arc.engine.base import as_naive_utc, utcnow
from arc.engine.lifecycle import kind_group, mark_active
from arc.models.access_request import AccessRequest
from arc.models.arena import Arena
from arc.models.campaign import Campaign
from arc.models.project import Project

logger = logging.getLogger('engine.backfill')

# Entities in these states can still be (re)linked and made live
MATCHABLE_ARENA_STATUSES = ('draft', 'scheduled', 'active')
MATCHABLE_CAMPAIGN_STATUSES = ('draft', 'live', 'paused')

ARENA_NAME_SUFFIX = {'ms': 'Leaderboard', 'gamified': 'Gamified Leaderboard'}
ARENA_SLUG_SUFFIX = {'ms': 'leaderboard', 'gamified': 'gamified'}


@dataclass
class BackfillSummary:
    scanned_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    errors: List[Dict] = field(default_factory=list)

    def add_error(self, request: AccessRequest, message: str):
        self.errors.append({
            'requestId': request.id,
            'projectId': request.project_id,
            'message': message,
        })

    def to_dict(self) -> Dict:
        return {
            'scannedCount': self.scanned_count,
            'createdCount': self.created_count,
            'updatedCount': self.updated_count,
            'skippedCount': self.skipped_count,
            'errors': list(self.errors),
        }


def clamp_limit(limit) -> int:
    """Coerce `limit` into 1..BACKFILL_MAX_LIMIT (default when missing)."""
    if limit is None:
        return BACKFILL_DEFAULT_LIMIT
    return max(1, min(int(limit), BACKFILL_MAX_LIMIT))


# ── Matching ──────────────────────────────────────────────────────────────────

def _distance(a: Optional[datetime], b: Optional[datetime]) -> timedelta:
    if a is None or b is None:
        return timedelta.max
    return abs(as_naive_utc(a) - as_naive_utc(b))


def match_requests(requests: Iterable[Tuple[str, Optional[datetime]]],
                   candidates: Iterable[Tuple[str, Optional[datetime]]],
                   window: timedelta = BACKFILL_MATCH_WINDOW) -> Dict[str, Optional[str]]:
    """
    Greedy exclusive matching of requests to candidate entities.

    Both inputs are (id, timestamp) pairs: decision time for requests,
    creation time for candidates. Requests are served in decision order; each
    takes the nearest unassigned candidate inside `window`, else the nearest
    unassigned one overall. Ties go to the earlier-created candidate.

    Returns request id → candidate id (None when nothing is left).
    """
    ordered_requests = sorted(requests, key=lambda r: (r[1] is None, as_naive_utc(r[1]) or datetime.min))
    ordered_candidates = sorted(candidates, key=lambda c: (c[1] is None, as_naive_utc(c[1]) or datetime.min))

    assigned: Set[str] = set()
    matches: Dict[str, Optional[str]] = {}

    for request_id, decided_at in ordered_requests:
        best_within = best_overall = None
        best_within_dist = best_overall_dist = None

        for candidate_id, created_at in ordered_candidates:
            if candidate_id in assigned:
                continue
            dist = _distance(decided_at, created_at)
            if best_overall is None or dist < best_overall_dist:
                best_overall, best_overall_dist = candidate_id, dist
            if dist <= window and (best_within is None or dist < best_within_dist):
                best_within, best_within_dist = candidate_id, dist

        chosen = best_within if best_within is not None else best_overall
        matches[request_id] = chosen
        if chosen is not None:
            assigned.add(chosen)

    return matches


# ── Helpers ───────────────────────────────────────────────────────────────────

def unique_arena_slug(session, base: str, reserved: Set[str] = None) -> str:
    """`base`, then `base-2`, `base-3`, … until neither the table nor `reserved` has it."""
    reserved = reserved if reserved is not None else set()

    def taken(slug):
        if slug in reserved:
            return True
        return session.query(Arena.id).filter(Arena.slug == slug).first() is not None

    slug, suffix = base, 2
    while taken(slug):
        slug = f'{base}-{suffix}'
        suffix += 1
    return slug


def _entity_group(product_type: str) -> Optional[Tuple[str, Optional[str]]]:
    """('arena', kind group) / ('campaign', None) / None for unknown products."""
    target = REQUEST_PRODUCT_TYPES.get(product_type)
    if target is None:
        return None
    table, kind = target
    if table == 'arena':
        return ('arena', kind_group(kind))
    return ('campaign', None)


def _is_linked_live(session, request: AccessRequest) -> bool:
    table, _kind = REQUEST_PRODUCT_TYPES[request.product_type]
    if table == 'arena':
        if not request.arena_id:
            return False
        arena = session.get(Arena, request.arena_id)
        return arena is not None and arena.status == 'active'
    if not request.campaign_id:
        return False
    campaign = session.get(Campaign, request.campaign_id)
    return campaign is not None and campaign.status == 'live'


def _claimed_ids(session) -> Tuple[Set[str], Set[str]]:
    """Arena / campaign ids already linked from any approved request."""
    rows = session.query(AccessRequest.id, AccessRequest.arena_id, AccessRequest.campaign_id).filter(
        AccessRequest.status == 'approved',
    ).all()
    arenas = {(r.arena_id, r.id) for r in rows if r.arena_id}
    campaigns = {(r.campaign_id, r.id) for r in rows if r.campaign_id}
    return arenas, campaigns


def _candidates(session, project_id: str, group: Tuple[str, Optional[str]],
                claimed: Set[str]) -> List[Tuple[str, Optional[datetime]]]:
    table, kinds_group = group
    if table == 'arena':
        rows = session.query(Arena.id, Arena.created_at).filter(
            Arena.project_id == project_id,
            Arena.kind.in_(ARENA_KIND_GROUPS[kinds_group]),
            Arena.status.in_(MATCHABLE_ARENA_STATUSES),
        ).all()
    else:
        rows = session.query(Campaign.id, Campaign.created_at).filter(
            Campaign.project_id == project_id,
            Campaign.status.in_(MATCHABLE_CAMPAIGN_STATUSES),
        ).all()
    return [(r.id, r.created_at) for r in rows if r.id not in claimed]


def _live_arena_id(session, project_id: str, kinds_group: str) -> Optional[str]:
    """The group's current active arena (most recently created), if any."""
    row = session.query(Arena.id).filter(
        Arena.project_id == project_id,
        Arena.kind.in_(ARENA_KIND_GROUPS[kinds_group]),
        Arena.status == 'active',
    ).order_by(Arena.created_at.desc()).first()
    return row.id if row else None


# ── Apply ─────────────────────────────────────────────────────────────────────

def _link_existing(session, request: AccessRequest, entity_id: str, now: datetime):
    table, _kind = REQUEST_PRODUCT_TYPES[request.product_type]
    if table == 'arena':
        arena = session.get(Arena, entity_id)
        if arena.status != 'active':
            mark_active(session, arena, now)
        request.arena_id = arena.id
    else:
        campaign = session.get(Campaign, entity_id)
        campaign.status = 'live'
        request.campaign_id = campaign.id


def _create_entity(session, request: AccessRequest, project: Project, now: datetime,
                   reserved_slugs: Set[str], dry_run: bool, created_by: Optional[str]) -> Optional[str]:
    """Create and link a live entity for `request`; returns its id (None on a dry run)."""
    table, kind = REQUEST_PRODUCT_TYPES[request.product_type]
    if table == 'campaign':
        if dry_run:
            return None
        campaign = Campaign(project_id=project.id, name=f'{project.name} Campaign', status='live')
        session.add(campaign)
        session.flush()
        request.campaign_id = campaign.id
        return campaign.id

    slug = unique_arena_slug(session, f'{project.slug}-{ARENA_SLUG_SUFFIX[kind]}', reserved_slugs)
    reserved_slugs.add(slug)
    if dry_run:
        return None
    arena = Arena(
        project_id=project.id,
        name=f'{project.name} {ARENA_NAME_SUFFIX[kind]}',
        slug=slug,
        kind=kind,
        status='draft',
        created_by=created_by,
        created_at=now,
    )
    session.add(arena)
    session.flush()
    mark_active(session, arena, now)
    request.arena_id = arena.id
    return arena.id


def _by_decision(requests: List[AccessRequest]) -> List[AccessRequest]:
    return sorted(requests, key=lambda r: as_naive_utc(r.decided_at or r.created_at) or datetime.min)


def _apply(session, req: AccessRequest, project_id: str, summary: BackfillSummary,
           dry_run: bool, action) -> bool:
    """Run one request's change in its own commit; failures become error entries."""
    try:
        action()
        if not dry_run:
            session.commit()
        return True
    except Exception as e:
        session.rollback()
        logger.error("Backfill failed for request %s: %s", req.id, e, exc_info=True,
                     extra={'project_id': project_id, 'request_id': req.id})
        summary.add_error(req, str(e))
        return False


def _backfill_arena_group(session, project: Optional[Project], project_id: str, kinds_group: str,
                          requests: List[AccessRequest], claimed: Set[str], summary: BackfillSummary,
                          now: datetime, reserved_slugs: Set[str], dry_run: bool,
                          created_by: Optional[str]):
    """
    Settle one project's arena group on a single active arena.

    An arena that is already active absorbs every pending request. Otherwise
    the earliest request is matched (or gets a new arena) and the rest share
    whatever it made live, so no pass ever ends an arena another approved
    request points at.
    """
    live_id = _live_arena_id(session, project_id, kinds_group)
    planned = False

    for req in _by_decision(requests):
        if project is None:
            _apply(session, req, project_id, summary, dry_run, _missing_project)
            continue

        if live_id is not None or planned:
            def share(req=req, arena_id=live_id):
                if not dry_run:
                    req.arena_id = arena_id
            if _apply(session, req, project_id, summary, dry_run, share):
                summary.updated_count += 1
            continue

        match = match_requests(
            [(req.id, req.decided_at or req.created_at)],
            _candidates(session, project_id, ('arena', kinds_group), claimed),
        ).get(req.id)
        outcome = {}

        if match is not None:
            def link(req=req, arena_id=match):
                if not dry_run:
                    _link_existing(session, req, arena_id, now)
            if _apply(session, req, project_id, summary, dry_run, link):
                summary.updated_count += 1
                live_id = match
        else:
            def create(req=req):
                outcome['id'] = _create_entity(session, req, project, now, reserved_slugs, dry_run, created_by)
            if _apply(session, req, project_id, summary, dry_run, create):
                summary.created_count += 1
                live_id = outcome['id']
                planned = dry_run


def _backfill_campaign_group(session, project: Optional[Project], project_id: str,
                             requests: List[AccessRequest], claimed: Set[str], summary: BackfillSummary,
                             now: datetime, dry_run: bool):
    matches = match_requests(
        [(r.id, r.decided_at or r.created_at) for r in requests],
        _candidates(session, project_id, ('campaign', None), claimed),
    )
    for req in _by_decision(requests):
        if project is None:
            _apply(session, req, project_id, summary, dry_run, _missing_project)
            continue
        entity_id = matches.get(req.id)
        if entity_id is not None:
            def link(req=req, campaign_id=entity_id):
                if not dry_run:
                    _link_existing(session, req, campaign_id, now)
            if _apply(session, req, project_id, summary, dry_run, link):
                summary.updated_count += 1
        else:
            def create(req=req):
                _create_entity(session, req, project, now, set(), dry_run, None)
            if _apply(session, req, project_id, summary, dry_run, create):
                summary.created_count += 1


def _missing_project():
    raise LookupError('Project not found')


def backfill_access_requests(session, dry_run: bool = False, limit: int = BACKFILL_DEFAULT_LIMIT,
                             request_id: Optional[str] = None, now: Optional[datetime] = None,
                             created_by: Optional[str] = None) -> BackfillSummary:
    """Scan approved requests (oldest decision first) and link or create their live entity."""
    now = now or utcnow()
    summary = BackfillSummary()

    query = session.query(AccessRequest).filter(AccessRequest.status == 'approved')
    if request_id:
        query = query.filter(AccessRequest.id == request_id)
    requests = query.order_by(AccessRequest.decided_at.asc()).limit(clamp_limit(limit)).all()

    pending: Dict[Tuple[str, Tuple], List[AccessRequest]] = {}
    for req in requests:
        summary.scanned_count += 1
        group = _entity_group(req.product_type)
        if group is None:
            logger.info("Skipping request %s: unknown product type %r", req.id, req.product_type)
            summary.skipped_count += 1
            continue
        if _is_linked_live(session, req):
            summary.skipped_count += 1
            continue
        pending.setdefault((req.project_id, group), []).append(req)

    claimed_arenas, claimed_campaigns = _claimed_ids(session)
    reserved_slugs: Set[str] = set()

    for (project_id, group), group_requests in pending.items():
        own_ids = {r.id for r in group_requests}
        claimed_source = claimed_arenas if group[0] == 'arena' else claimed_campaigns
        # An entity linked only from a request in this batch is still up for matching
        claimed = {entity_id for entity_id, owner in claimed_source if owner not in own_ids}
        project = session.get(Project, project_id)

        if group[0] == 'arena':
            _backfill_arena_group(session, project, project_id, group[1], group_requests, claimed,
                                  summary, now, reserved_slugs, dry_run, created_by)
        else:
            _backfill_campaign_group(session, project, project_id, group_requests, claimed,
                                     summary, now, dry_run)

    logger.info("Backfill %s: scanned=%d created=%d updated=%d skipped=%d errors=%d",
                'dry-run' if dry_run else 'applied', summary.scanned_count, summary.created_count,
                summary.updated_count, summary.skipped_count, len(summary.errors))
    return summary
