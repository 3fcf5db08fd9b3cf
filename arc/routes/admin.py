"""
Admin routes — arena lifecycle and access-request backfill (super admin only).
"""
import logging
from functools import wraps

from flask import Blueprint, g, jsonify, request

from arc.engine.backfill import backfill_access_requests, clamp_limit
from arc.engine.base import is_valid_uuid
from arc.engine.lifecycle import (
    ArenaActivationError, ArenaNotFoundError, InvalidArenaIdError, InvalidArenaKindError,
    InvalidStatusError, InvalidTransitionError, activate_arena, transition_arena,
)
from arc.services.identity import current_user_id, is_super_admin

logger = logging.getLogger('routes.admin')

bp = Blueprint('admin', __name__, url_prefix='/api/admin/arc')


def super_admin_required(view):
    """401 without a session user, 403 unless the user holds super_admin."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user_id = current_user_id()
        if not user_id:
            return jsonify({'ok': False, 'error': 'not_authenticated'}), 401

        from arc.database import get_session
        session = get_session()
        try:
            allowed = is_super_admin(session, user_id)
        finally:
            session.close()

        if not allowed:
            logger.warning("Non-admin user %s denied %s", user_id, request.path)
            return jsonify({'ok': False, 'error': 'super_admin_only'}), 403
        g.user_id = user_id
        return view(*args, **kwargs)
    return wrapper


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _lifecycle_error(e, failure_code='activation_failed'):
    """Map a lifecycle exception to (body, status)."""
    if isinstance(e, InvalidArenaIdError):
        return {'ok': False, 'error': 'invalid_arena_id'}, 400
    if isinstance(e, InvalidStatusError):
        return {'ok': False, 'error': 'invalid_status'}, 400
    if isinstance(e, InvalidArenaKindError):
        return {'ok': False, 'error': 'invalid_arena_kind'}, 400
    if isinstance(e, ArenaNotFoundError):
        return {'ok': False, 'error': 'arena_not_found'}, 404
    if isinstance(e, InvalidTransitionError):
        return {'ok': False, 'error': 'invalid_transition',
                'from': e.current, 'to': e.target}, 409
    return {'ok': False, 'error': failure_code}, 500


_LIFECYCLE_ERRORS = (InvalidArenaIdError, InvalidStatusError, InvalidArenaKindError,
                     ArenaNotFoundError, InvalidTransitionError, ArenaActivationError)


# ── Arena lifecycle ──────────────────────────────────────────────────────────

@bp.route('/arenas/<arena_id>/activate', methods=['POST'])
@super_admin_required
def activate(arena_id):
    """Make this the project's only active mindshare arena."""
    if not is_valid_uuid(arena_id):
        return jsonify({'ok': False, 'error': 'invalid_arena_id'}), 400

    from arc.database import get_session
    session = get_session()
    try:
        result = activate_arena(session, arena_id)
        logger.info("User %s activated arena %s", g.user_id, arena_id)
        return jsonify({'ok': True, **result.to_dict()})
    except _LIFECYCLE_ERRORS as e:
        body, status = _lifecycle_error(e)
        return jsonify(body), status
    finally:
        session.close()


@bp.route('/arenas/<arena_id>/status', methods=['POST'])
@super_admin_required
def change_status(arena_id):
    """Schedule, end or cancel an arena (or activate it)."""
    if not is_valid_uuid(arena_id):
        return jsonify({'ok': False, 'error': 'invalid_arena_id'}), 400

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({'ok': False, 'error': 'invalid_status'}), 400

    from arc.database import get_session
    session = get_session()
    try:
        arena = transition_arena(session, arena_id, status)
        return jsonify({
            'ok': True,
            'arenaId': arena.id,
            'projectId': arena.project_id,
            'status': arena.status,
            'endsAt': arena.ends_at.isoformat() if arena.ends_at else None,
        })
    except _LIFECYCLE_ERRORS as e:
        failure_code = 'activation_failed' if status == 'active' else 'status_change_failed'
        body, status_code = _lifecycle_error(e, failure_code)
        return jsonify(body), status_code
    except Exception:
        logger.error("Status change failed", exc_info=True, extra={'arena_id': arena_id})
        return jsonify({'ok': False, 'error': 'status_change_failed'}), 500
    finally:
        session.close()


# ── Backfill ─────────────────────────────────────────────────────────────────

@bp.route('/backfill', methods=['POST'])
@super_admin_required
def backfill():
    """Link or create live entities for approved access requests."""
    data = request.get_json(silent=True) or {}
    dry_run = _flag(data.get('dryRun', request.args.get('dryRun', False)))
    request_id = data.get('requestId') or request.args.get('requestId')

    raw_limit = data.get('limit', request.args.get('limit'))
    try:
        limit = clamp_limit(raw_limit)
    except (TypeError, ValueError):
        return jsonify({'ok': False, 'error': 'invalid_limit'}), 400

    if request_id and not is_valid_uuid(request_id):
        return jsonify({'ok': False, 'error': 'invalid_request_id'}), 400

    from arc.database import get_session
    session = get_session()
    try:
        summary = backfill_access_requests(
            session, dry_run=dry_run, limit=limit, request_id=request_id, created_by=g.user_id,
        )
        return jsonify({'ok': True, 'dryRun': dry_run, 'summary': summary.to_dict()})
    except Exception:
        session.rollback()
        logger.error("Backfill failed", exc_info=True)
        return jsonify({'ok': False, 'error': 'backfill_failed'}), 500
    finally:
        session.close()
