"""
Leaderboard routes — public mindshare board per project.
"""
import logging
from flask import Blueprint, jsonify

from arc.engine.base import is_valid_uuid
from arc.engine.leaderboard import ProjectNotFoundError, build_leaderboard
from arc.engine.participation import LeaderboardUnavailableError

logger = logging.getLogger('routes.leaderboard')

bp = Blueprint('leaderboard', __name__)


@bp.route('/api/arc/leaderboard/<project_id>')
def get_leaderboard(project_id):
    """Full ranked board with deltas, signal metrics and avatars."""
    if not is_valid_uuid(project_id):
        return jsonify({'ok': False, 'error': 'invalid_project_id'}), 400

    from arc.database import get_session
    session = get_session()
    try:
        result = build_leaderboard(session, project_id)
        return jsonify({'ok': True, **result.to_dict()})
    except ProjectNotFoundError:
        return jsonify({'ok': False, 'error': 'project_not_found'}), 404
    except LeaderboardUnavailableError as e:
        logger.error("Leaderboard unavailable: %s", e, extra={'project_id': project_id})
        return jsonify({'ok': False, 'error': 'leaderboard_unavailable'}), 500
    except Exception:
        logger.error("Leaderboard failed", exc_info=True, extra={'project_id': project_id})
        return jsonify({'ok': False, 'error': 'internal_error'}), 500
    finally:
        session.close()
