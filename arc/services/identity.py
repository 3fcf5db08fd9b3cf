"""
Caller identity and role checks for admin endpoints.

The authenticated user id lives in the Flask session under 'user_id'
(set by the portal's login flow); roles are rows in akari_user_roles.
"""
import logging
from typing import Optional

from flask import session as flask_session

from arc.models.user_role import UserRole

logger = logging.getLogger('services.identity')

SUPER_ADMIN_ROLE = 'super_admin'


def current_user_id() -> Optional[str]:
    """Authenticated user id from the Flask session, or None."""
    user_id = flask_session.get('user_id')
    return str(user_id) if user_id else None


def is_super_admin(db_session, user_id: Optional[str]) -> bool:
    """True when `user_id` holds the super_admin role. A failed lookup denies."""
    if not user_id:
        return False
    try:
        row = db_session.query(UserRole.id).filter(
            UserRole.user_id == user_id,
            UserRole.role == SUPER_ADMIN_ROLE,
        ).first()
    except Exception:
        db_session.rollback()
        logger.error("Role lookup failed for user %s — denying", user_id, exc_info=True)
        return False
    return row is not None
