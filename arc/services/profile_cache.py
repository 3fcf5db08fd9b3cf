"""
Profile registries as an avatar cache.

Reads try the primary registry (profiles) and the secondary registry
(tracked_profiles) under every username variant a writer may have stored.
Live provider results are written back to profiles by a background RQ job so
the next leaderboard request resolves the avatar from the database.
"""
import logging
from typing import Dict, Iterable, List, Optional

from arc.database import get_session
from arc.engine.base import normalize_handle, utcnow
from arc.extensions import get_queue
from arc.models.profile import Profile, TrackedProfile

logger = logging.getLogger('services.profile_cache')


def is_valid_avatar_url(url) -> bool:
    """Non-empty http(s) URL."""
    if not url or not isinstance(url, str):
        return False
    url = url.strip().lower()
    return url.startswith('http://') or url.startswith('https://')


def handle_variants(handle: str) -> List[str]:
    """[handle, lower, '@'+handle, '@'+lower] without duplicates, order kept."""
    bare = (handle or '').strip().lstrip('@')
    if not bare:
        return []
    variants = []
    for v in (bare, bare.lower(), f'@{bare}', f'@{bare.lower()}'):
        if v not in variants:
            variants.append(v)
    return variants


def _registry_avatars(session, model, handles: Iterable[str]) -> Dict[str, str]:
    """normalized handle → first valid avatar in `model` across all variants."""
    variant_to_handle = {}
    for handle in handles:
        for variant in handle_variants(handle):
            variant_to_handle.setdefault(variant, normalize_handle(handle))
    if not variant_to_handle:
        return {}

    rows = session.query(model.username, model.profile_image_url).filter(
        model.username.in_(list(variant_to_handle)),
        model.profile_image_url.isnot(None),
    ).all()

    found = {}
    for username, url in rows:
        handle = variant_to_handle.get(username)
        if handle and handle not in found and is_valid_avatar_url(url):
            found[handle] = url.strip()
    return found


def primary_avatars(session, handles: Iterable[str]) -> Dict[str, str]:
    return _registry_avatars(session, Profile, handles)


def secondary_avatars(session, handles: Iterable[str]) -> Dict[str, str]:
    return _registry_avatars(session, TrackedProfile, handles)


# ── Write-back (RQ) ───────────────────────────────────────────────────────────

def schedule_write_back(handle: str, profile: Dict) -> bool:
    """Enqueue write_back_profile. Never raises; returns whether the job was queued."""
    try:
        get_queue().enqueue(write_back_profile, normalize_handle(handle), profile, job_timeout=60)
        return True
    except Exception:
        logger.warning("Could not queue profile write-back for @%s", handle, exc_info=True)
        return False


def write_back_profile(handle: str, profile: Dict) -> Optional[str]:
    """
    Upsert a live-fetched profile into the primary registry (RQ job).

    Matches an existing row under any username variant; otherwise inserts a
    new row keyed by the normalized handle. Returns the profile id.
    """
    handle = normalize_handle(handle)
    if not handle or not is_valid_avatar_url(profile.get('avatar_url')):
        return None

    session = get_session()
    try:
        row = session.query(Profile).filter(
            Profile.username.in_(handle_variants(handle)),
        ).first()
        if row is None:
            row = Profile(username=handle)
            session.add(row)

        row.profile_image_url = profile['avatar_url']
        if profile.get('name'):
            row.name = profile['name']
        if profile.get('id'):
            row.twitter_id = profile['id']
        row.updated_at = utcnow()

        session.commit()
        logger.info("Cached live profile for @%s", handle)
        return row.id
    except Exception:
        session.rollback()
        logger.error("Profile write-back failed for @%s", handle, exc_info=True)
        return None
    finally:
        session.close()
