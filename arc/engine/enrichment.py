"""
Identity Enrichment — avatar resolution through a tiered fallback chain.

Tiers, first success wins, each only for entries still without an avatar:

    1. mention snapshots   latest AVATAR_MENTION_SCAN_LIMIT project mentions, newest first
    2. primary registry    profiles, every username variant
    3. secondary registry  tracked_profiles, every username variant
    4. live provider       Social Graph Provider with bounded retries, batched

A live hit is written back to profiles in the background. Nothing in here can
fail the leaderboard: a tier that errors is logged and skipped, and an entry
nobody can resolve keeps avatar_url = None.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from arc.config import (
    AVATAR_FETCH_BATCH_DELAY, AVATAR_FETCH_BATCH_SIZE, AVATAR_FETCH_MAX_RETRIES,
    AVATAR_MENTION_SCAN_LIMIT, AVATAR_RETRY_BACKOFF,
)
from arc.engine.base import LeaderboardEntry, normalize_handle
from arc.models.mention import Mention
from arc.services.circuit_breaker import CircuitOpenError
from arc.services.profile_cache import (
    is_valid_avatar_url, primary_avatars, schedule_write_back, secondary_avatars,
)
from arc.services.social_graph import SocialGraphClient

logger = logging.getLogger('engine.enrichment')


# ── Tier 1: mention snapshots ─────────────────────────────────────────────────

def mention_avatars(session, project_id: str, limit: int = AVATAR_MENTION_SCAN_LIMIT) -> Dict[str, str]:
    """normalized handle → most recent valid avatar snapshot among the latest `limit` mentions."""
    rows = session.query(Mention.author_handle, Mention.author_profile_image_url).filter(
        Mention.project_id == project_id,
        Mention.author_profile_image_url.isnot(None),
    ).order_by(Mention.created_at.desc()).limit(limit).all()

    found = {}
    for author_handle, url in rows:
        handle = normalize_handle(author_handle)
        if handle and handle not in found and is_valid_avatar_url(url):
            found[handle] = url.strip()
    return found


# ── Tier 4: live provider ─────────────────────────────────────────────────────

def live_variants(entry: LeaderboardEntry) -> List[str]:
    """[normalized, original case, '@'+normalized] without duplicates."""
    normalized = entry.twitter_username
    original = (entry.source_handle or normalized).strip().lstrip('@')
    variants = []
    for v in (normalized, original, f'@{normalized}'):
        if v and v not in variants:
            variants.append(v)
    return variants


def fetch_live_avatar(client: SocialGraphClient, entry: LeaderboardEntry) -> Optional[Tuple[str, Dict]]:
    """
    (avatar_url, profile) from the provider, or None.

    Each variant gets 1 + AVATAR_FETCH_MAX_RETRIES attempts with linear
    backoff on errors. A clean "not found" moves straight to the next
    variant; an open circuit ends the lookup for this creator.
    """
    for variant in live_variants(entry):
        for attempt in range(AVATAR_FETCH_MAX_RETRIES + 1):
            try:
                profile = client.get_profile(variant)
            except CircuitOpenError:
                logger.info("Social graph circuit open — skipping live avatar for @%s",
                            entry.twitter_username)
                return None
            except Exception as e:
                if attempt < AVATAR_FETCH_MAX_RETRIES:
                    time.sleep(AVATAR_RETRY_BACKOFF * (attempt + 1))
                    continue
                logger.warning("Live avatar lookup failed for %s after %d attempts: %s",
                               variant, attempt + 1, e)
                break

            if profile and is_valid_avatar_url(profile.get('avatar_url')):
                return profile['avatar_url'], profile
            break
    return None


def resolve_live_avatars(client: SocialGraphClient, entries: List[LeaderboardEntry],
                         batch_size: int = AVATAR_FETCH_BATCH_SIZE,
                         batch_delay: float = AVATAR_FETCH_BATCH_DELAY) -> Dict[str, Tuple[str, Dict]]:
    """Tier 4 over `entries` in fixed-size parallel batches with a delay between batches."""
    results = {}
    for i in range(0, len(entries), batch_size):
        batch = entries[i:i + batch_size]

        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            futures = {executor.submit(fetch_live_avatar, client, e): e for e in batch}
            for future, entry in futures.items():
                try:
                    hit = future.result()
                except Exception:
                    logger.warning("Live avatar worker failed for @%s",
                                   entry.twitter_username, exc_info=True)
                    continue
                if hit:
                    results[entry.twitter_username] = hit

        if i + batch_size < len(entries):
            time.sleep(batch_delay)

    return results


# ── Pipeline ──────────────────────────────────────────────────────────────────

def _missing(entries):
    return [e for e in entries if not e.avatar_url]


def _apply(entries, avatars: Dict[str, str], tier: str):
    hits = 0
    for entry in _missing(entries):
        url = avatars.get(entry.twitter_username)
        if url:
            entry.avatar_url = url
            hits += 1
    if hits:
        logger.debug("Tier %s resolved %d avatars", tier, hits)


def enrich_avatars(session, project_id: str, entries: List[LeaderboardEntry],
                   client: SocialGraphClient = None) -> List[LeaderboardEntry]:
    """Resolve avatar_url for every entry that lacks one. Never raises for tier failures."""
    if not _missing(entries):
        return entries

    try:
        _apply(entries, mention_avatars(session, project_id), 'mentions')
    except Exception:
        session.rollback()
        logger.warning("Mention avatar scan failed", exc_info=True, extra={'project_id': project_id})

    for tier, lookup in (('profiles', primary_avatars), ('tracked_profiles', secondary_avatars)):
        missing = _missing(entries)
        if not missing:
            return entries
        try:
            _apply(entries, lookup(session, [e.source_handle or e.twitter_username for e in missing]), tier)
        except Exception:
            session.rollback()
            logger.warning("Registry avatar lookup (%s) failed", tier, exc_info=True,
                           extra={'project_id': project_id})

    missing = _missing(entries)
    if not missing:
        return entries

    client = client or SocialGraphClient()
    if not client.configured:
        logger.debug("Social graph API key not set — %d creators without avatar", len(missing))
        return entries

    live = resolve_live_avatars(client, missing)
    for entry in missing:
        hit = live.get(entry.twitter_username)
        if not hit:
            continue
        entry.avatar_url, profile = hit
        schedule_write_back(entry.twitter_username, profile)

    logger.info("Avatars: %d/%d resolved (%d live)",
                len(entries) - len(_missing(entries)), len(entries), len(live),
                extra={'project_id': project_id})
    return entries
