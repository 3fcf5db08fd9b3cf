"""
Social Graph Provider client — live profile lookups (id, name, avatar) by handle.

Only used as the last avatar tier. Every call goes through the
'social_graph' circuit breaker; while it is open, lookups raise
CircuitOpenError without touching the network.
"""
import logging
from typing import Dict, Optional

import requests

from arc.config import SOCIAL_GRAPH_API_KEY, SOCIAL_GRAPH_API_URL, SOCIAL_GRAPH_TIMEOUT
from arc.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.social_graph')


class SocialGraphError(Exception):
    """Transport or provider-side failure (retryable)."""


class SocialGraphClient:
    """
    Thin wrapper over the provider's user-info endpoint.

    get_profile() returns None for a user the provider does not know and
    raises SocialGraphError (or CircuitOpenError) for anything retryable.
    """

    USER_INFO_PATH = '/twitter/user/info'

    def __init__(self, api_key: str = None, base_url: str = None, timeout: float = None):
        self.api_key = api_key if api_key is not None else SOCIAL_GRAPH_API_KEY
        self.base_url = (base_url or SOCIAL_GRAPH_API_URL).rstrip('/')
        self.timeout = timeout or SOCIAL_GRAPH_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def get_profile(self, handle: str) -> Optional[Dict]:
        """{id, name, avatar_url} for `handle`, or None if the provider has no such user."""
        if not self.configured:
            return None
        return get_breaker('social_graph').call(self._fetch_profile, handle)

    def _fetch_profile(self, handle: str) -> Optional[Dict]:
        try:
            resp = requests.get(
                f"{self.base_url}{self.USER_INFO_PATH}",
                params={'userName': handle},
                headers={'X-API-Key': self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SocialGraphError(f"user info request failed for {handle}: {e}") from e

        if resp.status_code == 404:
            return None
        if resp.status_code == 429 or resp.status_code >= 500:
            raise SocialGraphError(f"user info for {handle} returned {resp.status_code}")
        if not resp.ok:
            logger.warning("Provider rejected user info for @%s (%s)", handle, resp.status_code)
            return None

        payload = resp.json() or {}
        if payload.get('status') not in (None, 'success'):
            raise SocialGraphError(f"user info for {handle} failed: {payload.get('status')}")

        raw = payload.get('data') or {}
        if not raw:
            return None
        return normalize_user(raw)


def normalize_user(raw: Dict) -> Dict:
    """Provider user payload → {id, name, avatar_url} (full-size avatar when available)."""
    avatar = (
        raw.get('profilePicture')
        or raw.get('profile_image_url_https')
        or raw.get('profile_image_url')
        or ''
    )
    return {
        'id': str(raw.get('id') or raw.get('user_id') or '') or None,
        'name': raw.get('name') or None,
        'avatar_url': avatar.replace('_normal', '_400x400') or None,
    }
