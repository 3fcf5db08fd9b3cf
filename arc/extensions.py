"""
Shared client instances — Redis and the RQ background queue.

Importing this module is always safe: redis.from_url does not connect until
first use, and the RQ queue is built lazily.
"""
import logging
import redis

from arc.config import REDIS_URL

logger = logging.getLogger('arc.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── RQ (fire-and-forget jobs) ─────────────────────────────────────────────────
_queue = None


def get_queue():
    """Return the default RQ queue, creating it on first use."""
    global _queue
    if _queue is None:
        from rq import Queue
        # RQ pickles job payloads, so it needs a binary-mode connection
        _queue = Queue(connection=redis.from_url(REDIS_URL))
    return _queue
