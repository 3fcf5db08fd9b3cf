"""
Redis-backed circuit breaker for outbound provider calls.

State lives in Redis so every web worker shares one view of a provider:

    closed    → calls pass through; consecutive failures are counted
    open      → calls short-circuit with CircuitOpenError until reset_timeout
    half_open → the next call is a probe; success closes, failure re-opens

Redis being unreachable never blocks a call: the breaker reads as closed.
Per-service success/failure counters back the /api/health endpoint.
"""
import logging
import time

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# name → (failure_threshold, reset_timeout seconds)
DEFAULT_BREAKERS = {
    'social_graph': (3, 120),
}


class CircuitOpenError(Exception):
    """Raised instead of calling a provider whose circuit is open."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is open — provider unavailable")


class CircuitBreaker:
    """
    One breaker per external provider.

        breaker = get_breaker('social_graph')
        resp = breaker.call(requests.get, url, timeout=10)
    """

    PREFIX = 'arc:cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=120):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    # ── State ─────────────────────────────────────────────────────────

    def _opened_at(self):
        raw = self.redis.get(self._key('opened_at'))
        return float(raw) if raw else None

    @property
    def state(self):
        try:
            current = self.redis.get(self._key('state')) or CLOSED
            if current == OPEN:
                opened_at = self._opened_at()
                if opened_at is not None and time.time() - opened_at >= self.reset_timeout:
                    self.redis.set(self._key('state'), HALF_OPEN)
                    return HALF_OPEN
            return current
        except Exception:
            return CLOSED

    @property
    def failure_count(self):
        try:
            return int(self.redis.get(self._key('failures')) or 0)
        except Exception:
            return 0

    def retry_after(self):
        """Seconds until an open circuit allows a probe, or None."""
        try:
            opened_at = self._opened_at()
        except Exception:
            return None
        if opened_at is None:
            return None
        return max(0.0, self.reset_timeout - (time.time() - opened_at))

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Run func(*args, **kwargs) unless the circuit is open."""
        if self.state == OPEN:
            raise CircuitOpenError(self.name, retry_after=self.retry_after())

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._record(ok=False, error=e)
            raise
        self._record(ok=True)
        return result

    def _record(self, ok, error=None):
        now = str(time.time())
        health = self._key('health')
        try:
            pipe = self.redis.pipeline()
            if ok:
                pipe.set(self._key('state'), CLOSED)
                pipe.set(self._key('failures'), 0)
                pipe.hincrby(health, 'success', 1)
                pipe.hset(health, 'last_success', now)
                pipe.execute()
                return

            pipe.incr(self._key('failures'))
            pipe.hincrby(health, 'failure', 1)
            pipe.hset(health, 'last_failure', now)
            pipe.hset(health, 'last_error', str(error)[:200])
            failures = pipe.execute()[0]

            if failures >= self.failure_threshold:
                self.redis.set(self._key('state'), OPEN)
                self.redis.set(self._key('opened_at'), now)
                logger.warning("Circuit '%s' opened after %d failures: %s", self.name, failures, error)
            else:
                logger.info("Circuit '%s' failure %d/%d: %s",
                            self.name, failures, self.failure_threshold, error)
        except Exception:
            logger.debug("Circuit '%s' could not record outcome", self.name, exc_info=True)

    def reset(self):
        """Force the circuit closed and clear the failure streak."""
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('opened_at'))
            pipe.execute()
            logger.info("Circuit '%s' manually reset", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def get_health(self):
        """Health snapshot for /api/health."""
        health = {
            'name': self.name,
            'state': 'unknown',
            'failure_count': 0,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': 0,
            'total_failure': 0,
            'last_success': None,
            'last_failure': None,
            'last_error': '',
        }
        try:
            data = self.redis.hgetall(self._key('health')) or {}
            health.update({
                'state': self.state,
                'failure_count': self.failure_count,
                'total_success': int(data.get('success', 0)),
                'total_failure': int(data.get('failure', 0)),
                'last_success': float(data['last_success']) if data.get('last_success') else None,
                'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
                'last_error': data.get('last_error', ''),
            })
        except Exception:
            pass
        return health


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None):
    """Named breaker, created on first use with its DEFAULT_BREAKERS settings."""
    if name not in _registry:
        if redis_client is None:
            from arc.extensions import redis_client
        threshold, timeout = DEFAULT_BREAKERS.get(name, (3, 120))
        _registry[name] = CircuitBreaker(name, redis_client, failure_threshold=threshold,
                                         reset_timeout=timeout)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register a breaker for every known provider against the given Redis client."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in DEFAULT_BREAKERS.items()
    }
    _registry.update(breakers)
    return breakers
