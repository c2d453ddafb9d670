"""
Circuit breakers for outbound providers (Resend, Twilio, Slack).

State lives in Redis so every gunicorn worker and RQ worker sees the same
picture:
  - CLOSED    → calls pass through
  - OPEN      → failure_threshold consecutive failures; calls raise CircuitOpenError
  - HALF_OPEN → reset_timeout elapsed; the next call is a trial call

If Redis itself is unreachable the breaker stays out of the way (treated as
CLOSED) so a cache outage never blocks sends. Counters for /api/health live in
a per-provider hash.
"""
import logging
import time
from functools import wraps

from redis.exceptions import RedisError

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """A provider call was short-circuited."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is open, provider unavailable")


class CircuitBreaker:
    """
    Usage:
        breaker = CircuitBreaker('twilio', redis_client, failure_threshold=5, reset_timeout=120)
        resp = breaker.call(requests.post, url, data=payload, timeout=10)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    # ── State ─────────────────────────────────────────────────────────

    def _seconds_since_failure(self):
        last = self.redis.get(self._key('last_failure'))
        if not last:
            return None
        return time.time() - float(last)

    @property
    def state(self):
        try:
            current = self.redis.get(self._key('state')) or CLOSED
            if current == OPEN:
                elapsed = self._seconds_since_failure()
                if elapsed is not None and elapsed > self.reset_timeout:
                    self.redis.set(self._key('state'), HALF_OPEN)
                    return HALF_OPEN
            return current
        except RedisError:
            return CLOSED

    @property
    def failure_count(self):
        try:
            return int(self.redis.get(self._key('failures')) or 0)
        except RedisError:
            return 0

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        if self.state == OPEN:
            retry_after = None
            try:
                elapsed = self._seconds_since_failure()
                if elapsed is not None:
                    retry_after = max(0, self.reset_timeout - elapsed)
            except RedisError:
                pass
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        """Decorator form of call()."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.hset(self._key('health'), 'last_success', str(time.time()))
            pipe.execute()
        except RedisError:
            logger.debug("Could not record success for '%s'", self.name)

    def _on_failure(self, error):
        try:
            failures = self.redis.incr(self._key('failures'))
            self.redis.set(self._key('last_failure'), str(time.time()))
            pipe = self.redis.pipeline()
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_failure', str(time.time()))
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            pipe.execute()
            if failures >= self.failure_threshold:
                self.redis.set(self._key('state'), OPEN)
        except RedisError:
            logger.debug("Could not record failure for '%s'", self.name)
            return

        if failures >= self.failure_threshold:
            logger.warning("Circuit '%s' opened after %d failures: %s", self.name, failures, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s",
                        self.name, failures, self.failure_threshold, error)

    def reset(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('last_failure'))
            pipe.execute()
            logger.info("Circuit '%s' manually reset", self.name)
        except RedisError as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    # ── Health ────────────────────────────────────────────────────────

    def get_health(self):
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
        except RedisError:
            return health
        health.update({
            'state': self.state,
            'failure_count': self.failure_count,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        })
        return health


# ── Registry ──────────────────────────────────────────────────────────────────

_registry = {}

# provider → (failure_threshold, reset_timeout)
PROVIDER_BREAKERS = {
    'resend': (5, 120),
    'twilio': (5, 120),
    'slack': (3, 300),
}


def get_breaker(name, redis_client=None, **kwargs):
    """Named breaker, created on first use."""
    if name not in _registry:
        if redis_client is None:
            from leadflow.extensions import redis_client as rc
            redis_client = rc
        if name in PROVIDER_BREAKERS and not kwargs:
            threshold, timeout = PROVIDER_BREAKERS[name]
            kwargs = {'failure_threshold': threshold, 'reset_timeout': timeout}
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the provider breakers; called from create_app()."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in PROVIDER_BREAKERS.items()
    }
    _registry.update(breakers)
    return breakers
