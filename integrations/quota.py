from collections import defaultdict
from datetime import datetime, timezone

import redis
from loguru import logger

from pipeline import config

USAGE_KINDS = ("discovery", "api")

# Usage keys outlive their month by a little, which is what resets them
USAGE_TTL_S = 32 * 24 * 3600

class QuotaGate:
    """Redis-backed monthly usage counter enforcing per-account discovery limits."""

    def __init__(self, redis_url: str = None, default_limit: int = None):
        """Initialize Redis connection. An empty URL selects the in-process counter."""
        self.default_limit = default_limit if default_limit is not None else config.DISCOVERY_MONTHLY_LIMIT
        self.r = None
        self._memory_usage = defaultdict(int)
        self._memory_limits = {}

        redis_url = config.REDIS_URL if redis_url is None else redis_url
        if not redis_url:
            logger.warning("No Redis URL configured, quota usage kept in memory")
            return

        try:
            self.r = redis.from_url(redis_url)
            # Test connection
            self.r.ping()
            logger.info("Redis connection established successfully")
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            # Usage will not survive a restart or be shared between workers
            self.r = None

    def _usage_key(self, account_id: str, kind: str, now: datetime = None) -> str:
        month = (now or datetime.now(timezone.utc)).strftime("%Y-%m")
        return f"quota:{account_id}:{kind}:{month}"

    def _read_int(self, key: str, raw, default: int) -> int:
        if raw is None:
            return default
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.error(f"Corrupted quota value at {key}: {raw!r}, using {default}")
            return default

    def limit_for(self, account_id: str) -> int:
        """Monthly discovery allowance for an account."""
        if self.r:
            key = f"quota:limit:{account_id}"
            return self._read_int(key, self.r.get(key), self.default_limit)
        return self._memory_limits.get(account_id, self.default_limit)

    def set_limit(self, account_id: str, limit: int) -> None:
        """Override the monthly allowance for one account (e.g. after a plan upgrade)."""
        if limit < 0:
            raise ValueError("limit must be non-negative")
        if self.r:
            self.r.set(f"quota:limit:{account_id}", limit)
        else:
            self._memory_limits[account_id] = limit

    def usage(self, account_id: str, kind: str = "discovery") -> int:
        """Usage units recorded for the current month."""
        key = self._usage_key(account_id, kind)
        if self.r:
            return self._read_int(key, self.r.get(key), 0)
        return self._memory_usage[key]

    def can_discover(self, account_id: str) -> bool:
        """
        Check whether the account still has discovery allowance this month.

        Args:
            account_id: Account requesting discovery

        Returns:
            True if another discovery run is allowed
        """
        if not account_id:
            logger.warning("Empty account id provided to quota check")
            return False

        try:
            return self.usage(account_id, "discovery") < self.limit_for(account_id)
        except redis.RedisError as e:
            logger.error(f"Quota check failed: {e}")
            # Fail open - the store being down should not block discovery
            return True

    def record_usage(self, account_id: str, kind: str = "discovery") -> int:
        """
        Record one usage unit for the current month.

        Returns:
            The new usage count, or 0 if it could not be recorded
        """
        if kind not in USAGE_KINDS:
            raise ValueError(f"Unknown usage kind: {kind}")

        key = self._usage_key(account_id, kind)
        try:
            if self.r:
                pipe = self.r.pipeline()
                pipe.incr(key)
                pipe.expire(key, USAGE_TTL_S)
                count, _ = pipe.execute()
                return int(count)
            self._memory_usage[key] += 1
            return self._memory_usage[key]

        except redis.RedisError as e:
            logger.error(f"Failed to record {kind} usage for {account_id}: {e}")
            return 0

# Global quota gate instance
quota_gate = QuotaGate()

def can_discover(account_id: str) -> bool:
    """Check discovery allowance using the global quota gate."""
    return quota_gate.can_discover(account_id)

def record_usage(account_id: str, kind: str = "discovery") -> int:
    """Record usage using the global quota gate."""
    return quota_gate.record_usage(account_id, kind)
