"""Two-tier key-value cache with per-entry expiry.

The local tier lives in process memory and answers first. The shared tier is
Redis, visible to every gate instance; hits there are copied into the local
tier for the remainder of their TTL.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import BackendUnavailable

if TYPE_CHECKING:
    from .config import Config
    from .prometheus_metrics import PrometheusMetrics


class LocalCache:
    """Thread-safe in-memory store with TTL-based expiration."""

    def __init__(self, max_entries: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self._store: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self.max_entries = max_entries
        self.clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def _get_live(self, key: str, now: float) -> Optional[str]:
        """Return the value for key if unexpired (called under lock)."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if now >= expires_at:
            del self._store[key]
            return None
        return value

    def _put(self, key: str, value: str, ttl: float, now: float):
        """Store an entry and enforce the size bound (called under lock)."""
        self._cleanup_expired(now)
        self._store[key] = (value, now + ttl)
        self._store.move_to_end(key)
        if self.max_entries is not None:
            while len(self._store) > self.max_entries:
                self._store.popitem(last=False)

    def _cleanup_expired(self, now: float):
        """Drop expired entries from the head of the insertion order."""
        while self._store:
            key, (_, expires_at) = next(iter(self._store.items()))
            if now < expires_at:
                break
            del self._store[key]

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._get_live(key, self.clock())

    async def set(self, key: str, value: str, ttl: float):
        with self._lock:
            self._put(key, value, ttl, self.clock())

    async def add(self, key: str, value: str, ttl: float) -> bool:
        """Insert only if key is absent or expired. Returns True if stored."""
        with self._lock:
            now = self.clock()
            if self._get_live(key, now) is not None:
                return False
            self._put(key, value, ttl, now)
            return True


class RedisCache:
    """Shared cache tier backed by Redis.

    Redis errors surface as BackendUnavailable and are never retried here.
    """

    def __init__(self, client: Redis, key_prefix: str = "dupgate:"):
        self.client = client
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _ttl_ms(ttl: float) -> int:
        return max(1, int(ttl * 1000))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(self._key(key))
        except RedisError as e:
            raise BackendUnavailable(f"Shared cache read failed: {e}") from e

    async def get_with_ttl(self, key: str) -> Tuple[Optional[str], Optional[float]]:
        """Return (value, remaining seconds); remaining is None when unknown."""
        name = self._key(key)
        try:
            value = await self.client.get(name)
            if value is None:
                return None, None
            remaining_ms = await self.client.pttl(name)
        except RedisError as e:
            raise BackendUnavailable(f"Shared cache read failed: {e}") from e
        # -1 means no expiry, -2 means the key vanished between calls
        if remaining_ms is None or remaining_ms <= 0:
            return value, None
        return value, remaining_ms / 1000.0

    async def set(self, key: str, value: str, ttl: float):
        try:
            await self.client.set(self._key(key), value, px=self._ttl_ms(ttl))
        except RedisError as e:
            raise BackendUnavailable(f"Shared cache write failed: {e}") from e

    async def add(self, key: str, value: str, ttl: float) -> bool:
        """SET NX PX: returns True only for the caller that created the key."""
        try:
            result = await self.client.set(self._key(key), value, px=self._ttl_ms(ttl), nx=True)
        except RedisError as e:
            raise BackendUnavailable(f"Shared cache write failed: {e}") from e
        return bool(result)

    async def close(self):
        await self.client.aclose()


class TieredCache:
    """Single logical namespace over a local tier and an optional shared tier."""

    def __init__(self, local: LocalCache, shared: Optional[RedisCache] = None,
                 metrics: Optional["PrometheusMetrics"] = None):
        self.local = local
        self.shared = shared
        self.metrics = metrics

    def _record_hit(self, tier: str):
        if self.metrics is not None:
            self.metrics.record_cache_hit(tier)

    async def get(self, key: str) -> Optional[str]:
        value = await self.local.get(key)
        if value is not None:
            self._record_hit("local")
            return value

        if self.shared is None:
            return None

        value, remaining = await self.shared.get_with_ttl(key)
        if value is None:
            return None

        self._record_hit("shared")
        if remaining is not None:
            await self.local.set(key, value, remaining)
        return value

    async def set(self, key: str, value: str, ttl: float):
        # Shared first so a failed write leaves no local-only entry behind
        if self.shared is not None:
            await self.shared.set(key, value, ttl)
        await self.local.set(key, value, ttl)

    async def add(self, key: str, value: str, ttl: float) -> bool:
        if self.shared is None:
            return await self.local.add(key, value, ttl)

        if await self.local.get(key) is not None:
            self._record_hit("local")
            return False

        added = await self.shared.add(key, value, ttl)
        if added:
            await self.local.set(key, value, ttl)
        return added

    async def close(self):
        if self.shared is not None:
            await self.shared.close()


def build_cache(config: "Config", metrics: Optional["PrometheusMetrics"] = None) -> TieredCache:
    """Construct the tiered cache described by the configuration."""
    local = LocalCache(max_entries=config.get("cache", "local_max_entries"))
    shared = None
    if config.get("cache", "shared_enabled", True):
        shared = RedisCache.from_url(config.redis_url())
    return TieredCache(local, shared, metrics=metrics)
