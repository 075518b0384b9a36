import json
import threading
import time
from typing import Callable, Optional

from redis import Redis


class DepositAddressCache:
    """
    TTL cache for admin-configured deposit addresses, keyed by (coin, network).

    Lives in app.extensions["deposit_address_cache"]. Backed by Redis when a
    URL is given so every worker sees the same entries; otherwise an
    in-process dict.
    """

    def __init__(self, ttl: int = 300, redis_url: Optional[str] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries = {}
        self.redis = Redis.from_url(redis_url) if redis_url else None

    @staticmethod
    def _key(coin: str, network: str) -> str:
        return f"deposit_address:{coin.upper()}:{network.upper()}"

    def get(self, coin: str, network: str) -> Optional[dict]:
        key = self._key(coin, network)
        if self.redis is not None:
            cached = self.redis.get(key)
            return json.loads(cached) if cached else None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, coin: str, network: str, value: dict):
        key = self._key(coin, network)
        if self.redis is not None:
            self.redis.setex(key, self.ttl, json.dumps(value))
            return

        with self._lock:
            self._entries[key] = (self._clock() + self.ttl, value)

    def invalidate(self, coin: str, network: str):
        key = self._key(coin, network)
        if self.redis is not None:
            self.redis.delete(key)
            return

        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        if self.redis is not None:
            keys = list(self.redis.scan_iter("deposit_address:*"))
            if keys:
                self.redis.delete(*keys)
            return

        with self._lock:
            self._entries.clear()

    def get_or_load(self, coin: str, network: str, loader: Callable[[], Optional[dict]]) -> Optional[dict]:
        """Cache miss -> call loader and store a non-empty result."""
        cached = self.get(coin, network)
        if cached is not None:
            return cached

        value = loader()
        if value is not None:
            self.set(coin, network, value)
        return value
