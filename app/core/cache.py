"""
List cache with versioned keys and namespace invalidation
"""

import json
import time
import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

from redis.exceptions import RedisError

from app.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Storage behind the list cache; values are JSON strings"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        ...


class MemoryCacheBackend(CacheBackend):
    """
    Bounded in-process LRU with per-entry TTL
    """

    def __init__(self, max_entries: int = 256, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        async with self._lock:
            self._entries[key] = (self._clock() + ttl, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    async def delete_prefix(self, prefix: str) -> int:
        async with self._lock:
            stale = [key for key in self._entries if key.startswith(prefix)]
            for key in stale:
                del self._entries[key]
            return len(stale)


class RedisCacheBackend(CacheBackend):
    """
    Redis backed cache, shared across workers
    """

    def __init__(self, client):
        self.client = client

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        await self.client.setex(key, ttl, value)

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        async for key in self.client.scan_iter(match=f"{prefix}*", count=100):
            deleted += await self.client.delete(key)
        return deleted


class ListCache:
    """
    Caches read-only list responses keyed by namespace and query parameters.
    Never consulted for mutation decisions.
    """

    def __init__(self, backend: CacheBackend, version: str = "v1"):
        self.backend = backend
        self.version = version
        self.logger = logging.getLogger(__name__)

    def make_key(self, namespace: str, params: Dict[str, Any]) -> str:
        """
        Generate consistent cache key with version and parameter hash
        """
        param_str = json.dumps(params, sort_keys=True, default=str)
        param_hash = hashlib.md5(param_str.encode()).hexdigest()[:8]
        return f"{self.version}:{namespace}:{param_hash}"

    async def get(self, namespace: str, params: Dict[str, Any]) -> Optional[Any]:
        key = self.make_key(namespace, params)
        try:
            cached = await self.backend.get(key)
        except RedisError as e:
            self.logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Invalid JSON in cache key {key}: {e}")
            return None

    async def set(self, namespace: str, params: Dict[str, Any], value: Any, ttl: Optional[int] = None):
        key = self.make_key(namespace, params)
        try:
            await self.backend.set(key, json.dumps(value, default=str), ttl or settings.CACHE_TTL_TRIPS)
        except RedisError as e:
            self.logger.warning(f"Cache write failed for {key}: {e}")

    async def invalidate(self, namespace: str) -> int:
        try:
            deleted = await self.backend.delete_prefix(f"{self.version}:{namespace}:")
        except RedisError as e:
            self.logger.warning(f"Cache invalidation failed for {namespace}: {e}")
            return 0
        if deleted:
            self.logger.debug(f"Invalidated {deleted} cache entries in {namespace}")
        return deleted


TRIPS_NAMESPACE = "trips"

# Global cache; the backend is swapped for Redis at startup when configured
list_cache = ListCache(MemoryCacheBackend(max_entries=settings.CACHE_MAX_ENTRIES))
