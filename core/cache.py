"""
Cache manager for API responses and computed results.

Caching is critical for:
1. Performance - avoid recomputing recommendations every tick
2. Rate limiting - respect API limits of the free data providers
3. Consistency - every caller sees the same last good result
"""
import hashlib
import time
from typing import Any, Callable, Optional
import logging

from diskcache import Cache

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Disk-backed key/value cache with a per-entry TTL.

    Construct one per process and hand it to whatever needs it. Expiry is
    checked on every read, so an entry is never served past its TTL even
    when cleanup() has not swept it yet.
    """

    def __init__(self, cache_dir: Optional[str] = None,
                 clock: Callable[[], float] = time.time):
        # diskcache picks a temporary directory when none is given
        self.cache = Cache(directory=str(cache_dir) if cache_dir else None)
        self.cache_dir = self.cache.directory
        self._clock = clock
        logger.info(f"Cache initialized at: {self.cache_dir}")

    @staticmethod
    def make_key(symbol: str, data_type: str, **kwargs) -> str:
        """
        Generate a stable cache key.

        Examples:
        - TSLA:quote:[]
        - TSLA:chain:[('expirations', 4)]
        """
        params = sorted(kwargs.items())
        key_string = f"{symbol}:{data_type}:{params}"
        return hashlib.md5(key_string.encode()).hexdigest()

    def _is_expired(self, entry: dict, now: float) -> bool:
        return now - entry['created_at'] > entry['ttl']

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve cached data if present and not expired.

        Returns None on a miss; an expired entry is deleted on the way out.
        """
        entry = self.cache.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key[:8]}...")
            return None

        if self._is_expired(entry, self._clock()):
            logger.debug(f"Cache expired: {key[:8]}...")
            self.cache.delete(key)
            return None

        logger.debug(f"Cache hit: {key[:8]}...")
        return entry['data']

    def set(self, key: str, data: Any, ttl_seconds: float = 30) -> None:
        """
        Store data under key, replacing any previous entry.

        Args:
            key: Opaque cache key
            data: The data to cache (must be picklable)
            ttl_seconds: Time-to-live in seconds
        """
        self.cache.set(key, {
            'data': data,
            'created_at': self._clock(),
            'ttl': ttl_seconds,
        })
        logger.debug(f"Cached: {key[:8]}... (TTL: {ttl_seconds}s)")

    def get_or_set(self, key: str, factory: Callable[[], Any],
                   ttl_seconds: float = 30) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        None results from the factory are not cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        data = factory()
        if data is not None:
            self.set(key, data, ttl_seconds)
        return data

    def cleanup(self) -> int:
        """
        Delete every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        removed = 0

        for key in list(self.cache.iterkeys()):
            entry = self.cache.get(key)
            if entry is not None and self._is_expired(entry, now):
                self.cache.delete(key)
                removed += 1

        if removed:
            logger.info(f"Cache cleanup removed {removed} expired entries")
        return removed

    def delete(self, key: str) -> None:
        self.cache.delete(key)

    def clear(self) -> None:
        """Clear all cached data."""
        self.cache.clear()
        logger.info("Cache cleared")

    def close(self) -> None:
        self.cache.close()

    def __len__(self) -> int:
        return len(self.cache)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            'size': len(self.cache),
            'directory': str(self.cache_dir)
        }
