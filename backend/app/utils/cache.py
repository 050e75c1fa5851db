import asyncio
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheTTL:
    SHORT = 2 * 60
    MEDIUM = 5 * 60
    LONG = 15 * 60
    VERY_LONG = 60 * 60


SWEEP_INTERVAL_SECONDS = 10 * 60


class MemoryCache:
    """
    Process-local TTL cache.
    Entries are not shared between running instances of the app.
    """
    def __init__(self, default_ttl: float = CacheTTL.MEDIUM, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._items: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        expires_at = self._clock() + (self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._items[key] = (value, expires_at)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() > expires_at:
                del self._items[key]
                return None
            return value

    def delete(self, key: str):
        with self._lock:
            self._items.pop(key, None)

    def clear(self):
        with self._lock:
            self._items.clear()

    def cleanup(self) -> int:
        """Drops expired entries and returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._items.items() if now > expires_at]
            for key in expired:
                del self._items[key]
        return len(expired)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [key for key in self._items if key.startswith(prefix)]
            for key in keys:
                del self._items[key]
        return len(keys)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"size": len(self._items), "keys": list(self._items.keys())}


class CacheKeys:
    @staticmethod
    def search_results(query: str, project_id: str) -> str:
        return f"search:{project_id}:{query}"

    @staticmethod
    def project_search_prefix(project_id: str) -> str:
        return f"search:{project_id}:"


cache = MemoryCache()


def invalidate_project(project_id: str):
    removed = cache.invalidate_prefix(CacheKeys.project_search_prefix(project_id))
    if removed:
        logger.info(f"Invalidated {removed} cached search entries for project {project_id}")


async def sweep_forever(interval: float = SWEEP_INTERVAL_SECONDS):
    """Background task: periodically evicts expired cache entries."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        if removed:
            logger.debug(f"Cache sweep removed {removed} expired entries")
