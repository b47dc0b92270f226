"""
Object cache for the multisite data-access layer

Entries are stored by (group, key). Groups listed in GLOBAL_CACHE_GROUPS are
shared by every site on the network; all other groups are scoped by blog id.
"""

import time
import threading
from typing import Any, Iterable, Optional, Tuple

from config import CACHE_TTL, GLOBAL_CACHE_GROUPS
from logging_config import logger


class ObjectCache:
    """Simple in-memory object cache with per-site groups"""

    def __init__(self, ttl: int = CACHE_TTL, global_groups: Iterable[str] = None):
        self.cache = {}
        self.ttl = ttl
        self.global_groups = set(
            GLOBAL_CACHE_GROUPS if global_groups is None else global_groups
        )
        self._lock = threading.Lock()

    def _cache_key(self, blog_id: int, group: str, key: Any) -> Tuple:
        if group in self.global_groups:
            return (0, group, str(key))
        return (blog_id, group, str(key))

    def get(self, key: Any, group: str = "default", blog_id: int = 0) -> Optional[Any]:
        """Get cached value"""
        cache_key = self._cache_key(blog_id, group, key)
        with self._lock:
            if cache_key in self.cache:
                value, timestamp = self.cache[cache_key]
                if time.time() - timestamp < self.ttl:
                    return value
                del self.cache[cache_key]
        return None

    def set(self, key: Any, value: Any, group: str = "default", blog_id: int = 0):
        """Set cached value"""
        with self._lock:
            self.cache[self._cache_key(blog_id, group, key)] = (value, time.time())

    def delete(self, key: Any, group: str = "default", blog_id: int = 0) -> bool:
        """Delete a cached value, returning whether it was present"""
        with self._lock:
            return self.cache.pop(self._cache_key(blog_id, group, key), None) is not None

    def flush_group(self, group: str, blog_id: int = 0) -> int:
        """Remove every entry of a group for one site (or globally)"""
        scope = 0 if group in self.global_groups else blog_id
        with self._lock:
            keys = [k for k in self.cache if k[0] == scope and k[1] == group]
            for k in keys:
                del self.cache[k]
        logger.log_cache_flush(group, len(keys), blog_id=blog_id)
        return len(keys)

    def clear(self):
        """Clear all cached values"""
        with self._lock:
            self.cache.clear()

    def cleanup_expired(self) -> int:
        """Remove expired entries"""
        current_time = time.time()
        with self._lock:
            expired_keys = [
                key
                for key, (value, timestamp) in self.cache.items()
                if current_time - timestamp >= self.ttl
            ]
            for key in expired_keys:
                del self.cache[key]

        return len(expired_keys)

    def __len__(self):
        return len(self.cache)
