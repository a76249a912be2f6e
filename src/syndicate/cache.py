"""
ObjectCache - process-wide grouped key/value cache.

Stands in for the cluster object cache every node shares. Two kinds of
groups exist:

- shared groups (canonical id sets) survive ``clear_local()``
- local groups (per-request read caches) are dropped by ``clear_local()``,
  which the queue flush calls periodically to bound memory on large batches

``add()`` is atomic "set if absent".
"""

import time
import threading
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_GROUP = "default"

_MISSING = object()


class ObjectCache:
    """
    Thread-safe grouped cache with optional per-entry TTL.

    Example:
        cache = ObjectCache(local_groups=["objects"])
        cache.set("10", [4, 7], group="canonical-lookup-document")
        cache.get("10", group="canonical-lookup-document")
    """

    def __init__(self, local_groups: Optional[Iterable[str]] = None):
        """
        Args:
            local_groups: Groups that ``clear_local()`` drops
        """
        self._data: Dict[str, Dict[str, Tuple[Any, Optional[float]]]] = {}
        self._local_groups = set(local_groups or [])
        self._lock = threading.Lock()

    def add_local_group(self, group: str) -> None:
        """Mark a group as local (cleared by clear_local)."""
        with self._lock:
            self._local_groups.add(group)

    def get(self, key: str, group: str = DEFAULT_GROUP, default: Any = None) -> Any:
        """Return a cached value, or default when missing or expired."""
        with self._lock:
            value = self._get_unlocked(str(key), group)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, group: str = DEFAULT_GROUP, ttl: Optional[float] = None) -> None:
        """Store a value, replacing any existing entry."""
        with self._lock:
            self._set_unlocked(str(key), value, group, ttl)

    def add(self, key: str, value: Any, group: str = DEFAULT_GROUP, ttl: Optional[float] = None) -> bool:
        """
        Store a value only if the key is absent (or expired).

        Returns:
            True if the value was stored, False if the key already existed
        """
        with self._lock:
            if self._get_unlocked(str(key), group) is not _MISSING:
                return False
            self._set_unlocked(str(key), value, group, ttl)
            return True

    def delete(self, key: str, group: str = DEFAULT_GROUP) -> bool:
        """Remove an entry. Returns True if it existed."""
        with self._lock:
            entries = self._data.get(group)
            if not entries or str(key) not in entries:
                return False
            del entries[str(key)]
            return True

    def clear_local(self) -> None:
        """Drop every local group, keeping shared groups intact."""
        with self._lock:
            for group in self._local_groups:
                self._data.pop(group, None)
        logger.debug(f"Cleared local cache groups: {sorted(self._local_groups)}")

    def flush(self) -> None:
        """Drop everything. Mainly for tests."""
        with self._lock:
            self._data.clear()

    def _get_unlocked(self, key: str, group: str) -> Any:
        entry = self._data.get(group, {}).get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[group][key]
            return _MISSING
        return value

    def _set_unlocked(self, key: str, value: Any, group: str, ttl: Optional[float]) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data.setdefault(group, {})[key] = (value, expires_at)


__all__ = ["ObjectCache", "DEFAULT_GROUP"]
