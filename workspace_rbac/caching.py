"""
Effective-permission cache - time-bounded memoization keyed by (workspace, role).

Entries expire after a fixed TTL and the table is bounded with LRU eviction.
Invalidation is always explicit: a single role, a whole workspace, or
everything. The cache never tracks which descendant roles depend on an
ancestor, so after editing a shared parent role or a permission callers
should invalidate the workspace (or the whole cache) rather than one role.
"""

import logging
import threading
import time
from collections import OrderedDict, defaultdict
from datetime import datetime
from typing import Any, Callable, FrozenSet, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 10000


class CacheKey(NamedTuple):
    """Composite cache key; never concatenated into a string."""

    workspace_id: str
    role_id: str


class CacheStats:
    """Cache statistics tracking"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.evictions = 0
        self.expirations = 0
        self.invalidations = 0
        self.operations = defaultdict(int)
        self.start_time = time.time()
        self.last_updated = datetime.now()

    def _touch(self, operation: str) -> None:
        self.operations[operation] += 1
        self.last_updated = datetime.now()

    def record_hit(self):
        self.hits += 1
        self._touch("get")

    def record_miss(self, expired: bool = False):
        self.misses += 1
        if expired:
            self.expirations += 1
        self._touch("get")

    def record_set(self):
        self.sets += 1
        self._touch("set")

    def record_eviction(self):
        self.evictions += 1
        self._touch("evict")

    def record_invalidation(self, count: int):
        self.invalidations += count
        self._touch("invalidate")

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total) if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "invalidations": self.invalidations,
            "hit_rate": self.hit_rate,
            "total_operations": sum(self.operations.values()),
            "uptime_seconds": time.time() - self.start_time,
            "operations": dict(self.operations),
            "last_updated": self.last_updated.isoformat(),
        }


class PermissionCache:
    """
    Thread-safe TTL + LRU table of effective permission sets.

    A non-positive ``ttl`` disables the cache: lookups always miss and
    nothing is stored.

    Args:
        ttl: Entry lifetime in seconds.
        max_entries: Upper bound on stored entries; the least recently used
            entry is evicted first.
        clock: Monotonic time source, injectable for tests.

    Example:
        >>> cache = PermissionCache(ttl=60)
        >>> cache.set("acme", "guest", frozenset({"read"}))
        True
        >>> cache.get("acme", "guest")
        frozenset({'read'})
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, Tuple[FrozenSet[str], float]]" = (
            OrderedDict()
        )
        self._lock = threading.RLock()
        self._stats = CacheStats()
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def generation(self) -> int:
        """Counter bumped by every invalidation; see ``set``."""
        with self._lock:
            return self._generation

    def get(self, workspace_id: str, role_id: str) -> Optional[FrozenSet[str]]:
        """Return the cached set if present and younger than the TTL."""
        if not self.enabled:
            return None

        key = CacheKey(workspace_id, role_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.record_miss()
                return None

            permission_ids, stored_at = entry
            if self._clock() - stored_at >= self.ttl:
                del self._entries[key]
                self._stats.record_miss(expired=True)
                logger.debug(
                    f"Cache entry expired for role '{role_id}'",
                    extra={"workspace_id": workspace_id, "role_id": role_id},
                )
                return None

            self._entries.move_to_end(key)
            self._stats.record_hit()
            return permission_ids

    def set(
        self,
        workspace_id: str,
        role_id: str,
        permission_ids: FrozenSet[str],
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store a freshly computed set, evicting the oldest entries if full.

        Pass the ``generation`` read before computing the set: if any
        invalidation ran in between, the set may predate it and is dropped.

        Returns:
            True if the set was stored.
        """
        if not self.enabled:
            return False

        key = CacheKey(workspace_id, role_id)
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(
                    f"Discarded stale permission set for role '{role_id}'",
                    extra={"workspace_id": workspace_id, "role_id": role_id},
                )
                return False
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self._stats.record_eviction()
            self._entries[key] = (frozenset(permission_ids), self._clock())
            self._stats.record_set()
        return True

    def invalidate(self, workspace_id: str, role_id: str) -> int:
        """Drop one (workspace, role) entry. Returns the number removed."""
        with self._lock:
            entry = self._entries.pop(CacheKey(workspace_id, role_id), None)
            removed = 0 if entry is None else 1
            self._generation += 1
            self._stats.record_invalidation(removed)
        return removed

    def invalidate_workspace(self, workspace_id: str) -> int:
        """Drop every entry of one workspace. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._entries if k.workspace_id == workspace_id]
            for key in keys:
                del self._entries[key]
            self._generation += 1
            self._stats.record_invalidation(len(keys))

        if keys:
            logger.debug(
                f"Invalidated {len(keys)} cache entries for workspace '{workspace_id}'",
                extra={"workspace_id": workspace_id, "removed": len(keys)},
            )
        return len(keys)

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._generation += 1
            self._stats.record_invalidation(removed)

        logger.info(f"Cleared {removed} cache entries")
        return removed

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats.update(
                {
                    "enabled": self.enabled,
                    "ttl_seconds": self.ttl,
                    "size": len(self._entries),
                    "max_entries": self.max_entries,
                }
            )
            return stats
