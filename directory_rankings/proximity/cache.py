"""In-process cache of nearby-profile query results."""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Iterable, List, Tuple

from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import CacheEntry

logger = get_logger("proximity.cache")

CacheKey = Tuple[str, Tuple[str, ...], float]


class ProximityCache:
    """Proximity results keyed by scope, category set and radius.

    Entries never expire on their own. They are dropped only by explicit
    invalidation when profile or scope data changes.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[CacheKey, CacheEntry] = {}
        # Bumped on invalidation so an in-flight compute cannot store a stale result
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self._clock = clock
        self.hits = 0
        self.misses = 0
        self.invalidations = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def make_key(scope_id: str, category_ids: Iterable[str], radius: float) -> CacheKey:
        return (str(scope_id), tuple(sorted(str(c) for c in category_ids)), float(radius))

    def get_or_compute(
        self,
        scope_id: str,
        category_ids: Iterable[str],
        radius: float,
        compute: Callable[[], Iterable[str]],
    ) -> List[str]:
        """Return the cached result, computing and storing it on a miss."""
        key = self.make_key(scope_id, category_ids, radius)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
                return list(entry.profile_ids)
            self.misses += 1
            generation = self._generation(key[0])

        # Computed outside the lock; a concurrent miss may compute twice
        profile_ids = tuple(compute())
        with self._lock:
            if self._generation(key[0]) == generation:
                self._entries[key] = CacheEntry(profile_ids=profile_ids, created_at=self._clock())
            else:
                logger.debug("Discarded result for scope %s invalidated during compute", key[0])
        return list(profile_ids)

    def _generation(self, scope_id: str) -> Tuple[int, int]:
        return (self._epoch, self._generations.get(scope_id, 0))

    def invalidate_scope(self, scope_id: str) -> int:
        """Drop every entry for a scope, whatever its categories or radius.

        Returns:
            Number of entries removed.
        """
        scope_id = str(scope_id)
        with self._lock:
            self._generations[scope_id] = self._generations.get(scope_id, 0) + 1
            stale = [key for key in self._entries if key[0] == scope_id]
            for key in stale:
                del self._entries[key]
            self.invalidations += len(stale)
        if stale:
            logger.debug("Invalidated %d cached results for scope %s", len(stale), scope_id)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._generations.clear()
            self.invalidations += len(self._entries)
            self._entries.clear()

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
        }
