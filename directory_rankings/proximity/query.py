"""Listing query: profiles of a scope plus profiles within its radius."""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from directory_rankings.proximity.cache import ProximityCache
from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.config import ProximityConfig
from directory_rankings.utils.geo import bounding_box, distances_from
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import Ranked, Scope

logger = get_logger("proximity.query")

# Sort position for profiles without a stored rank
MISSING_RANK_ORDER = 999999


def effective_radius(scope: Scope, default_radius: float) -> float:
    """Custom radius, then recommended radius, then the default."""
    for value in (scope.custom_radius, scope.recommended_radius):
        if value is not None and value > 0:
            return float(value)
    return float(default_radius)


class NearbyProfilesQuery:
    """Ordered profile ids to list on a scope page, read through the cache."""

    def __init__(
        self,
        store: DirectoryStore,
        cache: Optional[ProximityCache] = None,
        config: Optional[ProximityConfig] = None,
    ):
        self.store = store
        self.cache = cache if cache is not None else ProximityCache()
        self.config = config or ProximityConfig()

    def profile_ids(self, scope_id: str, category_ids: Sequence[str]) -> List[str]:
        """Profiles in or near a scope matching any of the categories.

        Directly assigned profiles come first, then by stored rank and
        distance from the scope centre.
        """
        category_ids = [c for c in category_ids if c]
        if not category_ids:
            return []
        scope = self.store.get_scope(scope_id)
        if scope is None:
            logger.debug("Unknown scope %s, nothing to list", scope_id)
            return []

        radius = effective_radius(scope, self.config.default_radius)
        return self.cache.get_or_compute(
            scope.scope_id,
            category_ids,
            radius,
            lambda: self._compute(scope, category_ids, radius),
        )

    def _compute(self, scope: Scope, category_ids: Sequence[str], radius: float) -> List[str]:
        direct: List[str] = []
        seen = set()
        for category_id in category_ids:
            for pid in self.store.list_profiles_in_scope(scope.scope_id, category_id):
                if pid not in seen:
                    seen.add(pid)
                    direct.append(pid)

        distances: Dict[str, float] = {}
        nearby: List[str] = []
        coords = scope.coordinates
        if coords is not None:
            lat, lon = coords
            bbox = bounding_box(lat, lon, radius)
            candidates: List[str] = []
            for category_id in category_ids:
                for pid in self.store.list_profiles_near(bbox, category_id, exclude_ids=seen):
                    if pid not in seen:
                        seen.add(pid)
                        candidates.append(pid)

            located = self.store.get_profile_coordinates(direct + candidates)
            if located:
                ids = list(located)
                miles = distances_from(
                    lat, lon, [located[i][0] for i in ids], [located[i][1] for i in ids]
                )
                distances = {pid: float(m) for pid, m in zip(ids, miles)}
            nearby = [pid for pid in candidates if distances.get(pid, math.inf) < radius]

        ranks = self._listing_ranks(scope, direct + nearby)
        direct_set = set(direct)

        def sort_key(pid: str):
            return (
                0 if pid in direct_set else 1,
                ranks.get(pid, MISSING_RANK_ORDER),
                distances.get(pid, math.inf),
                pid,
            )

        ordered = sorted(direct + nearby, key=sort_key)
        logger.debug(
            "%s: %d direct, %d nearby within %s mi",
            scope.name,
            len(direct),
            len(nearby),
            radius,
        )
        return ordered

    def _listing_ranks(self, scope: Scope, profile_ids: List[str]) -> Dict[str, int]:
        """Rank positions used for ordering.

        Profiles ranked in this scope use that rank. Neighbours from other
        scopes use their rank in their own first scope of the same kind.
        """
        by_scope = {scope.scope_id: self.store.get_rank_values(scope.scope_id, scope.kind)}
        result: Dict[str, int] = {}
        for pid in profile_ids:
            rank = by_scope[scope.scope_id].get(pid)
            if rank is None:
                home = self.store.get_profile_scope_ids(pid).get(scope.kind, [])
                if home:
                    if home[0] not in by_scope:
                        by_scope[home[0]] = self.store.get_rank_values(home[0], scope.kind)
                    rank = by_scope[home[0]].get(pid)
            if isinstance(rank, Ranked):
                result[pid] = rank.position
        return result
