"""In-memory directory store with vectorized bounding-box filtering."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.types import (
    BoundingBox,
    Profile,
    ProfileMetrics,
    RankValue,
    Scope,
    ScopeKind,
)


class InMemoryDirectoryStore(DirectoryStore):
    """Dictionary-based store. Rank swaps happen under a lock."""

    def __init__(self) -> None:
        self._profiles: Dict[str, Profile] = {}
        self._scopes: Dict[str, Scope] = {}
        self._ranks: Dict[Tuple[str, ScopeKind], Dict[str, RankValue]] = {}
        self._lock = threading.RLock()
        self._coord_ids: List[str] = []
        self._coords: np.ndarray = np.zeros((0, 2))

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, profile_id: str) -> bool:
        return profile_id in self._profiles

    # -- loading ----------------------------------------------------------

    def add_profile(self, profile: Profile) -> None:
        """Add or replace a profile and rebuild the coordinate index."""
        with self._lock:
            self._profiles[profile.profile_id] = profile
            self._rebuild_index()

    def add_profiles(self, profiles: Iterable[Profile]) -> None:
        """Add multiple profiles and rebuild the coordinate index once."""
        with self._lock:
            for p in profiles:
                self._profiles[p.profile_id] = p
            self._rebuild_index()

    def remove_profile(self, profile_id: str) -> None:
        with self._lock:
            self._profiles.pop(profile_id, None)
            self._rebuild_index()

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self._profiles.get(profile_id)

    def add_scope(self, scope: Scope) -> None:
        with self._lock:
            self._scopes[scope.scope_id] = scope

    def add_scopes(self, scopes: Iterable[Scope]) -> None:
        with self._lock:
            for s in scopes:
                self._scopes[s.scope_id] = s

    def all_scopes(self) -> List[Scope]:
        return list(self._scopes.values())

    # -- profiles ---------------------------------------------------------

    def list_profiles_in_scope(self, scope_id: str, category_id: Optional[str] = None) -> List[str]:
        scope = self._scopes.get(scope_id)
        if scope is None:
            return []
        with self._lock:
            profiles = list(self._profiles.values())
        return [
            p.profile_id
            for p in profiles
            if scope_id in p.scope_ids.get(scope.kind, [])
            and (category_id is None or category_id in p.category_ids)
        ]

    def list_profiles_near(
        self,
        bbox: BoundingBox,
        category_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        with self._lock:
            ids = list(self._coord_ids)
            coords = self._coords
        if not ids:
            return []
        lats = coords[:, 0]
        lons = coords[:, 1]
        mask = (
            (lats >= bbox.lat_min)
            & (lats <= bbox.lat_max)
            & (lons >= bbox.lon_min)
            & (lons <= bbox.lon_max)
        )
        excluded = set(exclude_ids)
        results = []
        for i in np.flatnonzero(mask):
            pid = ids[i]
            if pid in excluded:
                continue
            profile = self._profiles.get(pid)
            if profile is None:
                continue
            if category_id is not None and category_id not in profile.category_ids:
                continue
            results.append(pid)
        return results

    def get_profile_metrics(self, profile_ids: Sequence[str]) -> Dict[str, ProfileMetrics]:
        result = {}
        for pid in profile_ids:
            profile = self._profiles.get(pid)
            if profile is not None:
                result[pid] = profile.metrics
        return result

    def get_profile_coordinates(self, profile_ids: Sequence[str]) -> Dict[str, Tuple[float, float]]:
        result = {}
        for pid in profile_ids:
            profile = self._profiles.get(pid)
            if profile is not None and profile.has_coordinates:
                result[pid] = (profile.latitude, profile.longitude)
        return result

    def get_profile_scope_ids(self, profile_id: str) -> Dict[ScopeKind, List[str]]:
        profile = self._profiles.get(profile_id)
        if profile is None:
            return {}
        return {kind: list(ids) for kind, ids in profile.scope_ids.items()}

    # -- ranks ------------------------------------------------------------

    def delete_rank_values(self, scope_id: str, kind: ScopeKind) -> None:
        with self._lock:
            self._ranks.pop((scope_id, kind), None)

    def delete_rank_values_for(self, scope_id: str, kind: ScopeKind, profile_ids: Sequence[str]) -> None:
        with self._lock:
            current = self._ranks.get((scope_id, kind))
            if not current:
                return
            for pid in profile_ids:
                current.pop(pid, None)

    def insert_rank_values(self, scope_id: str, kind: ScopeKind, ranks: Mapping[str, RankValue]) -> None:
        with self._lock:
            self._ranks.setdefault((scope_id, kind), {}).update(ranks)

    def replace_rank_values(
        self,
        scope_id: str,
        kind: ScopeKind,
        ranks: Mapping[str, RankValue],
        profile_ids: Optional[Iterable[str]] = None,
    ) -> None:
        with self._lock:
            if profile_ids is None:
                updated = {}
            else:
                updated = dict(self._ranks.get((scope_id, kind), {}))
                for pid in profile_ids:
                    updated.pop(pid, None)
            updated.update(ranks)
            self._ranks[(scope_id, kind)] = updated

    def get_rank_values(self, scope_id: str, kind: ScopeKind) -> Dict[str, RankValue]:
        with self._lock:
            return dict(self._ranks.get((scope_id, kind), {}))

    # -- scopes and categories -------------------------------------------

    def get_scope(self, scope_id: str) -> Optional[Scope]:
        return self._scopes.get(scope_id)

    def list_scopes(self, kind: ScopeKind, category_id: Optional[str] = None) -> List[Scope]:
        scopes = [s for s in self._scopes.values() if s.kind == kind]
        if category_id is None:
            return scopes
        with self._lock:
            profiles = list(self._profiles.values())
        populated = set()
        for p in profiles:
            if category_id in p.category_ids:
                populated.update(p.scope_ids.get(kind, []))
        return [s for s in scopes if s.scope_id in populated]

    def has_category(self, category_id: str) -> bool:
        return any(category_id in p.category_ids for p in self._profiles.values())

    def set_recommended_radius(self, scope_id: str, radius: float) -> None:
        with self._lock:
            scope = self._scopes.get(scope_id)
            if scope is not None:
                scope.recommended_radius = radius

    def _rebuild_index(self) -> None:
        """Rebuild the coordinate arrays used for bounding-box queries."""
        located = [p for p in self._profiles.values() if p.has_coordinates]
        self._coord_ids = [p.profile_id for p in located]
        if located:
            self._coords = np.array([(p.latitude, p.longitude) for p in located], dtype=float)
        else:
            self._coords = np.zeros((0, 2))
