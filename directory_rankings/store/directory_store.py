"""Directory store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from directory_rankings.utils.types import (
    BoundingBox,
    ProfileMetrics,
    RankValue,
    Scope,
    ScopeKind,
)


class DirectoryStore(ABC):
    """Read/write access to profiles, scopes and their rank values.

    Implementations must tolerate concurrent readers and writers. Profile
    ids and scope ids are strings.
    """

    # -- profiles ---------------------------------------------------------

    @abstractmethod
    def list_profiles_in_scope(self, scope_id: str, category_id: Optional[str] = None) -> List[str]:
        """Profiles directly assigned to a scope, optionally filtered by category."""

    @abstractmethod
    def list_profiles_near(
        self,
        bbox: BoundingBox,
        category_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        """Profiles whose coordinates fall inside a bounding box."""

    @abstractmethod
    def get_profile_metrics(self, profile_ids: Sequence[str]) -> Dict[str, ProfileMetrics]:
        """Bulk-fetch rating signals. Ids that no longer exist are omitted."""

    @abstractmethod
    def get_profile_coordinates(self, profile_ids: Sequence[str]) -> Dict[str, Tuple[float, float]]:
        """Bulk-fetch (lat, lon) for profiles that have coordinates."""

    @abstractmethod
    def get_profile_scope_ids(self, profile_id: str) -> Dict[ScopeKind, List[str]]:
        """Scopes a profile currently belongs to, grouped by kind."""

    # -- ranks ------------------------------------------------------------

    @abstractmethod
    def delete_rank_values(self, scope_id: str, kind: ScopeKind) -> None:
        """Remove every stored rank for a (scope, kind) pair."""

    @abstractmethod
    def insert_rank_values(self, scope_id: str, kind: ScopeKind, ranks: Mapping[str, RankValue]) -> None:
        """Store ranks for a (scope, kind) pair, overwriting same-profile rows."""

    @abstractmethod
    def get_rank_values(self, scope_id: str, kind: ScopeKind) -> Dict[str, RankValue]:
        """Stored ranks for a (scope, kind) pair."""

    def replace_rank_values(
        self,
        scope_id: str,
        kind: ScopeKind,
        ranks: Mapping[str, RankValue],
        profile_ids: Optional[Iterable[str]] = None,
    ) -> None:
        """Swap a scope's ranks for a new set.

        With ``profile_ids``, only rows for those profiles are replaced and
        other rows of the scope are left alone. Stores with transactions
        override this to delete and insert atomically. This fallback
        inserts first and then deletes only the stale rows, so readers
        never see an empty scope.
        """
        current = self.get_rank_values(scope_id, kind)
        self.insert_rank_values(scope_id, kind, ranks)
        replaceable = set(current) if profile_ids is None else set(profile_ids)
        stale = [pid for pid in current if pid in replaceable and pid not in ranks]
        if stale:
            self.delete_rank_values_for(scope_id, kind, stale)

    @abstractmethod
    def delete_rank_values_for(self, scope_id: str, kind: ScopeKind, profile_ids: Sequence[str]) -> None:
        """Remove ranks for specific profiles of a (scope, kind) pair."""

    # -- scopes and categories -------------------------------------------

    @abstractmethod
    def get_scope(self, scope_id: str) -> Optional[Scope]:
        """Look up a scope by id."""

    @abstractmethod
    def list_scopes(self, kind: ScopeKind, category_id: Optional[str] = None) -> List[Scope]:
        """Scopes of a kind. With a category, only scopes holding such profiles."""

    @abstractmethod
    def has_category(self, category_id: str) -> bool:
        """Whether a category id is known."""

    @abstractmethod
    def set_recommended_radius(self, scope_id: str, radius: float) -> None:
        """Persist the proximity radius hint on a scope."""

    def get_scope_coordinates(self, scope_id: str) -> Optional[Tuple[float, float]]:
        scope = self.get_scope(scope_id)
        if scope is None:
            return None
        return scope.coordinates
