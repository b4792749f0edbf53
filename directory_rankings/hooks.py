"""Change hooks run when profile or scope data is edited."""

from __future__ import annotations

from typing import Iterable, Optional

from directory_rankings.proximity.cache import ProximityCache
from directory_rankings.ranking.job import RankRecomputeJob
from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import ScopeKind

logger = get_logger("hooks")


class DirectoryHooks:
    """Keep cached listings and ranks in step with edits.

    Args:
        store: Directory store.
        cache: Proximity cache to invalidate.
        recompute: Job used to refresh ranks when a profile is saved.
            Ranks are left alone when None.
    """

    def __init__(
        self,
        store: DirectoryStore,
        cache: ProximityCache,
        recompute: Optional[RankRecomputeJob] = None,
    ):
        self.store = store
        self.cache = cache
        self.recompute = recompute

    def profile_changed(self, profile_id: str, previous_scope_ids: Iterable[str] = ()) -> int:
        """Handle a saved profile.

        Invalidates cached results for every scope the profile is in now or
        was in before the edit, then refreshes ranks in its first city and
        first state scope.

        Returns:
            Number of cache entries removed.
        """
        current = self.store.get_profile_scope_ids(profile_id)
        affected = []
        for scope_id in list(previous_scope_ids) + [s for ids in current.values() for s in ids]:
            if scope_id not in affected:
                affected.append(scope_id)

        removed = sum(self.cache.invalidate_scope(scope_id) for scope_id in affected)
        logger.debug("Profile %s saved: %d scopes, %d cache entries dropped", profile_id, len(affected), removed)

        if self.recompute is not None:
            for kind in (ScopeKind.CITY, ScopeKind.STATE):
                scope_ids = current.get(kind, [])
                if scope_ids:
                    self.recompute.recompute_scope(scope_ids[0], kind)
        return removed

    def scope_changed(self, scope_id: str) -> int:
        """Handle a scope whose coordinates or radius settings changed."""
        removed = self.cache.invalidate_scope(scope_id)
        logger.debug("Scope %s changed: %d cache entries dropped", scope_id, removed)
        return removed
