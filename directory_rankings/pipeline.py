"""Directory rankings orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from directory_rankings.export.summary_export import (
    export_job_summary,
    export_radius_results,
    export_rank_values,
)
from directory_rankings.hooks import DirectoryHooks
from directory_rankings.proximity.cache import ProximityCache
from directory_rankings.proximity.query import NearbyProfilesQuery
from directory_rankings.proximity.search import ProximitySearch
from directory_rankings.ranking.job import MODE_FRESH, RankRecomputeJob
from directory_rankings.ranking.progress import JsonFileProgressStore, ProgressStore
from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.store.memory_store import InMemoryDirectoryStore
from directory_rankings.store.sqlite_store import SQLiteDirectoryStore
from directory_rankings.utils.config import AppConfig
from directory_rankings.utils.errors import ConfigurationError
from directory_rankings.utils.geo import ScopeIndex
from directory_rankings.utils.logging import get_logger, setup_logging
from directory_rankings.utils.types import JobSummary, RadiusResult, Scope, ScopeKind

logger = get_logger("pipeline")


class DirectoryPipeline:
    """Wires the store, ranking job, proximity search and listing query."""

    def __init__(
        self,
        config: AppConfig,
        store: Optional[DirectoryStore] = None,
        progress: Optional[ProgressStore] = None,
    ):
        self.config = config
        setup_logging(config.logging)
        self.store = store if store is not None else self._create_store()
        self.progress = progress if progress is not None else JsonFileProgressStore(config.job.progress_dir)
        self.cache = ProximityCache()
        self.job = RankRecomputeJob(
            self.store,
            self.progress,
            config.job,
            precision=config.ranking.score_precision,
        )
        self.hooks = DirectoryHooks(
            self.store,
            self.cache,
            recompute=self.job if config.hooks.recompute_on_save else None,
        )
        self.search = ProximitySearch(self.store, config.proximity, hooks=self.hooks)
        self.query = NearbyProfilesQuery(self.store, self.cache, config.proximity)

    def _create_store(self) -> DirectoryStore:
        backend = self.config.store.backend
        if backend == "sqlite":
            return SQLiteDirectoryStore(self.config.store.path)
        elif backend == "memory":
            return InMemoryDirectoryStore()
        else:
            raise ConfigurationError(f"Unknown store backend: {backend}")

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    def update_rankings(
        self,
        kind: ScopeKind,
        category_id: Optional[str] = None,
        mode: str = MODE_FRESH,
        dry_run: bool = False,
        scope_id: Optional[str] = None,
    ) -> JobSummary:
        """Recompute stored ranks and export the run summary."""
        logger.info("Starting rankings update: %s v%s", self.config.name, self.config.version)
        summary = self.job.run(kind, category_id, mode=mode, dry_run=dry_run, scope_id=scope_id)

        if "csv" in self.config.export.formats:
            output_dir = Path(self.config.export.output_dir)
            export_job_summary(summary, output_dir / f"{summary.job_key}-summary.csv")
            if not dry_run:
                export_rank_values(
                    self.store, kind, output_dir / f"{summary.job_key}-ranks.csv", category_id
                )
        return summary

    def analyze_radius(
        self,
        kind: ScopeKind,
        category_id: Optional[str] = None,
        dry_run: bool = False,
        scope_id: Optional[str] = None,
    ) -> Tuple[List[RadiusResult], Dict[str, int]]:
        """Recommend proximity radii for one scope or every scope of a kind."""
        if scope_id is not None:
            result = self.search.analyze(scope_id, category_id, dry_run=dry_run)
            results, counts = [result], {result.status.value: 1}
        else:
            results, counts = self.search.analyze_all(kind, category_id, dry_run=dry_run)

        if "csv" in self.config.export.formats and results:
            name = f"radius-{kind.value}-{category_id or 'all'}.csv"
            export_radius_results(results, Path(self.config.export.output_dir) / name)
        return results, counts

    def nearby_profiles(self, scope_id: str, category_ids: Sequence[str]) -> List[str]:
        return self.query.profile_ids(scope_id, category_ids)

    def nearest_scopes(
        self, scope_id: str, limit: int = 5, max_miles: Optional[float] = None
    ) -> List[Tuple[Scope, float]]:
        """Closest scopes of the same kind, closest first.

        Raises:
            ConfigurationError: If the scope is unknown.
        """
        scope = self.store.get_scope(scope_id)
        if scope is None:
            raise ConfigurationError(f"Scope '{scope_id}' not found")
        if scope.coordinates is None:
            logger.warning("%s has no coordinates, cannot find nearby scopes", scope.name)
            return []

        candidates = {s.scope_id: s for s in self.store.list_scopes(scope.kind) if s.coordinates is not None}
        index = ScopeIndex((s.scope_id, s.latitude, s.longitude) for s in candidates.values())
        hits = index.nearest(scope.latitude, scope.longitude, k=limit, max_miles=max_miles, exclude=[scope_id])
        return [(candidates[sid], miles) for sid, miles in hits]

    def profile_saved(self, profile_id: str, previous_scope_ids: Sequence[str] = ()) -> int:
        return self.hooks.profile_changed(profile_id, previous_scope_ids)

    def scope_saved(self, scope_id: str) -> int:
        return self.hooks.scope_changed(scope_id)
