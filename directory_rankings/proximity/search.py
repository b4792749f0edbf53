"""Adaptive proximity radius analysis.

For scopes with too few directly assigned profiles, find the smallest
candidate radius whose neighbourhood brings the combined count up to the
threshold, and record it on the scope as the recommended radius.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.config import ProximityConfig
from directory_rankings.utils.errors import ConfigurationError, DataError, StoreError
from directory_rankings.utils.geo import bounding_box, distances_from
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import RadiusResult, RadiusStatus, Scope, ScopeKind

if TYPE_CHECKING:
    from directory_rankings.hooks import DirectoryHooks

logger = get_logger("proximity.search")

# Recommended radius for scopes that need no proximity supplement
NO_SEARCH_RADIUS = 1.0


def candidate_radii(radii, max_radius: float) -> List[float]:
    """Strictly increasing radii up to and ending with ``max_radius``."""
    max_radius = float(max_radius)
    below = sorted({float(r) for r in radii if 0 < float(r) < max_radius})
    return below + [max_radius]


class ProximitySearch:
    """Find the smallest radius that fills a sparse scope."""

    def __init__(
        self,
        store: DirectoryStore,
        config: Optional[ProximityConfig] = None,
        hooks: Optional["DirectoryHooks"] = None,
    ):
        self.store = store
        self.config = config or ProximityConfig()
        self.hooks = hooks
        if self.config.max_radius <= 0:
            raise ConfigurationError("max_radius must be positive")
        self.radii = candidate_radii(self.config.candidate_radii, self.config.max_radius)

    def analyze(
        self, scope_id: str, category_id: Optional[str] = None, dry_run: bool = False
    ) -> RadiusResult:
        """Analyze one scope and persist its recommended radius.

        Args:
            scope_id: Scope to analyze.
            category_id: Count only profiles carrying this category.
            dry_run: Compute without writing the recommendation.

        Returns:
            RadiusResult describing the outcome.

        Raises:
            ConfigurationError: If the scope does not exist.
        """
        scope = self.store.get_scope(scope_id)
        if scope is None:
            raise ConfigurationError(f"Scope '{scope_id}' not found")
        return self._analyze_scope(scope, category_id, dry_run)

    def analyze_all(
        self,
        kind: ScopeKind,
        category_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> Tuple[List[RadiusResult], Dict[str, int]]:
        """Analyze every scope of a kind in name order.

        Returns:
            (results, counts) where counts maps status value to scope count.
            Scopes that failed are counted under ``"error"``.
        """
        if category_id is not None and not self.store.has_category(category_id):
            raise ConfigurationError(f"Category '{category_id}' not found")

        scopes = sorted(self.store.list_scopes(kind, category_id), key=lambda s: (s.name, s.scope_id))
        logger.info(
            "Analyzing %d %s scopes (min_profiles=%d, max_radius=%s)",
            len(scopes),
            kind.value,
            self.config.min_profiles,
            self.config.max_radius,
        )

        results: List[RadiusResult] = []
        counts: Counter = Counter()
        for scope in scopes:
            try:
                result = self._analyze_scope(scope, category_id, dry_run)
            except (DataError, StoreError) as e:
                logger.warning("Radius analysis failed for %s (%s): %s", scope.name, scope.scope_id, e)
                counts["error"] += 1
                continue
            results.append(result)
            counts[result.status.value] += 1

        logger.info(
            "Radius analysis complete: %s",
            ", ".join(f"{status}={count}" for status, count in sorted(counts.items())) or "no scopes",
        )
        return results, dict(counts)

    def _analyze_scope(self, scope: Scope, category_id: Optional[str], dry_run: bool) -> RadiusResult:
        threshold = int(self.config.min_profiles)
        direct_ids = self.store.list_profiles_in_scope(scope.scope_id, category_id)
        result = RadiusResult(
            scope_id=scope.scope_id,
            name=scope.name,
            direct_count=len(direct_ids),
            combined_count=len(direct_ids),
        )

        if len(direct_ids) >= threshold:
            result.radius = NO_SEARCH_RADIUS
            result.status = RadiusStatus.SUFFICIENT
            logger.debug("%s: %d direct profiles, no proximity needed", scope.name, len(direct_ids))
            self._record(scope, NO_SEARCH_RADIUS, dry_run)
            return result

        coords = scope.coordinates
        if coords is None:
            logger.warning("%s (%s): no coordinates, radius left unset", scope.name, scope.scope_id)
            result.status = RadiusStatus.NO_COORDINATES
            return result

        lat, lon = coords
        for radius in self.radii:
            result.radii_tested.append(radius)
            nearby = self._count_within(lat, lon, radius, category_id, direct_ids)
            result.combined_count = len(direct_ids) + nearby
            if result.combined_count >= threshold:
                result.radius = radius
                result.status = RadiusStatus.NEEDS_PROXIMITY
                logger.info(
                    "%s: %d direct + %d within %s mi",
                    scope.name,
                    len(direct_ids),
                    nearby,
                    radius,
                )
                self._record(scope, radius, dry_run)
                return result

        result.radius = float(self.config.max_radius)
        result.status = RadiusStatus.INSUFFICIENT
        logger.info(
            "%s: only %d profiles within %s mi, using maximum radius",
            scope.name,
            result.combined_count,
            self.config.max_radius,
        )
        self._record(scope, result.radius, dry_run)
        return result

    def _count_within(
        self,
        lat: float,
        lon: float,
        radius: float,
        category_id: Optional[str],
        direct_ids: List[str],
    ) -> int:
        bbox = bounding_box(lat, lon, radius)
        candidates = self.store.list_profiles_near(bbox, category_id, exclude_ids=direct_ids)
        if not candidates:
            return 0
        coords = self.store.get_profile_coordinates(candidates)
        if not coords:
            return 0
        points = list(coords.values())
        miles = distances_from(lat, lon, [p[0] for p in points], [p[1] for p in points])
        return int((miles < radius).sum())

    def _record(self, scope: Scope, radius: float, dry_run: bool) -> None:
        if dry_run:
            return
        changed = scope.recommended_radius is None or float(scope.recommended_radius) != radius
        self.store.set_recommended_radius(scope.scope_id, radius)
        if changed and self.hooks is not None:
            self.hooks.scope_changed(scope.scope_id)
