"""Great-circle distance and bounding-box helpers (US coordinates)."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from directory_rankings.utils.types import BoundingBox

EARTH_RADIUS_MILES = 3959.0
MILES_PER_DEGREE_LAT = 69.0


def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in miles using the spherical law of cosines."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta = math.radians(lon2 - lon1)
    cos_angle = math.cos(phi1) * math.cos(phi2) * math.cos(delta) + math.sin(phi1) * math.sin(phi2)
    # Rounding can push the cosine just past 1.0 for identical points
    cos_angle = max(-1.0, min(1.0, cos_angle))
    return EARTH_RADIUS_MILES * math.acos(cos_angle)


def distances_from(lat: float, lon: float, lats, lons) -> np.ndarray:
    """Vectorized distance from one origin to arrays of points.

    Returns:
        Array of distances in miles, same length as ``lats``.
    """
    lats = np.radians(np.asarray(lats, dtype=float))
    lons = np.radians(np.asarray(lons, dtype=float))
    phi = math.radians(lat)
    lam = math.radians(lon)
    cos_angle = np.cos(phi) * np.cos(lats) * np.cos(lons - lam) + np.sin(phi) * np.sin(lats)
    return EARTH_RADIUS_MILES * np.arccos(np.clip(cos_angle, -1.0, 1.0))


def bounding_box(lat: float, lon: float, radius_miles: float) -> BoundingBox:
    """Rectangle enclosing a circle of ``radius_miles`` around a point.

    Only a pre-filter: callers confirm candidates with ``distance``.
    """
    lat_delta = radius_miles / MILES_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(lat))
    lon_delta = radius_miles / (MILES_PER_DEGREE_LAT * max(cos_lat, 1e-6))
    return BoundingBox(
        lat_min=lat - lat_delta,
        lat_max=lat + lat_delta,
        lon_min=lon - lon_delta,
        lon_max=lon + lon_delta,
    )


def _to_unit_xyz(lats, lons) -> np.ndarray:
    lats = np.radians(np.asarray(lats, dtype=float))
    lons = np.radians(np.asarray(lons, dtype=float))
    return np.column_stack(
        (np.cos(lats) * np.cos(lons), np.cos(lats) * np.sin(lons), np.sin(lats))
    )


class ScopeIndex:
    """KD-tree over scope coordinates for nearest-scope lookups."""

    def __init__(self, scopes: Iterable[Tuple[str, float, float]]):
        """Build the index.

        Args:
            scopes: (scope_id, latitude, longitude) triples.
        """
        self._ids: List[str] = []
        lats: List[float] = []
        lons: List[float] = []
        for scope_id, lat, lon in scopes:
            self._ids.append(scope_id)
            lats.append(lat)
            lons.append(lon)
        self._lats = np.asarray(lats, dtype=float)
        self._lons = np.asarray(lons, dtype=float)
        self._tree = cKDTree(_to_unit_xyz(lats, lons)) if self._ids else None

    def __len__(self) -> int:
        return len(self._ids)

    def nearest(
        self,
        lat: float,
        lon: float,
        k: int = 5,
        max_miles: Optional[float] = None,
        exclude: Sequence[str] = (),
    ) -> List[Tuple[str, float]]:
        """Find the closest scopes to a point.

        Returns:
            (scope_id, miles) pairs, closest first.
        """
        if self._tree is None or k <= 0:
            return []
        excluded = set(exclude)
        query_k = min(len(self._ids), k + len(excluded))
        _, indices = self._tree.query(_to_unit_xyz([lat], [lon])[0], k=query_k)
        indices = np.atleast_1d(indices)

        results: List[Tuple[str, float]] = []
        for i in indices:
            if i >= len(self._ids):
                continue
            scope_id = self._ids[i]
            if scope_id in excluded:
                continue
            miles = distance(lat, lon, float(self._lats[i]), float(self._lons[i]))
            if max_miles is not None and miles > max_miles:
                break
            results.append((scope_id, miles))
            if len(results) >= k:
                break
        return results
