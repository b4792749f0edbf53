"""Core data types for directory rankings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

# Storage form of "unranked". Listing pages sort on the stored rank, so the
# value must stay larger than any real position.
UNRANKED_SENTINEL = 99999


class ScopeKind(Enum):
    """Geographic scope namespaces. Ranks are kept separately per kind."""

    CITY = "city"
    STATE = "state"


class RadiusStatus(Enum):
    SUFFICIENT = "sufficient"
    NEEDS_PROXIMITY = "needs_proximity"
    INSUFFICIENT = "insufficient"
    NO_COORDINATES = "no_coordinates"


def _parse_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def _parse_int(value) -> Optional[int]:
    parsed = _parse_float(value)
    if parsed is None:
        return None
    return int(parsed)


@dataclass(frozen=True)
class ProfileMetrics:
    """Rating signals for one profile, parsed once at the store boundary."""

    rating: Optional[float] = None
    review_count: Optional[int] = None
    boost: float = 0.0

    @classmethod
    def from_raw(cls, rating=None, review_count=None, boost=None) -> "ProfileMetrics":
        """Build metrics from loosely typed values (strings, blanks, None).

        Non-numeric rating or review count becomes None. A missing or
        non-numeric boost becomes 0.0.
        """
        parsed_boost = _parse_float(boost)
        return cls(
            rating=_parse_float(rating),
            review_count=_parse_int(review_count),
            boost=parsed_boost if parsed_boost is not None else 0.0,
        )


@dataclass
class Profile:
    """A ranked entity with membership in scopes and categories."""

    profile_id: str
    metrics: ProfileMetrics = field(default_factory=ProfileMetrics)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    scope_ids: Dict[ScopeKind, List[str]] = field(default_factory=dict)
    category_ids: List[str] = field(default_factory=list)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def scopes_of(self, kind: ScopeKind) -> List[str]:
        return list(self.scope_ids.get(kind, []))

    def all_scope_ids(self) -> List[str]:
        result: List[str] = []
        for ids in self.scope_ids.values():
            result.extend(ids)
        return result


@dataclass
class Scope:
    """A named geographic grouping (city or state)."""

    scope_id: str
    name: str
    kind: ScopeKind = ScopeKind.CITY
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    custom_radius: Optional[float] = None
    recommended_radius: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Ranked:
    """A 1-based position among the scored profiles of a scope."""

    position: int

    def to_storage(self) -> int:
        return self.position


class _Unranked:
    """Profile lacks rating data. Always ordered after every Ranked value."""

    _instance: Optional["_Unranked"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def to_storage(self) -> int:
        return UNRANKED_SENTINEL

    def __repr__(self) -> str:
        return "UNRANKED"

    def __reduce__(self):
        return (_Unranked, ())


UNRANKED = _Unranked()

RankValue = Union[Ranked, _Unranked]


def rank_from_storage(value) -> RankValue:
    """Convert a stored rank back into a RankValue."""
    number = _parse_int(value)
    if number is None or number <= 0 or number >= UNRANKED_SENTINEL:
        return UNRANKED
    return Ranked(number)


def rank_sort_key(rank: Optional[RankValue]) -> int:
    if rank is None:
        return UNRANKED_SENTINEL
    return rank.to_storage()


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude rectangle in degrees."""

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lon_min <= lon <= self.lon_max


@dataclass
class Checkpoint:
    """Scopes already completed within one recompute run."""

    job_key: str
    completed_scopes: List[str] = field(default_factory=list)
    started_at: str = ""
    last_updated: str = ""

    def is_completed(self, scope_id: str) -> bool:
        return scope_id in self.completed_scopes

    def mark_completed(self, scope_id: str, timestamp: str) -> None:
        if scope_id not in self.completed_scopes:
            self.completed_scopes.append(scope_id)
        self.last_updated = timestamp

    def to_dict(self) -> dict:
        return {
            "job_key": self.job_key,
            "completed_scopes": list(self.completed_scopes),
            "started_at": self.started_at,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Checkpoint":
        return cls(
            job_key=str(data["job_key"]),
            completed_scopes=[str(s) for s in data.get("completed_scopes", [])],
            started_at=data.get("started_at", ""),
            last_updated=data.get("last_updated", ""),
        )


@dataclass
class JobSummary:
    """Outcome counts of a recompute run."""

    job_key: str = ""
    total: int = 0
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0
    missing_profiles: int = 0
    dry_run: bool = False
    elapsed_seconds: float = 0.0
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.errored == 0


@dataclass
class RadiusResult:
    """Outcome of a proximity radius analysis for one scope."""

    scope_id: str
    name: str = ""
    direct_count: int = 0
    combined_count: int = 0
    radius: Optional[float] = None
    status: RadiusStatus = RadiusStatus.SUFFICIENT
    radii_tested: List[float] = field(default_factory=list)


@dataclass
class CacheEntry:
    """Cached proximity query result. Replaced, never updated in place."""

    profile_ids: Tuple[str, ...]
    created_at: float
