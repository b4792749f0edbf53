"""Shared test fixtures for directory rankings."""

from __future__ import annotations

import logging

import pytest

from directory_rankings.ranking.progress import InMemoryProgressStore
from directory_rankings.store.memory_store import InMemoryDirectoryStore
from directory_rankings.store.sqlite_store import SQLiteDirectoryStore
from directory_rankings.utils.config import JobConfig, ProximityConfig
from directory_rankings.utils.types import Profile, ProfileMetrics, Scope, ScopeKind

AUSTIN = (30.2672, -97.7431)
ROUND_ROCK = (30.5083, -97.6789)
DALLAS = (32.7767, -96.7970)

# Degrees of latitude per mile on a 3959-mile sphere
DEG_PER_MILE = 1.0 / 69.0970


def make_profile(
    profile_id,
    rating=None,
    reviews=None,
    boost=0.0,
    lat=None,
    lon=None,
    city=None,
    state="tx",
    categories=("trainer",),
) -> Profile:
    """Build a Profile with city/state membership in one call."""
    scope_ids = {}
    if city is not None:
        scope_ids[ScopeKind.CITY] = [city]
    if state is not None:
        scope_ids[ScopeKind.STATE] = [state]
    return Profile(
        profile_id=str(profile_id),
        metrics=ProfileMetrics(rating=rating, review_count=reviews, boost=boost),
        latitude=lat,
        longitude=lon,
        scope_ids=scope_ids,
        category_ids=list(categories),
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by setup_logging so they do not outlive a test."""
    yield
    logger = logging.getLogger("directory_rankings")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def scopes():
    """Three Texas cities and the state."""
    return [
        Scope("austin", "Austin", ScopeKind.CITY, *AUSTIN),
        Scope("dallas", "Dallas", ScopeKind.CITY, *DALLAS),
        Scope("round-rock", "Round Rock", ScopeKind.CITY, *ROUND_ROCK),
        Scope("tx", "Texas", ScopeKind.STATE, 31.0, -99.0),
    ]


@pytest.fixture
def profiles():
    """Seven profiles across the three cities.

    Austin: 1 (4.8, 50), 2 (4.8, 12), 3 (5.0, 1), 4 (no rating).
    Dallas: 5 (4.0, 10, trainer), 6 (4.5, 30, groomer).
    Round Rock: 7 (3.9, 8).
    """
    return [
        make_profile(1, 4.8, 50, lat=AUSTIN[0] + 0.01, lon=AUSTIN[1], city="austin"),
        make_profile(2, 4.8, 12, lat=AUSTIN[0] - 0.01, lon=AUSTIN[1], city="austin"),
        make_profile(3, 5.0, 1, lat=AUSTIN[0], lon=AUSTIN[1] + 0.02, city="austin"),
        make_profile(4, None, None, lat=AUSTIN[0], lon=AUSTIN[1] - 0.02, city="austin"),
        make_profile(5, 4.0, 10, lat=DALLAS[0], lon=DALLAS[1], city="dallas"),
        make_profile(6, 4.5, 30, lat=DALLAS[0] + 0.01, lon=DALLAS[1], city="dallas",
                     categories=("groomer",)),
        make_profile(7, 3.9, 8, lat=ROUND_ROCK[0], lon=ROUND_ROCK[1], city="round-rock"),
    ]


@pytest.fixture
def memory_store(scopes, profiles):
    """InMemoryDirectoryStore loaded with the sample directory."""
    store = InMemoryDirectoryStore()
    store.add_scopes(scopes)
    store.add_profiles(profiles)
    return store


@pytest.fixture
def sqlite_store(tmp_path, scopes, profiles):
    """SQLiteDirectoryStore on disk loaded with the sample directory."""
    store = SQLiteDirectoryStore(tmp_path / "directory.db")
    for scope in scopes:
        store.add_scope(scope)
    for profile in profiles:
        store.add_profile(profile)
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Each store backend in turn, loaded with the sample directory."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def progress_store():
    return InMemoryProgressStore()


@pytest.fixture
def job_config():
    """Job config with no pacing and immediate retries."""
    return JobConfig(batch_size=10, delay=0.0, batch_pause=0.0, max_retries=3, retry_wait=0.0)


@pytest.fixture
def proximity_config():
    return ProximityConfig(min_profiles=10, max_radius=30, candidate_radii=[2, 5, 10, 15, 20, 25, 30])
