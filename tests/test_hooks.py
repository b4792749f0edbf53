"""Tests for change hooks."""

from __future__ import annotations

from unittest.mock import MagicMock, call

from directory_rankings.hooks import DirectoryHooks
from directory_rankings.proximity.cache import ProximityCache
from directory_rankings.ranking.job import RankRecomputeJob
from directory_rankings.ranking.progress import InMemoryProgressStore
from directory_rankings.utils.types import Ranked, ScopeKind
from tests.conftest import make_profile


def _fill(cache, *scope_ids):
    for scope_id in scope_ids:
        cache.get_or_compute(scope_id, ["trainer"], 5.0, lambda: ["x"])


class TestProfileChanged:
    def test_invalidates_current_scopes(self, memory_store):
        cache = ProximityCache()
        _fill(cache, "austin", "tx", "dallas")
        removed = DirectoryHooks(memory_store, cache).profile_changed("1")
        assert removed == 2
        assert len(cache) == 1

    def test_invalidates_previous_scopes(self, memory_store):
        cache = ProximityCache()
        _fill(cache, "austin", "dallas", "round-rock")
        memory_store.add_profile(make_profile(1, 4.8, 50, city="dallas"))
        DirectoryHooks(memory_store, cache).profile_changed("1", previous_scope_ids=["austin"])
        assert cache.stats()["entries"] == 1
        # Round Rock untouched
        assert cache.invalidate_scope("round-rock") == 1

    def test_recomputes_first_city_and_state(self, memory_store):
        job = MagicMock()
        hooks = DirectoryHooks(memory_store, ProximityCache(), recompute=job)
        hooks.profile_changed("5")
        assert job.recompute_scope.call_args_list == [
            call("dallas", ScopeKind.CITY),
            call("tx", ScopeKind.STATE),
        ]

    def test_recompute_updates_ranks(self, memory_store):
        job = RankRecomputeJob(memory_store, InMemoryProgressStore())
        hooks = DirectoryHooks(memory_store, ProximityCache(), recompute=job)
        memory_store.add_profile(make_profile(7, 5.0, 500, city="round-rock"))
        hooks.profile_changed("7")
        assert memory_store.get_rank_values("round-rock", ScopeKind.CITY) == {"7": Ranked(1)}
        assert memory_store.get_rank_values("tx", ScopeKind.STATE)["7"] == Ranked(1)

    def test_no_recompute_without_job(self, memory_store):
        DirectoryHooks(memory_store, ProximityCache()).profile_changed("1")
        assert memory_store.get_rank_values("austin", ScopeKind.CITY) == {}

    def test_deleted_profile(self, memory_store):
        cache = ProximityCache()
        _fill(cache, "austin")
        job = MagicMock()
        memory_store.remove_profile("1")
        removed = DirectoryHooks(memory_store, cache, recompute=job).profile_changed(
            "1", previous_scope_ids=["austin", "tx"]
        )
        assert removed == 1
        job.recompute_scope.assert_not_called()


class TestScopeChanged:
    def test_invalidates_scope(self, memory_store):
        cache = ProximityCache()
        _fill(cache, "austin", "dallas")
        hooks = DirectoryHooks(memory_store, cache)
        assert hooks.scope_changed("austin") == 1
        assert len(cache) == 1
