"""End-to-end pipeline tests against a SQLite directory."""

from __future__ import annotations

import pytest

from directory_rankings.pipeline import DirectoryPipeline
from directory_rankings.ranking.job import MODE_RESUME
from directory_rankings.store.memory_store import InMemoryDirectoryStore
from directory_rankings.utils.config import (
    AppConfig,
    ExportConfig,
    JobConfig,
    LoggingConfig,
    ProximityConfig,
    StoreConfig,
)
from directory_rankings.utils.errors import ConfigurationError
from directory_rankings.utils.types import Checkpoint, Ranked, RadiusStatus, ScopeKind
from tests.conftest import make_profile


@pytest.fixture
def pipeline_config(tmp_path):
    """Pipeline config writing everything under tmp_path."""
    return AppConfig(
        store=StoreConfig(backend="sqlite", path=str(tmp_path / "directory.db")),
        proximity=ProximityConfig(min_profiles=3, max_radius=30),
        job=JobConfig(progress_dir=str(tmp_path / "progress"), retry_wait=0.0),
        export=ExportConfig(formats=["csv"], output_dir=str(tmp_path / "output")),
        logging=LoggingConfig(level="WARNING", console=False),
    )


@pytest.fixture
def pipeline(pipeline_config, scopes, profiles):
    p = DirectoryPipeline(pipeline_config)
    for scope in scopes:
        p.store.add_scope(scope)
    for profile in profiles:
        p.store.add_profile(profile)
    yield p
    p.close()


class TestUpdateRankings:
    def test_ranks_and_exports(self, pipeline, tmp_path):
        summary = pipeline.update_rankings(ScopeKind.CITY, "trainer")
        assert summary.updated == 3
        assert pipeline.store.get_rank_values("dallas", ScopeKind.CITY) == {"5": Ranked(1)}
        assert (tmp_path / "output" / "city-rankings-trainer-summary.csv").exists()
        assert (tmp_path / "output" / "city-rankings-trainer-ranks.csv").exists()

    def test_checkpoint_file_removed_after_success(self, pipeline, tmp_path):
        pipeline.update_rankings(ScopeKind.CITY)
        assert list((tmp_path / "progress").glob("*.json")) == []

    def test_resume_uses_json_checkpoint(self, pipeline):
        pipeline.update_rankings(ScopeKind.CITY, scope_id="austin")
        key = pipeline.job.job_key(ScopeKind.CITY)
        assert pipeline.progress.load(key) is None
        checkpoint = Checkpoint(key)
        checkpoint.mark_completed("austin", "t")
        pipeline.progress.save(key, checkpoint)
        summary = pipeline.update_rankings(ScopeKind.CITY, mode=MODE_RESUME)
        assert summary.skipped == 1
        assert summary.updated == 2

    def test_dry_run_skips_rank_export(self, pipeline, tmp_path):
        pipeline.update_rankings(ScopeKind.CITY, dry_run=True)
        assert (tmp_path / "output" / "city-rankings-all-summary.csv").exists()
        assert not (tmp_path / "output" / "city-rankings-all-ranks.csv").exists()


class TestAnalyzeRadius:
    def test_all_scopes(self, pipeline, tmp_path):
        results, counts = pipeline.analyze_radius(ScopeKind.CITY)
        statuses = {r.scope_id: r.status for r in results}
        assert statuses["austin"] == RadiusStatus.SUFFICIENT
        assert statuses["dallas"] == RadiusStatus.INSUFFICIENT
        assert counts["sufficient"] == 1
        assert (tmp_path / "output" / "radius-city-all.csv").exists()

    def test_single_scope_persists(self, pipeline):
        results, counts = pipeline.analyze_radius(ScopeKind.CITY, scope_id="round-rock")
        assert counts == {"needs_proximity": 1}
        assert results[0].radius == 20
        assert pipeline.store.get_scope("round-rock").recommended_radius == 20


class TestNearby:
    def test_nearby_profiles_follow_radius(self, pipeline):
        assert pipeline.nearby_profiles("round-rock", ["trainer"]) == ["7"]
        pipeline.analyze_radius(ScopeKind.CITY, scope_id="round-rock")
        # Analysis changed the radius, so the cached listing was dropped
        assert pipeline.nearby_profiles("round-rock", ["trainer"])[0] == "7"
        assert len(pipeline.nearby_profiles("round-rock", ["trainer"])) == 5

    def test_profile_saved_refreshes_ranks(self, pipeline):
        pipeline.store.add_profile(make_profile(7, 5.0, 500, city="round-rock"))
        pipeline.profile_saved("7")
        assert pipeline.store.get_rank_values("round-rock", ScopeKind.CITY) == {"7": Ranked(1)}


class TestNearestScopes:
    def test_closest_first(self, pipeline):
        hits = pipeline.nearest_scopes("austin", limit=2)
        assert [s.scope_id for s, _ in hits] == ["round-rock", "dallas"]
        assert hits[0][1] < hits[1][1]

    def test_same_kind_only(self, pipeline):
        assert all(s.kind == ScopeKind.CITY for s, _ in pipeline.nearest_scopes("austin", limit=10))

    def test_unknown_scope(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.nearest_scopes("houston")


class TestConstruction:
    def test_memory_backend(self, pipeline_config):
        pipeline_config.store.backend = "memory"
        assert isinstance(DirectoryPipeline(pipeline_config).store, InMemoryDirectoryStore)

    def test_unknown_backend(self, pipeline_config):
        pipeline_config.store.backend = "postgres"
        with pytest.raises(ConfigurationError):
            DirectoryPipeline(pipeline_config)

    def test_hooks_without_recompute(self, pipeline_config):
        pipeline_config.hooks.recompute_on_save = False
        p = DirectoryPipeline(pipeline_config)
        assert p.hooks.recompute is None
        p.close()
