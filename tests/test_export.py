"""Tests for CSV export of ranks, radius results and job summaries."""

from __future__ import annotations

import pandas as pd

from directory_rankings.export.summary_export import (
    export_job_summary,
    export_radius_results,
    export_rank_values,
)
from directory_rankings.ranking.job import RankRecomputeJob
from directory_rankings.ranking.progress import InMemoryProgressStore
from directory_rankings.utils.types import JobSummary, RadiusResult, RadiusStatus, ScopeKind


class TestExportRankValues:
    def test_rows_sorted_by_scope_and_rank(self, memory_store, tmp_path):
        RankRecomputeJob(memory_store, InMemoryProgressStore()).run(ScopeKind.CITY)
        path = tmp_path / "out" / "ranks.csv"
        count = export_rank_values(memory_store, ScopeKind.CITY, path)
        df = pd.read_csv(path, dtype={"profile_id": str})
        assert count == 7
        assert list(df["scope_id"]) == ["austin"] * 4 + ["dallas"] * 2 + ["round-rock"]
        austin = df[df["scope_id"] == "austin"]
        assert list(austin["profile_id"]) == ["1", "2", "3", "4"]
        assert list(austin["rank"]) == [1, 2, 3, 99999]
        assert list(austin["ranked"]) == [True, True, True, False]

    def test_empty_store_writes_header(self, memory_store, tmp_path):
        path = tmp_path / "ranks.csv"
        assert export_rank_values(memory_store, ScopeKind.STATE, path) == 0
        df = pd.read_csv(path)
        assert list(df.columns) == ["scope_id", "scope_name", "kind", "profile_id", "rank", "ranked"]


class TestExportRadiusResults:
    def test_columns(self, tmp_path):
        results = [
            RadiusResult("denver", "Denver", 3, 11, 10.0, RadiusStatus.NEEDS_PROXIMITY, [2.0, 5.0, 10.0]),
            RadiusResult("nowhere", "Nowhere", 0, 0, None, RadiusStatus.NO_COORDINATES),
        ]
        path = tmp_path / "radius.csv"
        export_radius_results(results, path)
        df = pd.read_csv(path)
        assert list(df["status"]) == ["needs_proximity", "no_coordinates"]
        assert df.loc[0, "radii_tested"] == "2 5 10"
        assert df.loc[0, "radius"] == 10.0
        assert pd.isna(df.loc[1, "radius"])


class TestExportJobSummary:
    def test_totals_and_errors(self, tmp_path):
        summary = JobSummary(
            job_key="city-rankings-trainer",
            total=3,
            processed=3,
            updated=2,
            errored=1,
            elapsed_seconds=1.23456,
            errors=[("dallas", "write failed")],
        )
        path = tmp_path / "summary.csv"
        export_job_summary(summary, path)
        df = pd.read_csv(path)
        assert len(df) == 2
        assert df.loc[0, "updated"] == 2
        assert df.loc[0, "elapsed_seconds"] == 1.235
        assert df.loc[1, "scope_id"] == "dallas"
        assert df.loc[1, "error"] == "write failed"
