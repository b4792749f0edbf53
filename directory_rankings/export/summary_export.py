"""CSV export for stored ranks, radius analysis results and job summaries."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import (
    JobSummary,
    RadiusResult,
    Ranked,
    ScopeKind,
)

logger = get_logger("export.summary")


def export_rank_values(
    store: DirectoryStore,
    kind: ScopeKind,
    path: str | Path,
    category_id: str | None = None,
) -> int:
    """Export stored ranks for every scope of a kind to CSV.

    Args:
        store: Directory store.
        kind: Scope kind whose ranks are exported.
        path: Output CSV file path.
        category_id: Only scopes holding profiles of this category.

    Returns:
        Number of rows written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = []
    for scope in sorted(store.list_scopes(kind, category_id), key=lambda s: (s.name, s.scope_id)):
        for profile_id, rank in store.get_rank_values(scope.scope_id, kind).items():
            rows.append(
                {
                    "scope_id": scope.scope_id,
                    "scope_name": scope.name,
                    "kind": kind.value,
                    "profile_id": profile_id,
                    "rank": rank.to_storage(),
                    "ranked": isinstance(rank, Ranked),
                }
            )

    df = pd.DataFrame(rows, columns=["scope_id", "scope_name", "kind", "profile_id", "rank", "ranked"])
    if not df.empty:
        df = df.sort_values(["scope_name", "scope_id", "rank", "profile_id"], kind="mergesort")
    df.to_csv(path, index=False)
    logger.info("Exported %d %s rank values to %s", len(df), kind.value, path)
    return len(df)


def export_radius_results(results: List[RadiusResult], path: str | Path) -> None:
    """Export radius analysis results to CSV.

    Args:
        results: Per-scope analysis results.
        path: Output CSV file path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = []
    for r in results:
        rows.append(
            {
                "scope_id": r.scope_id,
                "name": r.name,
                "direct_count": r.direct_count,
                "combined_count": r.combined_count,
                "radius": r.radius,
                "status": r.status.value,
                "radii_tested": " ".join(f"{x:g}" for x in r.radii_tested),
            }
        )

    df = pd.DataFrame(rows)
    df.to_csv(path, index=False)
    logger.info("Exported %d radius results to %s", len(rows), path)


def export_job_summary(summary: JobSummary, path: str | Path) -> None:
    """Export a recompute run summary, one row per failed scope plus a totals row."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = [
        {
            "job_key": summary.job_key,
            "scope_id": "",
            "total": summary.total,
            "processed": summary.processed,
            "updated": summary.updated,
            "skipped": summary.skipped,
            "errored": summary.errored,
            "missing_profiles": summary.missing_profiles,
            "dry_run": summary.dry_run,
            "elapsed_seconds": round(summary.elapsed_seconds, 3),
            "error": "",
        }
    ]
    for scope_id, message in summary.errors:
        rows.append({"job_key": summary.job_key, "scope_id": scope_id, "error": message})

    df = pd.DataFrame(rows)
    df.to_csv(path, index=False)
    logger.info("Exported job summary for %s to %s", summary.job_key, path)
