"""Resumable, scope-by-scope rank recomputation."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from directory_rankings.ranking.orderer import SCORE_PRECISION, assign_ranks
from directory_rankings.ranking.progress import ProgressStore
from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.config import JobConfig
from directory_rankings.utils.errors import ConfigurationError, store_retry
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import (
    Checkpoint,
    JobSummary,
    Ranked,
    RankValue,
    Scope,
    ScopeKind,
)

logger = get_logger("ranking.job")

MODE_FRESH = "fresh"
MODE_RESUME = "resume"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class RankRecomputeJob:
    """Recompute and persist ranks for every scope of a kind.

    The job walks scopes in name order, writes a checkpoint after each
    completed scope and can be interrupted between scopes. A resumed run
    skips checkpointed scopes only while their stored ranks still cover the
    scope's current members.
    """

    def __init__(
        self,
        store: DirectoryStore,
        progress: ProgressStore,
        config: Optional[JobConfig] = None,
        precision: int = SCORE_PRECISION,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.progress = progress
        self.config = config or JobConfig()
        self.precision = precision
        self._sleep = sleep
        self._retry = store_retry(self.config.max_retries, self.config.retry_wait, logger)

    @staticmethod
    def job_key(kind: ScopeKind, category_id: Optional[str] = None) -> str:
        return f"{kind.value}-rankings-{category_id or 'all'}"

    def run(
        self,
        kind: ScopeKind,
        category_id: Optional[str] = None,
        mode: str = MODE_FRESH,
        dry_run: bool = False,
        scope_id: Optional[str] = None,
    ) -> JobSummary:
        """Run the recompute over all matching scopes.

        Args:
            kind: Scope kind to rank within.
            category_id: Only rank profiles carrying this category.
            mode: "fresh" ignores and clears any checkpoint, "resume"
                continues from one.
            dry_run: Traverse and log without writing ranks or checkpoints.
            scope_id: Rerun a single scope. Checkpoints are not used.

        Returns:
            Summary counts for the run.

        Raises:
            ConfigurationError: Unknown mode, category or scope.
        """
        if mode not in (MODE_FRESH, MODE_RESUME):
            raise ConfigurationError(f"Unknown job mode '{mode}' (expected fresh or resume)")
        if category_id is not None and not self.store.has_category(category_id):
            raise ConfigurationError(f"Category '{category_id}' not found")

        start_time = time.time()
        key = self.job_key(kind, category_id)
        summary = JobSummary(job_key=key, dry_run=dry_run)

        scopes = self._select_scopes(kind, category_id, scope_id)
        summary.total = len(scopes)

        use_checkpoint = scope_id is None and not dry_run
        checkpoint = self._open_checkpoint(key, mode, dry_run) if scope_id is None else None
        resuming = mode == MODE_RESUME and checkpoint is not None and bool(checkpoint.completed_scopes)
        if checkpoint is None:
            checkpoint = Checkpoint(job_key=key, started_at=_now())

        logger.info(
            "Rankings update: kind=%s category=%s scopes=%d mode=%s dry_run=%s",
            kind.value,
            category_id or "*",
            len(scopes),
            mode,
            dry_run,
        )
        if resuming:
            logger.info("Resuming: %d scopes previously completed", len(checkpoint.completed_scopes))

        batch_size = max(1, int(self.config.batch_size))
        batches = [scopes[i:i + batch_size] for i in range(0, len(scopes), batch_size)]

        for batch_index, batch in enumerate(batches):
            logger.info("Processing batch %d of %d", batch_index + 1, len(batches))
            for scope_index, scope in enumerate(batch):
                summary.processed += 1
                completed = self._run_scope(scope, kind, category_id, dry_run, summary,
                                            checkpoint if resuming else None)
                if completed and use_checkpoint:
                    checkpoint.mark_completed(scope.scope_id, _now())
                    self._save_checkpoint(key, checkpoint)

                if scope_index < len(batch) - 1 and self.config.delay > 0:
                    self._sleep(self.config.delay)

            logger.info(
                "Progress: %d/%d scopes (%d errors)",
                summary.processed,
                summary.total,
                summary.errored,
            )
            if batch_index < len(batches) - 1 and self.config.batch_pause > 0:
                self._sleep(self.config.batch_pause)

        if use_checkpoint:
            if summary.errored == 0:
                self.progress.clear(key)
            else:
                logger.warning(
                    "Keeping checkpoint for %s: %d scopes failed and can be retried with resume",
                    key,
                    summary.errored,
                )

        summary.elapsed_seconds = time.time() - start_time
        logger.info(
            "Rankings update complete in %.2fs: processed=%d updated=%d skipped=%d errors=%d",
            summary.elapsed_seconds,
            summary.processed,
            summary.updated,
            summary.skipped,
            summary.errored,
        )
        return summary

    def recompute_scope(
        self,
        scope_id: str,
        kind: ScopeKind,
        category_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> Dict[str, RankValue]:
        """Recompute one scope's ranks and persist them unless dry_run.

        Returns:
            The new ranks keyed by profile id.
        """
        profile_ids = self._retry(self.store.list_profiles_in_scope)(scope_id, category_id)
        ranks, _ = self._compute(scope_id, profile_ids)
        if not dry_run:
            self._persist(scope_id, kind, category_id, profile_ids, ranks)
        return ranks

    # -- internals --------------------------------------------------------

    def _select_scopes(
        self, kind: ScopeKind, category_id: Optional[str], scope_id: Optional[str]
    ) -> List[Scope]:
        if scope_id is not None:
            scope = self.store.get_scope(scope_id)
            if scope is None:
                raise ConfigurationError(f"Scope '{scope_id}' not found")
            if scope.kind != kind:
                raise ConfigurationError(
                    f"Scope '{scope_id}' is a {scope.kind.value}, not a {kind.value}"
                )
            return [scope]
        scopes = self.store.list_scopes(kind, category_id)
        return sorted(scopes, key=lambda s: (s.name, s.scope_id))

    def _open_checkpoint(self, key: str, mode: str, dry_run: bool) -> Optional[Checkpoint]:
        existing = self.progress.load(key)
        if existing is None:
            return None
        if mode == MODE_FRESH:
            if not dry_run:
                logger.info("Clearing existing checkpoint for %s (fresh run)", key)
                self.progress.clear(key)
            return None
        return existing

    def _save_checkpoint(self, key: str, checkpoint: Checkpoint) -> None:
        try:
            self.progress.save(key, checkpoint)
        except OSError as e:
            logger.warning("Could not save progress for %s, resume unavailable: %s", key, e)

    def _run_scope(
        self,
        scope: Scope,
        kind: ScopeKind,
        category_id: Optional[str],
        dry_run: bool,
        summary: JobSummary,
        checkpoint: Optional[Checkpoint],
    ) -> bool:
        """Process one scope, catching any failure at the scope boundary.

        Returns:
            True when the scope is complete (updated or legitimately skipped).
        """
        scope_start = time.time()
        try:
            profile_ids = self._retry(self.store.list_profiles_in_scope)(scope.scope_id, category_id)

            if checkpoint is not None and checkpoint.is_completed(scope.scope_id):
                if self._ranks_consistent(scope.scope_id, kind, profile_ids, category_id):
                    logger.debug("Skipping %s: completed in previous run", scope.name)
                    summary.skipped += 1
                    return True
                logger.info("Recomputing %s: membership changed since previous run", scope.name)

            if not profile_ids:
                logger.info("%s: no profiles, clearing stale ranks", scope.name)
                if not dry_run:
                    self._persist(scope.scope_id, kind, category_id, profile_ids, {})
                summary.skipped += 1
                return True

            ranks, missing = self._compute(scope.scope_id, profile_ids)
            summary.missing_profiles += missing
            ranked = sum(1 for r in ranks.values() if isinstance(r, Ranked))

            if dry_run:
                logger.info(
                    "[dry-run] %s (%d profiles): would write %d ranked, %d unranked",
                    scope.name,
                    len(ranks),
                    ranked,
                    len(ranks) - ranked,
                )
                return True

            self._persist(scope.scope_id, kind, category_id, profile_ids, ranks)
            summary.updated += 1
            logger.info(
                "%s (%d profiles): %d ranked in %.2fs",
                scope.name,
                len(ranks),
                ranked,
                time.time() - scope_start,
            )
            return True
        except Exception as e:
            summary.errored += 1
            summary.errors.append((scope.scope_id, str(e)))
            logger.warning("Failed to update %s (%s): %s", scope.name, scope.scope_id, e)
            return False

    def _compute(self, scope_id: str, profile_ids: List[str]):
        metrics = self._retry(self.store.get_profile_metrics)(profile_ids)
        missing = [pid for pid in profile_ids if pid not in metrics]
        if missing:
            logger.warning(
                "Scope %s: %d profiles no longer exist and are left out: %s",
                scope_id,
                len(missing),
                ", ".join(missing[:10]),
            )
        return assign_ranks(metrics, self.precision), len(missing)

    def _persist(
        self,
        scope_id: str,
        kind: ScopeKind,
        category_id: Optional[str],
        profile_ids: List[str],
        ranks: Dict[str, RankValue],
    ) -> None:
        replace = self._retry(self.store.replace_rank_values)
        if category_id is None:
            replace(scope_id, kind, ranks)
            return
        # Only this category's rows and rows of departed members are replaced
        members = set(self._retry(self.store.list_profiles_in_scope)(scope_id, None))
        stored = self._retry(self.store.get_rank_values)(scope_id, kind)
        departed = [pid for pid in stored if pid not in members]
        replace(scope_id, kind, ranks, list(profile_ids) + departed)

    def _ranks_consistent(
        self,
        scope_id: str,
        kind: ScopeKind,
        profile_ids: List[str],
        category_id: Optional[str],
    ) -> bool:
        stored = self._retry(self.store.get_rank_values)(scope_id, kind)
        if category_id is None:
            return set(stored) == set(profile_ids)
        return all(pid in stored for pid in profile_ids)
