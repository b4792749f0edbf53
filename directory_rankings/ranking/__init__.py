"""Scoring, ordering and scope-by-scope rank recomputation."""

from directory_rankings.ranking.job import RankRecomputeJob
from directory_rankings.ranking.orderer import SCORE_PRECISION, assign_ranks
from directory_rankings.ranking.score import compute_score

__all__ = ["RankRecomputeJob", "SCORE_PRECISION", "assign_ranks", "compute_score"]
