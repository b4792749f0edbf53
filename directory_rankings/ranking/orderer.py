"""Deterministic ordering and rank assignment."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from directory_rankings.ranking.score import score_metrics
from directory_rankings.utils.types import UNRANKED, ProfileMetrics, Ranked, RankValue

# Scores are compared after rounding to this many decimal places, so float
# noise below it cannot reorder profiles between runs.
SCORE_PRECISION = 8

RankInput = Tuple[str, Optional[float], Optional[int]]


def profile_id_key(profile_id) -> tuple:
    """Sort key that orders integer-like ids numerically, others lexically."""
    text = str(profile_id)
    if text.isascii() and text.isdigit():
        return (0, int(text), text)
    return (1, 0, text)


def score_key(score: float, precision: int = SCORE_PRECISION) -> float:
    return round(score, precision)


def order_profiles(entries: Iterable[RankInput], precision: int = SCORE_PRECISION) -> List[str]:
    """Order scored profiles best to worst.

    Keys: score descending (rounded to ``precision``), review count
    descending, profile id ascending. Unscored entries are dropped.

    Returns:
        Profile ids of scored entries in rank order.
    """
    scored = [
        (profile_id, score, review_count or 0)
        for profile_id, score, review_count in entries
        if score is not None
    ]
    scored.sort(
        key=lambda e: (-score_key(e[1], precision), -e[2], profile_id_key(e[0]))
    )
    return [profile_id for profile_id, _, _ in scored]


def rank_profiles(entries: Iterable[RankInput], precision: int = SCORE_PRECISION) -> Dict[str, RankValue]:
    """Assign ranks 1..K to scored profiles and UNRANKED to the rest.

    Args:
        entries: (profile_id, score or None, review_count) triples.
        precision: Decimal places used when comparing scores.

    Returns:
        Mapping of profile id to RankValue.
    """
    entries = list(entries)
    ranks: Dict[str, RankValue] = {}
    for profile_id, score, _ in entries:
        if score is None:
            ranks[profile_id] = UNRANKED
    for position, profile_id in enumerate(order_profiles(entries, precision), start=1):
        ranks[profile_id] = Ranked(position)
    return ranks


def assign_ranks(
    metrics_by_id: Mapping[str, ProfileMetrics],
    precision: int = SCORE_PRECISION,
) -> Dict[str, RankValue]:
    """Score and rank a scope's profiles in one step."""
    entries = [
        (profile_id, score_metrics(metrics), metrics.review_count)
        for profile_id, metrics in metrics_by_id.items()
    ]
    return rank_profiles(entries, precision)
