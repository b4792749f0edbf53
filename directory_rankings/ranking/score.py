"""Composite ranking score from rating signals."""

from __future__ import annotations

import math
from numbers import Real
from typing import Optional

from directory_rankings.utils.types import ProfileMetrics

RATING_WEIGHT = 0.9
REVIEW_WEIGHT = 0.1
RATING_SCALE = 5.0


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def compute_score(rating, review_count, boost: float = 0.0) -> Optional[float]:
    """Score a profile from its rating, review count and manual boost.

    Rating carries 90% of the weight. Review volume adds log-scaled credit
    that saturates at roughly 100 reviews. Boost is added as-is.

    Args:
        rating: Average rating on a 0-5 scale.
        review_count: Number of reviews.
        boost: Signed manual adjustment.

    Returns:
        The score, or None when the profile cannot be scored (rating or
        review count missing, non-numeric, or zero).
    """
    if not _is_number(rating) or not _is_number(review_count):
        return None
    if rating == 0 or review_count <= 0:
        return None
    if not _is_number(boost):
        boost = 0.0

    rating_component = rating * RATING_WEIGHT
    review_credit = min(1.0, math.log10(int(review_count) + 1) / 2)
    review_component = review_credit * RATING_SCALE * REVIEW_WEIGHT
    return rating_component + review_component + boost


def score_metrics(metrics: ProfileMetrics) -> Optional[float]:
    """Score a ProfileMetrics value."""
    return compute_score(metrics.rating, metrics.review_count, metrics.boost)
