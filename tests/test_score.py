"""Tests for the ranking score and rank ordering."""

from __future__ import annotations

import math
import random

import pytest

from directory_rankings.ranking.orderer import (
    SCORE_PRECISION,
    assign_ranks,
    order_profiles,
    profile_id_key,
    rank_profiles,
)
from directory_rankings.ranking.score import compute_score, score_metrics
from directory_rankings.utils.types import UNRANKED, UNRANKED_SENTINEL, ProfileMetrics, Ranked

# ---------------------------------------------------------------------------
# compute_score
# ---------------------------------------------------------------------------


class TestComputeScore:
    def test_formula(self):
        expected = 4.8 * 0.9 + min(1, math.log10(51) / 2) * 5 * 0.1
        assert compute_score(4.8, 50) == pytest.approx(expected)

    def test_review_credit_saturates(self):
        """Review credit is capped once log10(n+1)/2 reaches 1 (99 reviews)."""
        assert compute_score(4.0, 99) == pytest.approx(4.0 * 0.9 + 0.5)
        assert compute_score(4.0, 5000) == pytest.approx(4.0 * 0.9 + 0.5)

    def test_boost_added(self):
        assert compute_score(4.0, 10, boost=1.5) == pytest.approx(compute_score(4.0, 10) + 1.5)

    def test_negative_boost(self):
        assert compute_score(4.0, 10, boost=-0.5) == pytest.approx(compute_score(4.0, 10) - 0.5)

    def test_non_numeric_boost_ignored(self):
        assert compute_score(4.0, 10, boost="abc") == compute_score(4.0, 10)

    @pytest.mark.parametrize(
        "rating,reviews",
        [
            (None, 10),
            (4.5, None),
            ("4.5", 10),
            (4.5, "ten"),
            (True, 10),
            (0, 10),
            (4.5, 0),
            (float("nan"), 10),
        ],
    )
    def test_unscored(self, rating, reviews):
        assert compute_score(rating, reviews) is None

    def test_score_metrics(self):
        metrics = ProfileMetrics(rating=4.8, review_count=12, boost=0.0)
        assert score_metrics(metrics) == compute_score(4.8, 12)

    def test_score_metrics_missing(self):
        assert score_metrics(ProfileMetrics()) is None


# ---------------------------------------------------------------------------
# Ordering and rank assignment
# ---------------------------------------------------------------------------


class TestRankOrdering:
    def test_rating_vs_volume_example(self):
        """4.8/50 beats 4.8/12, which beats 5.0/1."""
        metrics = {
            "A": ProfileMetrics(4.8, 50),
            "B": ProfileMetrics(4.8, 12),
            "C": ProfileMetrics(5.0, 1),
        }
        ranks = assign_ranks(metrics)
        assert ranks == {"A": Ranked(1), "B": Ranked(2), "C": Ranked(3)}

    def test_unscored_gets_sentinel(self):
        ranks = assign_ranks({"1": ProfileMetrics(4.0, 3), "2": ProfileMetrics()})
        assert ranks["1"] == Ranked(1)
        assert ranks["2"] is UNRANKED
        assert ranks["2"].to_storage() == UNRANKED_SENTINEL

    def test_boosted_tie_falls_back_to_id(self):
        """A boost that exactly closes the gap produces a score tie."""
        base = compute_score(4.0, 10)
        low_rating_boost = base - compute_score(3.0, 10)
        metrics = {
            "1": ProfileMetrics(4.0, 10),
            "2": ProfileMetrics(3.0, 10, boost=low_rating_boost),
        }
        assert compute_score(3.0, 10, low_rating_boost) == pytest.approx(base)
        ranks = assign_ranks(metrics)
        # Same score and same review count: id decides
        assert ranks == {"1": Ranked(1), "2": Ranked(2)}

    def test_tie_broken_by_reviews_then_id(self):
        entries = [("20", 4.0, 5), ("10", 4.0, 5), ("30", 4.0, 9)]
        assert order_profiles(entries) == ["30", "10", "20"]

    def test_numeric_ids_compare_numerically(self):
        entries = [("10", 4.0, 5), ("9", 4.0, 5)]
        assert order_profiles(entries) == ["9", "10"]

    def test_float_noise_below_precision_is_a_tie(self):
        noise = 10 ** -(SCORE_PRECISION + 3)
        entries = [("1", 4.2, 5), ("2", 4.2 + noise, 5)]
        assert order_profiles(entries) == ["1", "2"]

    def test_ranks_are_contiguous_permutation(self):
        rng = random.Random(7)
        metrics = {
            str(i): ProfileMetrics(round(rng.uniform(1, 5), 1), rng.randint(0, 200))
            for i in range(1, 60)
        }
        ranks = assign_ranks(metrics)
        positions = sorted(r.position for r in ranks.values() if isinstance(r, Ranked))
        assert positions == list(range(1, len(positions) + 1))
        scored = sum(1 for m in metrics.values() if score_metrics(m) is not None)
        assert len(positions) == scored

    def test_input_order_does_not_matter(self):
        entries = [(str(i), 4.0 + (i % 5) * 0.1, i % 7) for i in range(1, 40)]
        expected = rank_profiles(entries)
        shuffled = list(entries)
        random.Random(3).shuffle(shuffled)
        assert rank_profiles(shuffled) == expected

    def test_ranked_always_before_unranked(self):
        ranks = rank_profiles([("1", None, 0), ("2", 0.1, 1)])
        assert ranks["2"].to_storage() < ranks["1"].to_storage()

    def test_empty(self):
        assert rank_profiles([]) == {}


class TestProfileIdKey:
    def test_numeric_before_text(self):
        assert sorted(["b", "10", "a", "2"], key=profile_id_key) == ["2", "10", "a", "b"]

    def test_non_ascii_digits_sort_as_text(self):
        assert sorted(["²", "3", "1"], key=profile_id_key) == ["1", "3", "²"]
