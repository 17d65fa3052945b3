"""
Popularity-bias curve over a candidate list.

A score of 50 is neutral. Below 50 the list is biased toward "hidden gems"
(low review counts, unreviewed games kept up front); above 50 toward popular
games. The median-based thresholds are heuristic and kept as literal formulas:

    score < 50: threshold = median * (1 + (50 - score) / 50), keep count < threshold
    score > 50: threshold = median * ((score - 50) / 50),     keep count >= threshold

The median is the element at index n // 2 of the reviewed candidates sorted by
ascending review count.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from scout.config import NEUTRAL_POPULARITY, get_logger

if TYPE_CHECKING:
    from scout.core.models import Candidate

logger = get_logger(__name__)


def _has_reviews(candidate: Candidate) -> bool:
    return bool(candidate.review_count and candidate.review_count > 0)


def median_review_count(candidates: list[Candidate]) -> int | None:
    """Upper median of positive review counts, or None when no candidate has one."""
    counts = sorted(c.review_count for c in candidates if _has_reviews(c))
    if not counts:
        return None
    return counts[len(counts) // 2]


def popularity_threshold(median: float, popularity_score: float) -> float:
    """Review-count cut-off for a non-neutral popularity score."""
    if popularity_score < NEUTRAL_POPULARITY:
        return median * (1 + (NEUTRAL_POPULARITY - popularity_score) / NEUTRAL_POPULARITY)
    return median * ((popularity_score - NEUTRAL_POPULARITY) / NEUTRAL_POPULARITY)


def apply_popularity_curve(
    candidates: list[Candidate],
    popularity_score: float | None,
) -> list[Candidate]:
    """
    Filter and reorder candidates by popularity bias.

    Pure and total: never raises, never mutates its input.

    Args:
        candidates: Candidates in similarity order.
        popularity_score: 0-100, 50 neutral. None and non-finite values are
            treated as neutral; out-of-range values are clamped.

    Returns:
        A new list. Identity at 50, or when no candidate has a review count.
    """
    if popularity_score is None or not math.isfinite(popularity_score):
        return list(candidates)

    score = min(max(float(popularity_score), 0.0), 100.0)
    if score == NEUTRAL_POPULARITY:
        return list(candidates)

    median = median_review_count(candidates)
    if median is None:
        return list(candidates)

    threshold = popularity_threshold(median, score)
    reviewed = [c for c in candidates if _has_reviews(c)]

    if score < NEUTRAL_POPULARITY:
        unreviewed = [c for c in candidates if not _has_reviews(c)]
        gems = sorted(
            (c for c in reviewed if c.review_count < threshold),
            key=lambda c: c.review_count,
        )
        result = unreviewed + gems
    else:
        result = sorted(
            (c for c in reviewed if c.review_count >= threshold),
            key=lambda c: c.review_count,
            reverse=True,
        )

    logger.debug(
        "Popularity curve score=%.0f median=%d threshold=%.1f kept %d/%d",
        score,
        median,
        threshold,
        len(result),
        len(candidates),
    )
    return result


__all__ = [
    "apply_popularity_curve",
    "median_review_count",
    "popularity_threshold",
]
