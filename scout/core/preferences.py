"""
Preference vector composition for the personalized path.

The learned vector (maintained from feedback, out of scope here) is blended
with the baseline preference vector when present:

    hybrid = normalize(0.6 * baseline + 0.4 * learned)

Otherwise the baseline vector is used as is.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from scout.config import HYBRID_BASELINE_WEIGHT, HYBRID_LEARNED_WEIGHT
from scout.core.errors import MissingPreferenceVectorError
from scout.core.models import UserProfile
from scout.utils import normalize_vectors


def _usable(vector) -> bool:
    return vector is not None and np.size(vector) > 0 and bool(np.any(vector))


def compose_query_vector(
    profile: UserProfile,
    baseline_weight: float = HYBRID_BASELINE_WEIGHT,
    learned_weight: float = HYBRID_LEARNED_WEIGHT,
) -> tuple[np.ndarray, bool]:
    """
    Pick the vector a personalized query searches with.

    Args:
        profile: The user's stored profile.
        baseline_weight: Weight of the baseline vector in the hybrid.
        learned_weight: Weight of the learned vector in the hybrid.

    Returns:
        (vector, used_learned). ``used_learned`` is True when the learned
        vector contributed.

    Raises:
        MissingPreferenceVectorError: If neither vector is present.
    """
    baseline = profile.baseline_vector
    learned = profile.learned_vector

    if _usable(learned):
        learned = np.asarray(learned, dtype=np.float32)
        if not _usable(baseline):
            return normalize_vectors(learned), True
        baseline = np.asarray(baseline, dtype=np.float32)
        if baseline.shape != learned.shape:
            raise MissingPreferenceVectorError(
                f"baseline {baseline.shape} and learned {learned.shape} vectors differ in shape"
            )
        hybrid = baseline_weight * baseline + learned_weight * learned
        return normalize_vectors(hybrid), True

    if _usable(baseline):
        return np.asarray(baseline, dtype=np.float32), False

    raise MissingPreferenceVectorError(
        f"user {profile.user_id} has no preference vector; sync a library first"
    )


def build_exclusions(
    profile: UserProfile | None = None,
    matched_item_id: str | None = None,
    exclude_owned: bool = True,
    extra: Iterable[str] | None = None,
) -> set[str]:
    """
    Item ids to keep out of retrieval, recomputed for every request.

    owned (optional) ∪ not-interested/hidden ∪ self-matched item ∪ extra.
    """
    excluded: set[str] = set()
    if profile is not None:
        if exclude_owned:
            excluded.update(profile.owned_ids)
        excluded.update(profile.not_interested_ids)
    if matched_item_id:
        excluded.add(matched_item_id)
    if extra:
        excluded.update(extra)
    return excluded


__all__ = ["compose_query_vector", "build_exclusions"]
