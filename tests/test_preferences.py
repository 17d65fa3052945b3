"""Tests for scout.core.preferences: hybrid vectors and exclusions."""

import numpy as np
import pytest

from scout.core.errors import MissingPreferenceVectorError, ProfileNotFoundError
from scout.core.models import UserProfile
from scout.core.preferences import build_exclusions, compose_query_vector


def _profile(baseline=None, learned=None, owned=(), not_interested=()) -> UserProfile:
    def vec(v):
        return None if v is None else np.asarray(v, dtype=np.float32)

    return UserProfile(
        user_id="u1",
        baseline_vector=vec(baseline),
        learned_vector=vec(learned),
        owned_ids=set(owned),
        not_interested_ids=set(not_interested),
    )


class TestComposeQueryVector:
    def test_hybrid_is_normalized_blend(self):
        vector, hybrid = compose_query_vector(_profile([1, 0], [0, 1]))
        assert hybrid is True
        expected = np.array([0.6, 0.4]) / np.linalg.norm([0.6, 0.4])
        np.testing.assert_allclose(vector, expected, rtol=1e-5)
        assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)

    def test_baseline_only_used_as_is(self):
        vector, hybrid = compose_query_vector(_profile([3, 4]))
        assert hybrid is False
        np.testing.assert_array_equal(vector, [3, 4])

    def test_learned_only(self):
        vector, hybrid = compose_query_vector(_profile(None, [0, 2]))
        assert hybrid is True
        np.testing.assert_allclose(vector, [0, 1], atol=1e-6)

    def test_zero_learned_ignored(self):
        _, hybrid = compose_query_vector(_profile([1, 0], [0, 0]))
        assert hybrid is False

    def test_missing_vectors_raise(self):
        with pytest.raises(MissingPreferenceVectorError):
            compose_query_vector(_profile())

    def test_missing_vector_is_a_profile_error(self):
        assert issubclass(MissingPreferenceVectorError, ProfileNotFoundError)

    def test_shape_mismatch_raises(self):
        with pytest.raises(MissingPreferenceVectorError):
            compose_query_vector(_profile([1, 0, 0], [0, 1]))


class TestBuildExclusions:
    def test_union(self):
        profile = _profile(owned={"1", "2"}, not_interested={"3"})
        assert build_exclusions(profile, matched_item_id="4", extra=["5"]) == {"1", "2", "3", "4", "5"}

    def test_owned_optional(self):
        profile = _profile(owned={"1"}, not_interested={"3"})
        assert build_exclusions(profile, exclude_owned=False) == {"3"}

    def test_no_profile(self):
        assert build_exclusions(None, matched_item_id="9") == {"9"}
        assert build_exclusions() == set()
