"""Tests for scout.services.selection: generative pick-and-order."""

import json
from unittest.mock import MagicMock

import pytest

from scout.core.models import Candidate, Item, SelectionPick
from scout.services.selection import (
    FALLBACK_REASON,
    Reranker,
    apply_picks,
    rank_by_similarity,
    result_limit,
)


def _candidates(n: int = 5) -> list[Candidate]:
    # Retrieval order is deliberately not similarity order
    distances = [0.30, 0.10, 0.50, 0.10, 0.20, 0.40, 0.60, 0.70, 0.80, 0.90] * 3
    return [
        Candidate(item=Item(item_id=str(i), name=f"Game {i}"), distance=distances[i])
        for i in range(n)
    ]


def _reranker(payload=None, text=None, error=None) -> Reranker:
    client = MagicMock()
    if error is not None:
        client.generate.side_effect = error
    else:
        client.generate.return_value = (text if text is not None else json.dumps(payload), 200)
    return Reranker(client)


def _ids(results):
    return [r.candidate.item_id for r in results]


class TestResultLimit:
    @pytest.mark.parametrize(
        "requested,expected", [(None, 15), (0, 15), (5, 5), (15, 15), (40, 15)]
    )
    def test_capped(self, requested, expected):
        assert result_limit(requested) == expected


class TestRankBySimilarity:
    def test_order_and_ties(self):
        results = rank_by_similarity(_candidates(5), limit=3)
        assert _ids(results) == ["1", "3", "4"]
        assert [r.rank for r in results] == [1, 2, 3]
        assert all(r.reason == FALLBACK_REASON for r in results)


class TestApplyPicks:
    def test_unknown_and_duplicate_ids_dropped(self):
        picks = [
            SelectionPick("2", "Great fit"),
            SelectionPick("999", "Hallucinated"),
            SelectionPick("2", "Again"),
            SelectionPick("0", ""),
        ]
        results = apply_picks(picks, _candidates(5), limit=10)
        assert _ids(results) == ["2", "0"]
        assert [r.rank for r in results] == [1, 2]
        assert results[0].reason == "Great fit"
        assert results[1].reason == FALLBACK_REASON

    def test_respects_limit(self):
        picks = [SelectionPick(str(i), "x") for i in range(5)]
        assert len(apply_picks(picks, _candidates(5), limit=2)) == 2


class TestReranker:
    def test_model_order_is_final(self):
        reranker = _reranker({"results": [{"appId": "4", "reason": "a"}, {"appId": "2", "reason": "b"}]})
        results = reranker.select("roguelikes", _candidates(5), 10)
        assert _ids(results) == ["4", "2"]

    def test_empty_selection_is_respected(self):
        assert _reranker({"results": []}).select("q", _candidates(5), 10) == []

    def test_no_candidates_skips_model(self):
        client = MagicMock()
        assert Reranker(client).select("q", [], 10) == []
        client.generate.assert_not_called()

    @pytest.mark.parametrize("n,limit", [(5, 10), (5, 3), (30, 20), (30, None)])
    def test_parse_failure_returns_similarity_order(self, n, limit):
        candidates = _candidates(n)
        results = _reranker(text="here are some games!").select("q", candidates, limit)
        assert len(results) == min(result_limit(limit), n)
        sims = [r.candidate.similarity for r in results]
        assert sims == sorted(sims, reverse=True)
        assert all(r.reason == FALLBACK_REASON for r in results)

    def test_llm_error_falls_back(self):
        results = _reranker(error=ConnectionError("reset")).select("q", _candidates(5), 2)
        assert _ids(results) == ["1", "3"]

    def test_never_exceeds_cap(self):
        picks = [{"appId": str(i), "reason": "x"} for i in range(30)]
        results = _reranker({"results": picks}).select("q", _candidates(30), 100)
        assert len(results) == 15

    def test_results_subset_of_candidates(self):
        candidates = _candidates(5)
        picks = [{"appId": "7"}, {"appId": "3"}, {"appId": "abc"}]
        results = _reranker({"games": picks}).select("q", candidates, 10)
        assert set(_ids(results)) <= {c.item_id for c in candidates}
        assert _ids(results) == ["3"]

    def test_prompt_lists_candidates(self):
        reranker = _reranker({"results": []})
        reranker.select("co-op shooters", _candidates(3), 5)
        system, user = reranker.client.generate.call_args.args[:2]
        assert "UP TO 5" in system
        assert "co-op shooters" in user
        assert "(ID: 2)" in user
