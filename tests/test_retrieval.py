"""Tests for scout.services.retrieval."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from scout.adapters.memory_index import InMemoryCorpusIndex
from scout.core.errors import ItemNotFoundError, RetrievalError
from scout.core.filters import SearchFilters
from scout.core.models import Candidate, Item
from scout.services.retrieval import CandidateRetriever

DIM = 3


def _index() -> InMemoryCorpusIndex:
    def item(item_id, vector, **kw):
        return Item(item_id, f"Game {item_id}", embedding=np.array(vector, dtype=np.float32), **kw)

    return InMemoryCorpusIndex(
        [
            item("a", [1, 0, 0], is_free=True, review_score=95),
            item("b", [0.9, 0.1, 0], review_score=70),
            item("c", [0.7, 0.3, 0], is_free=True, review_score=88),
            item("d", [0, 1, 0], review_score=99),
            Item("e", "Game e"),
        ],
        dim=DIM,
    )


QUERY = np.array([1, 0, 0], dtype=np.float32)


class TestRetrieve:
    def test_ascending_distance(self):
        candidates = CandidateRetriever(_index()).retrieve(QUERY, limit=4)
        assert [c.item_id for c in candidates] == ["a", "b", "c", "d"]
        distances = [c.distance for c in candidates]
        assert distances == sorted(distances)

    def test_exclusions_never_returned(self):
        candidates = CandidateRetriever(_index()).retrieve(QUERY, exclude={"a", "c"})
        assert [c.item_id for c in candidates] == ["b", "d"]

    def test_filters_applied(self):
        filters = SearchFilters(is_free=True, min_review_score=90)
        candidates = CandidateRetriever(_index()).retrieve(QUERY, filters=filters)
        assert [c.item_id for c in candidates] == ["a"]

    def test_default_limit(self):
        retriever = CandidateRetriever(_index(), candidate_limit=2)
        assert len(retriever.retrieve(QUERY)) == 2

    def test_drops_excluded_ids_the_index_returns(self):
        index = MagicMock()
        index.query.return_value = [
            Candidate(Item("x", "X"), 0.1),
            Candidate(Item("y", "Y"), 0.2),
        ]
        candidates = CandidateRetriever(index).retrieve(QUERY, exclude={"x"})
        assert [c.item_id for c in candidates] == ["y"]

    def test_index_failure_propagates(self):
        index = MagicMock()
        index.query.side_effect = RetrievalError("qdrant down")
        with pytest.raises(RetrievalError):
            CandidateRetriever(index).retrieve(QUERY)


class TestSimilarTo:
    def test_excludes_the_item_itself(self):
        item, candidates = CandidateRetriever(_index()).similar_to("a", limit=2)
        assert item.item_id == "a"
        assert [c.item_id for c in candidates] == ["b", "c"]

    @pytest.mark.parametrize("item_id", ["missing", "e"])
    def test_missing_or_unembedded(self, item_id):
        with pytest.raises(ItemNotFoundError):
            CandidateRetriever(_index()).similar_to(item_id)
