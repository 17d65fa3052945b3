"""Tests for scout.core.models: dataclass construction and methods."""

import numpy as np
import pytest

from scout.core.models import (
    Candidate,
    FeedbackType,
    FollowUpQuestion,
    Item,
    SearchOutcome,
    SearchType,
    SelectionResult,
)


class TestItem:
    def test_minimal_construction(self):
        item = Item(item_id="620", name="Portal 2")
        assert item.genres == []
        assert item.review_count is None
        assert item.is_free is False
        assert not item.has_embedding

    def test_payload_round_trip(self):
        item = Item(
            item_id="620",
            name="Portal 2",
            genres=["Puzzle"],
            review_score=98,
            review_count=400000,
            release_year=2011,
        )
        payload = item.to_payload()
        assert Item.from_payload(payload) == item

    def test_from_payload_coerces_id(self):
        assert Item.from_payload({"item_id": 620, "name": "Portal 2"}).item_id == "620"

    def test_document_text(self):
        item = Item(
            item_id="1",
            name="Hades",
            short_description="Defy the god of the dead",
            genres=["Action", "Indie"],
            tags=["Roguelike"],
        )
        assert item.document_text() == (
            "Hades. Defy the god of the dead. Genres: Action, Indie. Tags: Roguelike"
        )

    def test_view_uses_public_names(self):
        view = Item(item_id="1", name="Hades", embedding=np.ones(3)).to_view()
        assert view["appId"] == "1"
        assert "embedding" not in view
        assert {"reviewScore", "reviewCount", "releaseYear", "isFree"} <= view.keys()


class TestCandidate:
    @pytest.mark.parametrize(
        "distance,similarity", [(0.0, 1.0), (1.0, 0.5), (2.0, 0.0), (-0.1, 1.0), (2.5, 0.0)]
    )
    def test_similarity_bounds(self, distance, similarity):
        candidate = Candidate(item=Item("1", "X"), distance=distance)
        assert candidate.similarity == pytest.approx(similarity)

    def test_similarity_decreases_with_distance(self):
        sims = [Candidate(Item("1", "X"), d).similarity for d in (0.1, 0.4, 0.9, 1.5)]
        assert sims == sorted(sims, reverse=True)

    def test_view_includes_similarity(self):
        view = Candidate(Item("1", "X"), 0.5).to_view()
        assert view["similarity"] == pytest.approx(0.75)


class TestSelectionResult:
    def test_view(self):
        result = SelectionResult(Candidate(Item("1", "X"), 0.2), reason="Fits", rank=1)
        view = result.to_view()
        assert view["aiReason"] == "Fits"
        assert view["rank"] == 1
        assert view["appId"] == "1"


class TestSmallModels:
    def test_feedback_exclusion_types(self):
        assert FeedbackType.NOT_INTERESTED.excludes
        assert FeedbackType.HIDDEN.excludes
        assert not FeedbackType.LOVE.excludes

    def test_follow_up_to_dict(self):
        q = FollowUpQuestion("Solo or co-op?", ["Solo", "Co-op"])
        assert q.to_dict() == {"question": "Solo or co-op?", "suggestedAnswers": ["Solo", "Co-op"]}

    def test_outcome_count(self):
        outcome = SearchOutcome(SearchType.BASIC, "hades", [Item("1", "Hades")])
        assert outcome.count == 1
