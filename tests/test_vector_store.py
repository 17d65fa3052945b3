"""Tests for scout.adapters.vector_store against Qdrant's local in-process mode."""

import numpy as np
import pytest
from qdrant_client import QdrantClient
from qdrant_client.models import FieldCondition, MatchText, TokenizerType

import scout.adapters.vector_store as vector_store
from scout.adapters.vector_store import (
    QdrantCorpusIndex,
    create_collection,
    name_index_params,
    title_filter,
    upload_items,
)
from scout.core.errors import RetrievalError
from scout.core.filters import SearchFilters
from scout.core.models import Item

DIM = 4
COLLECTION = "scout_test"


def _item(item_id, name, vector, reviews, **kw) -> Item:
    embedding = None if vector is None else np.asarray(vector, dtype=np.float32)
    return Item(item_id=item_id, name=name, review_count=reviews, embedding=embedding, **kw)


def _items() -> list[Item]:
    return [
        _item("1145360", "Hades", [1, 0, 0, 0], 200000, genres=["Action"], is_free=False),
        _item("1145350", "Hades II", [0.9, 0.1, 0, 0], 60000, genres=["Action"]),
        _item("588650", "Dead Cells", [0.8, 0.2, 0, 0], 150000, genres=["Action", "Indie"]),
        _item("413150", "Stardew Valley", [0, 0, 1, 0], 500000, genres=["Simulation"]),
        _item("9", "Free Hades Tribute", [0.7, 0.3, 0, 0], 300, is_free=True),
        _item("10", "Unembedded Game", None, 5),
    ]


@pytest.fixture
def index():
    client = QdrantClient(":memory:")
    create_collection(client, collection_name=COLLECTION, dim=DIM)
    upload_items(client, _items(), collection_name=COLLECTION)
    return QdrantCorpusIndex(client=client, collection_name=COLLECTION, dim=DIM)


QUERY = np.array([1, 0, 0, 0], dtype=np.float32)


class TestTitleIndexConfig:
    def test_name_index_uses_prefix_tokens(self):
        params = name_index_params()
        assert params.tokenizer == TokenizerType.PREFIX
        assert params.lowercase is True

    def test_title_filter_matches_name_text(self):
        condition = title_filter("stard").must[0]
        assert isinstance(condition, FieldCondition)
        assert condition.key == "name"
        assert condition.match == MatchText(text="stard")


class TestQuery:
    def test_ascending_distance(self, index):
        candidates = index.query(QUERY, limit=3)
        assert [c.item_id for c in candidates] == ["1145360", "1145350", "588650"]
        assert candidates[0].distance == pytest.approx(0.0, abs=1e-5)
        distances = [c.distance for c in candidates]
        assert distances == sorted(distances)

    def test_exclusions_and_filters(self, index):
        spec = SearchFilters(genres=["Action"]).to_spec({"1145360"})
        candidates = index.query(QUERY, spec, limit=10)
        assert [c.item_id for c in candidates] == ["1145350", "588650"]

    def test_scalar_filter(self, index):
        spec = SearchFilters(is_free=True).to_spec()
        assert [c.item_id for c in index.query(QUERY, spec, limit=10)] == ["9"]

    def test_unembedded_items_not_uploaded(self, index):
        assert index.get("10") is None

    def test_dimension_mismatch(self, index):
        with pytest.raises(RetrievalError):
            index.query(np.ones(3, dtype=np.float32))


class TestLookups:
    def test_get_returns_vector(self, index):
        item = index.get("413150")
        assert item.name == "Stardew Valley"
        np.testing.assert_allclose(item.embedding, [0, 0, 1, 0], atol=1e-6)

    def test_get_missing(self, index):
        assert index.get("404") is None

    def test_find_by_name_prefers_exact_and_loads_vector(self, index):
        item = index.find_by_name("Hades")
        assert item.item_id == "1145360"
        assert item.has_embedding

    def test_search_titles_orders_by_reviews(self, index):
        assert [i.item_id for i in index.search_titles("Hades", 10)] == [
            "1145360",
            "1145350",
            "9",
        ]

    def test_title_scan_reads_every_page(self, index, monkeypatch):
        monkeypatch.setattr(vector_store, "NAME_SCAN_PAGE_SIZE", 1)
        assert len(index.search_titles("Hades", 10)) == 3
        assert index.find_by_name("Hades").item_id == "1145360"

    def test_client_failure_is_retrieval_error(self):
        client = QdrantClient(":memory:")
        index = QdrantCorpusIndex(client=client, collection_name="missing", dim=DIM)
        with pytest.raises(RetrievalError):
            index.search_titles("Hades", 5)
