"""Tests for scout.api routes and middleware.

Uses a test app with an in-memory corpus and a mocked LLM to avoid loading
models or reaching Qdrant.
"""

import asyncio
import json
from unittest.mock import MagicMock

import numpy as np
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from scout.adapters.memory_index import InMemoryCorpusIndex
from scout.adapters.profile_store import SQLiteProfileStore
from scout.api.middleware import (
    LatencyMiddleware,
    _normalize_path,
    get_shutdown_coordinator,
    reset_shutdown_coordinator,
)
from scout.api.routes import router
from scout.core.errors import RetrievalError
from scout.core.models import Item
from scout.services.search import build_engine

DIM = 4

HADES_INTENT = {
    "type": "specific_game",
    "gameName": "Hades",
    "searchDescription": "fast action roguelike",
    "confidence": 90,
    "followUpQuestions": [],
}


def _index() -> InMemoryCorpusIndex:
    def item(item_id, name, vector, reviews):
        return Item(
            item_id, name, review_count=reviews, embedding=np.asarray(vector, dtype=np.float32)
        )

    return InMemoryCorpusIndex(
        [
            item("1145360", "Hades", [1, 0, 0, 0], 200000),
            item("588650", "Dead Cells", [0.9, 0.1, 0, 0], 150000),
            item("632360", "Risk of Rain 2", [0.8, 0.2, 0, 0], 250000),
            item("413150", "Stardew Valley", [0, 0, 1, 0], 500000),
        ],
        dim=DIM,
    )


def _llm(intent=None, picks=None) -> MagicMock:
    intent = intent or HADES_INTENT

    def generate(system, user, max_tokens=None, json_mode=False):
        if system.startswith("Analyze this game search query"):
            return json.dumps(intent), 100
        if system.startswith("You are a game expert"):
            return "UNKNOWN", 5
        return json.dumps({"results": picks or []}), 100

    client = MagicMock()
    client.generate.side_effect = generate
    return client


def _make_app(tmp_path=None, **state_overrides) -> FastAPI:
    """Create a test app with an in-memory engine in app.state."""
    reset_shutdown_coordinator()
    app = FastAPI()
    app.add_middleware(LatencyMiddleware)
    app.include_router(router)

    index = state_overrides.get("index", _index())
    embedder = MagicMock()
    embedder.dim = DIM
    embedder.embed.return_value = np.array([0, 0, 1, 0], dtype=np.float32)
    profiles = SQLiteProfileStore(tmp_path / "p.db") if tmp_path else None
    llm = state_overrides.get("llm", _llm())

    app.state.llm = llm
    app.state.embedder = state_overrides.get("embedder", embedder)
    app.state.index = index
    app.state.profiles = profiles
    app.state.engine = state_overrides.get(
        "engine", build_engine(llm, embedder, index, profiles)
    )
    return app


@pytest.fixture
def client():
    """Test client with default in-memory state."""
    return TestClient(_make_app())


class TestSearchEndpoint:
    def test_missing_query_is_400(self, client):
        resp = client.post("/search", json={})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": 'Query parameter "q" is required'}

    def test_invalid_type_is_400(self, client):
        resp = client.post("/search", json={"query": "hades", "searchType": "fuzzy"})
        assert resp.status_code == 400
        assert "Invalid search type" in resp.json()["error"]

    def test_over_long_query_is_400(self, client):
        resp = client.post("/search", json={"query": "x" * 501})
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Query must be at most 500 characters",
        }

    def test_non_finite_popularity_rejected(self, client):
        resp = client.post(
            "/search",
            content='{"query": "games like Hades", "popularityScore": NaN}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 422

    def test_out_of_range_popularity_clamped(self, client):
        resp = client.post(
            "/search",
            json={"query": "games like Hades", "searchType": "ai", "popularityScore": 250},
        )
        assert resp.status_code == 200

    def test_basic(self, client):
        resp = client.post("/search", json={"q": "hades", "searchType": "basic"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["type"] == "basic"
        assert data["count"] == 1
        assert data["games"][0]["appId"] == "1145360"
        assert "analysis" not in data

    def test_semantic(self, client):
        resp = client.post(
            "/search", json={"query": "cozy farming", "searchType": "semantic", "limit": 1}
        )
        data = resp.json()
        assert data["games"][0]["name"] == "Stardew Valley"
        assert 0.0 <= data["games"][0]["similarity"] <= 1.0

    def test_ai_response_shape(self):
        picks = [{"appId": "588650", "reason": "Same fast combat loop."}]
        client = TestClient(_make_app(llm=_llm(picks=picks)))
        data = client.post("/search", json={"query": "games like Hades"}).json()

        assert data["success"] is True
        assert data["type"] == "ai"
        assert data["games"][0]["aiReason"] == "Same fast combat loop."
        assert data["games"][0]["rank"] == 1
        assert data["analysis"]["matchedInDb"] == {"appId": "1145360", "name": "Hades"}
        assert data["analysis"]["type"] == "specific_game"

        convo = data["conversation"]
        assert convo["round"] == 1
        assert convo["maxRounds"] == 3
        assert convo["canRefine"] is True
        assert len(convo["followUpQuestions"]) == 3
        assert convo["context"]["originalQuery"] == "games like Hades"

    def test_ai_never_returns_matched_game(self):
        picks = [{"appId": "1145360", "reason": "x"}, {"appId": "632360", "reason": "y"}]
        client = TestClient(_make_app(llm=_llm(picks=picks)))
        data = client.post("/search", json={"query": "games like Hades"}).json()
        assert [g["appId"] for g in data["games"]] == ["632360"]

    def test_refinement_rounds_close(self, client):
        first = client.post("/search", json={"query": "games like Hades"}).json()
        context = first["conversation"]["context"]
        for answer in ("Solo", "Short"):
            data = client.post(
                "/search",
                json={"query": "games like Hades", "conversationContext": context, "refinement": answer},
            ).json()
            context = data["conversation"]["context"]
        assert data["conversation"]["round"] == 3
        assert data["conversation"]["canRefine"] is False
        assert data["conversation"]["followUpQuestions"] == []

    def test_garbage_context_starts_fresh(self, client):
        data = client.post(
            "/search",
            json={"query": "games like Hades", "conversationContext": "{{{", "refinement": "x"},
        ).json()
        assert data["conversation"]["round"] == 1

    def test_unexpected_error_is_500(self):
        engine = MagicMock()
        engine.search.side_effect = ValueError("boom")
        client = TestClient(_make_app(engine=engine))
        resp = client.post("/search", json={"query": "hades"})
        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "error": "Failed to perform search",
            "details": "boom",
        }

    def test_retrieval_error_status(self):
        engine = MagicMock()
        engine.search.side_effect = RetrievalError("qdrant down", stage="retrieval")
        client = TestClient(_make_app(engine=engine))
        resp = client.post("/search", json={"query": "hades"})
        assert resp.status_code == 503
        assert resp.json()["details"] == "qdrant down"


class TestRecommendEndpoint:
    def test_recommendations(self, tmp_path):
        app = _make_app(tmp_path)
        app.state.profiles.save_vectors("u1", baseline_vector=[1, 0, 0, 0])
        app.state.profiles.set_owned("u1", ["1145360"])
        data = TestClient(app).post("/recommend", json={"userId": "u1", "limit": 2}).json()
        assert data["success"] is True
        assert data["usingHybridVector"] is False
        assert data["gamesExcluded"] == 1
        assert [g["appId"] for g in data["recommendations"]] == ["588650", "632360"]

    def test_non_finite_popularity_rejected(self, tmp_path):
        resp = TestClient(_make_app(tmp_path)).post(
            "/recommend",
            content='{"userId": "u1", "popularityScore": Infinity}',
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 422

    def test_unknown_user_is_404(self, tmp_path):
        resp = TestClient(_make_app(tmp_path)).post("/recommend", json={"userId": "ghost"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "User profile not found"

    def test_missing_user_is_400(self, tmp_path):
        resp = TestClient(_make_app(tmp_path)).post("/recommend", json={})
        assert resp.status_code == 400


class TestSimilarEndpoint:
    def test_similar(self, client):
        data = client.get("/games/1145360/similar?limit=2").json()
        assert data["game"]["name"] == "Hades"
        assert [g["appId"] for g in data["similar"]] == ["588650", "632360"]

    def test_unknown_game_is_404(self, client):
        resp = client.get("/games/404/similar")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Game not found"


class TestHealthEndpoints:
    def test_healthy(self, client):
        data = client.get("/health").json()
        assert data == {"status": "healthy", "index_ready": True, "llm_configured": True}

    def test_unhealthy_when_index_fails(self):
        index = MagicMock()
        index.get.side_effect = RetrievalError("down")
        data = TestClient(_make_app(index=index)).get("/health").json()
        assert data["status"] == "unhealthy"

    def test_ready(self, client):
        resp = client.get("/ready")
        assert resp.status_code == 200
        assert resp.json()["ready"] is True

    def test_not_ready_without_engine(self):
        app = _make_app()
        app.state.engine = None
        resp = TestClient(app).get("/ready")
        assert resp.status_code == 503
        assert resp.json()["components"]["engine"] is False

    def test_metrics(self, client):
        client.get("/health")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "scout_requests_total" in resp.text


class TestMiddleware:
    def test_headers_added(self, client):
        resp = client.get("/health")
        assert "x-response-time-ms" in resp.headers
        assert resp.headers["x-request-id"]

    def test_incoming_request_id_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-Id": "abc123"})
        assert resp.headers["x-request-id"] == "abc123"

    @pytest.mark.parametrize(
        "path,label",
        [
            ("/search", "/search"),
            ("/search/", "/search"),
            ("/games/620/similar", "/games/{item_id}/similar"),
            ("/admin", "unknown"),
        ],
    )
    def test_route_labels(self, path, label):
        assert _normalize_path(path) == label

    def test_draining_rejects_new_work(self):
        app = _make_app()
        assert asyncio.run(get_shutdown_coordinator().drain(timeout=0.1)) is True
        client = TestClient(app)
        resp = client.post("/search", json={"query": "hades"})
        assert resp.status_code == 503
        assert resp.headers["retry-after"] == "5"
        assert client.get("/health").status_code == 200
