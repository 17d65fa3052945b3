"""
API route definitions.

Endpoints:
    GET  /                          Redirect to Swagger UI
    GET  /health                    Liveness and component status
    GET  /ready                     Readiness probe (503 until serving)
    POST /search                    basic, semantic or conversational ai search
    POST /recommend                 Personalized recommendations for a user
    GET  /games/{item_id}/similar   Nearest neighbours of a game
    GET  /metrics                   Prometheus metrics
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from scout.api.metrics import metrics_response, record_error
from scout.config import (
    MAX_SEARCH_LIMIT,
    REQUEST_TIMEOUT_SECONDS,
    SIMILAR_ITEMS_LIMIT,
    get_logger,
)
from scout.core import conversation
from scout.core.errors import ScoutError, SearchCancelled
from scout.core.filters import SearchFilters
from scout.core.models import RecommendationOutcome, SearchOutcome, SearchType
from scout.utils import CancellationToken

# How often the disconnect watcher polls the client connection
DISCONNECT_POLL_SECONDS = 0.5

logger = get_logger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Root redirect
# ---------------------------------------------------------------------------


@router.get("/", include_in_schema=False)
async def root():
    """Redirect root to Swagger UI."""
    return RedirectResponse(url="/docs")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RequestFilters(BaseModel):
    """Optional metadata filters shared by search and recommendation requests."""

    model_config = ConfigDict(populate_by_name=True)

    min_review_score: float | None = Field(
        None, ge=0, le=100, alias="minReviewScore", description="Minimum % positive"
    )
    min_review_count: int | None = Field(None, ge=0, alias="minReviewCount")
    max_review_count: int | None = Field(None, ge=0, alias="maxReviewCount")
    release_year_min: int | None = Field(None, alias="releaseYearMin")
    release_year_max: int | None = Field(None, alias="releaseYearMax")
    is_free: bool | None = Field(None, alias="isFree")
    genres: list[str] = Field(default_factory=list, description="Match any of these genres")

    def to_search_filters(self) -> SearchFilters:
        return SearchFilters(
            min_review_score=self.min_review_score,
            min_review_count=self.min_review_count,
            max_review_count=self.max_review_count,
            release_year_min=self.release_year_min,
            release_year_max=self.release_year_max,
            is_free=self.is_free,
            genres=list(self.genres),
        )


class SearchRequest(BaseModel):
    """Request body for /search."""

    model_config = ConfigDict(populate_by_name=True)

    # Presence and length are checked by the engine so they surface as a 400
    query: str | None = Field(
        None,
        validation_alias=AliasChoices("query", "q"),
        description="Natural language search query",
    )
    search_type: str = Field("ai", alias="searchType", description="basic, semantic or ai")
    limit: int | None = Field(None, ge=1, le=MAX_SEARCH_LIMIT)
    user_id: str | None = Field(None, alias="userId")
    # Untrusted continuation token; validated by the conversation module
    conversation_context: Any = Field(None, alias="conversationContext")
    refinement: str | None = None
    filters: RequestFilters | None = None
    # Out-of-range scores are clamped by the curve; NaN and infinity are rejected
    popularity_score: float | None = Field(None, allow_inf_nan=False, alias="popularityScore")


class RecommendRequest(BaseModel):
    """Request body for /recommend."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    limit: int | None = Field(None, ge=1)
    exclude_owned: bool = Field(True, alias="excludeOwned")
    filters: RequestFilters | None = None
    popularity_score: float | None = Field(None, allow_inf_nan=False, alias="popularityScore")


class HealthResponse(BaseModel):
    """Health check response with component status."""

    status: str
    index_ready: bool
    llm_configured: bool


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def _analysis_view(outcome: SearchOutcome) -> dict | None:
    analysis = outcome.analysis
    if analysis is None:
        return None
    matched = outcome.resolved.matched_item if outcome.resolved else None
    return {
        "type": analysis.type.value,
        "gameName": analysis.game_name,
        "matchedInDb": {"appId": matched.item_id, "name": matched.name} if matched else None,
        "searchDescription": analysis.search_description,
        "confidence": analysis.confidence,
    }


def _conversation_view(outcome: SearchOutcome) -> dict | None:
    state = outcome.state
    if state is None:
        return None
    # CLOSED conversations surface no further questions
    questions = outcome.analysis.follow_up_questions if state.can_refine else []
    return {
        "round": state.round,
        "maxRounds": state.max_rounds,
        "canRefine": state.can_refine,
        "followUpQuestions": [q.to_dict() for q in questions],
        "context": conversation.to_token(state),
    }


def build_search_response(outcome: SearchOutcome) -> dict:
    """Render a SearchOutcome as the public JSON body."""
    body = {
        "success": True,
        "type": outcome.search_type.value,
        "query": outcome.query,
        "count": outcome.count,
        "games": [r.to_view() for r in outcome.results],
    }
    if outcome.search_type == SearchType.AI:
        body["analysis"] = _analysis_view(outcome)
        body["conversation"] = _conversation_view(outcome)
    return body


def build_recommend_response(outcome: RecommendationOutcome) -> dict:
    return {
        "success": True,
        "userId": outcome.user_id,
        "usingHybridVector": outcome.using_hybrid_vector,
        "gamesExcluded": outcome.excluded_count,
        "count": outcome.count,
        "recommendations": [c.to_view() for c in outcome.results],
    }


def _error_response(status_code: int, content: dict) -> JSONResponse:
    """Build a standardized JSON error response."""
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# Pipeline execution
# ---------------------------------------------------------------------------


async def _watch_disconnect(request: Request, cancel: CancellationToken) -> None:
    while not cancel.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling request")
            cancel.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def _run_cancellable(request: Request, fn: Callable[..., Any], **kwargs) -> Any:
    """Run a blocking pipeline call in a worker thread.

    The worker gets a CancellationToken that is set on timeout or client
    disconnect; the pipeline stops at its next stage boundary.
    """
    cancel = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(fn, cancel=cancel, **kwargs),
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        cancel.cancel()
        raise
    finally:
        watcher.cancel()


async def _handle(request: Request, label: str, fn: Callable[..., Any], **kwargs):
    """Shared error mapping for pipeline endpoints."""
    try:
        return await _run_cancellable(request, fn, **kwargs)

    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.0fs", label, REQUEST_TIMEOUT_SECONDS)
        record_error("timeout")
        return _error_response(
            408,
            {
                "success": False,
                "error": "Request timeout",
                "details": f"Exceeded {REQUEST_TIMEOUT_SECONDS:.0f}s",
            },
        )

    except SearchCancelled as e:
        logger.info("%s cancelled at %s", label, e.stage)
        record_error("cancelled")
        return _error_response(e.status_code, e.to_response())

    except ScoutError as e:
        if e.status_code >= 500:
            logger.error("%s failed at %s: %s", label, e.stage or "unknown stage", e.detail)
        else:
            logger.info("%s rejected: %s", label, e.detail)
        record_error(type(e).__name__)
        return _error_response(e.status_code, e.to_response())

    except Exception as e:
        logger.exception("%s failed", label)
        record_error("internal_error")
        return _error_response(
            500,
            {"success": False, "error": "Failed to perform search", "details": str(e)},
        )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def _sync_search(engine, body: SearchRequest, cancel: CancellationToken) -> dict:
    outcome = engine.search(
        body.query,
        search_type=body.search_type,
        limit=body.limit,
        conversation_context=body.conversation_context,
        refinement=body.refinement,
        user_id=body.user_id,
        filters=body.filters.to_search_filters() if body.filters else None,
        popularity_score=body.popularity_score,
        cancel=cancel,
    )
    return build_search_response(outcome)


@router.post("/search")
async def search(request: Request, body: SearchRequest):
    """Search the corpus.

    ``ai`` searches return an analysis block and a ``conversation.context``
    token; send it back as ``conversationContext`` together with a
    ``refinement`` answer to run the next round.
    """
    return await _handle(
        request, "Search", _sync_search, engine=request.app.state.engine, body=body
    )


# ---------------------------------------------------------------------------
# Personalized recommendations
# ---------------------------------------------------------------------------


def _sync_recommend(engine, body: RecommendRequest, cancel: CancellationToken) -> dict:
    outcome = engine.recommend(
        body.user_id,
        limit=body.limit,
        exclude_owned=body.exclude_owned,
        filters=body.filters.to_search_filters() if body.filters else None,
        popularity_score=body.popularity_score,
        cancel=cancel,
    )
    return build_recommend_response(outcome)


@router.post("/recommend")
async def recommend(request: Request, body: RecommendRequest):
    """Recommend games from the user's stored preference vector."""
    return await _handle(
        request, "Recommend", _sync_recommend, engine=request.app.state.engine, body=body
    )


# ---------------------------------------------------------------------------
# Similar games
# ---------------------------------------------------------------------------


def _sync_similar(engine, item_id: str, limit: int, cancel: CancellationToken) -> dict:
    cancel.raise_if_cancelled("retrieval")
    item, candidates = engine.similar(item_id, limit)
    return {
        "success": True,
        "game": item.to_view(),
        "count": len(candidates),
        "similar": [c.to_view() for c in candidates],
    }


@router.get("/games/{item_id}/similar")
async def similar_games(
    request: Request,
    item_id: str,
    limit: int = Query(SIMILAR_ITEMS_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
):
    """Games closest to ``item_id`` in embedding space."""
    return await _handle(
        request,
        "Similar",
        _sync_similar,
        engine=request.app.state.engine,
        item_id=item_id,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


def _index_ready(index) -> bool:
    """Cheap index probe: a lookup that touches the backing store."""
    if index is None:
        return False
    try:
        index.get("__health__")
    except ScoutError:
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Deployment health check.

    The LLM check verifies configuration only; a real call would cost money
    on every probe. Generative failures degrade per stage anyway.
    """
    state = request.app.state
    index_ok = await asyncio.to_thread(_index_ready, getattr(state, "index", None))
    llm_ok = getattr(state, "llm", None) is not None

    if index_ok and llm_ok:
        status = "healthy"
    elif index_ok:
        status = "degraded"
    else:
        status = "unhealthy"
    return {"status": status, "index_ready": index_ok, "llm_configured": llm_ok}


@router.get("/ready")
async def ready(request: Request):
    """Readiness probe. Returns 503 until the engine can serve searches."""
    state = request.app.state
    components = {
        "engine": getattr(state, "engine", None) is not None,
        "embedder": getattr(state, "embedder", None) is not None,
        "index": await asyncio.to_thread(_index_ready, getattr(state, "index", None)),
    }
    is_ready = all(components.values())
    body = {
        "ready": is_ready,
        "status": "ready" if is_ready else "not_ready",
        "components": components,
    }
    if not is_ready:
        return JSONResponse(status_code=503, content=body)
    return body


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    body, content_type = metrics_response()
    return Response(content=body, media_type=content_type)
