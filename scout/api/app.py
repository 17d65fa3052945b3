"""
FastAPI application factory.

Creates the app with lifespan-managed singletons (LLM client, embedder,
corpus index, profile store, search engine) so models and connections are
built once at startup and shared read-only across requests.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from scout import __version__
from scout.api.middleware import (
    LatencyMiddleware,
    get_shutdown_coordinator,
    reset_shutdown_coordinator,
)
from scout.api.routes import router
from scout.config import CORS_ORIGINS, SHUTDOWN_DRAIN_SECONDS, get_logger

logger = get_logger(__name__)


def _build_index(embedder_dim: int):
    """In-memory index when CORPUS_PATH is set, Qdrant otherwise."""
    from scout.config import CORPUS_PATH

    if CORPUS_PATH:
        from scout.adapters.memory_index import InMemoryCorpusIndex

        index = InMemoryCorpusIndex.from_jsonl(CORPUS_PATH, dim=embedder_dim)
        logger.info("Loaded in-memory corpus: %d games from %s", len(index), CORPUS_PATH)
        return index

    from scout.adapters.vector_store import QdrantCorpusIndex, collection_exists, get_client

    client = get_client()
    try:
        if collection_exists(client):
            logger.info("Qdrant collection verified")
        else:
            logger.warning("Qdrant collection not found -- run scripts/load_corpus.py first")
    except Exception:
        logger.warning("Qdrant unreachable at startup -- will retry on requests")
    return QdrantCorpusIndex(client=client, dim=embedder_dim)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Initialize shared resources at startup, drain and release at shutdown."""
    logger.info("Starting Scout API...")
    reset_shutdown_coordinator()

    # Validate LLM credentials early
    from scout.config import ANTHROPIC_API_KEY, LLM_PROVIDER, OPENAI_API_KEY

    if LLM_PROVIDER == "anthropic" and not ANTHROPIC_API_KEY:
        logger.warning("LLM_PROVIDER=anthropic but ANTHROPIC_API_KEY is not set")
    elif LLM_PROVIDER == "openai" and not OPENAI_API_KEY:
        logger.warning("LLM_PROVIDER=openai but OPENAI_API_KEY is not set")

    from scout.adapters.embeddings import get_embedder
    from scout.adapters.llm import get_llm_client
    from scout.adapters.profile_store import SQLiteProfileStore
    from scout.services.search import build_engine

    try:
        app.state.llm = get_llm_client()
        logger.info("LLM client ready (%s)", app.state.llm.model)
    except Exception:
        logger.exception("Failed to initialize LLM client -- cannot start")
        raise

    try:
        app.state.embedder = get_embedder()
        logger.info("Embedder loaded (dim=%d)", app.state.embedder.dim)
    except Exception:
        logger.exception("Failed to load embedding model -- cannot start")
        raise

    app.state.index = _build_index(app.state.embedder.dim)
    app.state.profiles = SQLiteProfileStore()
    app.state.engine = build_engine(
        app.state.llm,
        app.state.embedder,
        app.state.index,
        app.state.profiles,
    )

    logger.info("Scout API ready")
    yield

    drained = await get_shutdown_coordinator().drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    logger.info("Scout API shutting down (drained=%s)", drained)


def create_app() -> FastAPI:
    """Application factory."""
    app = FastAPI(
        title="Scout",
        description="Conversational semantic game discovery API",
        version=__version__,
        lifespan=_lifespan,
    )
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id", "X-Response-Time-Ms"],
    )
    app.include_router(router)
    return app
