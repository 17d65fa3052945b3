"""
Scout configuration module.

Central configuration for the discovery engine.
Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.getenv("SCOUT_DATA_DIR", str(PROJECT_ROOT / "data")))

PROFILE_DB_PATH = Path(os.getenv("PROFILE_DB_PATH", str(DATA_DIR / "profiles.db")))


# ---------------------------------------------------------------------------
# Embedding Model
# ---------------------------------------------------------------------------

PROVIDER_E5 = "e5"
PROVIDER_OPENAI_EMBEDDINGS = "openai"

EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", PROVIDER_E5)  # "e5" or "openai"
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "intfloat/e5-small-v2")
OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")

# Fixed corpus-wide. Must match the collection the corpus was built with.
EMBEDDING_DIM = int(os.getenv("EMBEDDING_DIM", "384"))
EMBEDDING_BATCH_SIZE = 32


# ---------------------------------------------------------------------------
# Qdrant Vector Store
# ---------------------------------------------------------------------------

QDRANT_URL = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.getenv("QDRANT_API_KEY")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "scout_games")

# JSONL corpus file. When set, the API serves from an in-memory index instead of Qdrant.
CORPUS_PATH = os.getenv("CORPUS_PATH")


# ---------------------------------------------------------------------------
# External API Keys
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")


# ---------------------------------------------------------------------------
# LLM Settings
# ---------------------------------------------------------------------------

PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_OPENAI = "openai"

LLM_PROVIDER = os.getenv("LLM_PROVIDER", PROVIDER_OPENAI)  # "anthropic" or "openai"

# Model selection
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Generation settings
LLM_TEMPERATURE = 0.3
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30.0"))

# Single best-effort call per stage; failures go to the stage fallback.
LLM_MAX_RETRIES = 0

# Per-stage output budgets
CLASSIFIER_MAX_TOKENS = 500
DESCRIBER_MAX_TOKENS = 200
SELECTOR_MAX_TOKENS = 1500


# ---------------------------------------------------------------------------
# Search Pipeline
# ---------------------------------------------------------------------------

MAX_ROUNDS = 3
CANDIDATE_LIMIT = 50
MAX_RESULT_LIMIT = 15
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 100
MAX_QUERY_LENGTH = 500  # characters, applies to queries and refinements
NEUTRAL_POPULARITY = 50
DIGEST_DESCRIPTION_CHARS = 150
DIGEST_MAX_TAGS = 10
SIMILAR_ITEMS_LIMIT = 12


# ---------------------------------------------------------------------------
# Personalization
# ---------------------------------------------------------------------------

DEFAULT_RECOMMEND_LIMIT = 20
HYBRID_BASELINE_WEIGHT = 0.6
HYBRID_LEARNED_WEIGHT = 0.4


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "45.0"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")]
SHUTDOWN_DRAIN_SECONDS = float(os.getenv("SHUTDOWN_DRAIN_SECONDS", "30.0"))


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

from scout.config.logging import (  # noqa: E402
    get_logger,
    configure_logging,
    log_banner,
    log_kv,
    LOG_LEVEL,
    LOG_FORMAT,
)


# ---------------------------------------------------------------------------
# All exports
# ---------------------------------------------------------------------------

__all__ = [
    # Paths
    "PROJECT_ROOT",
    "DATA_DIR",
    "PROFILE_DB_PATH",
    # Embedding
    "PROVIDER_E5",
    "PROVIDER_OPENAI_EMBEDDINGS",
    "EMBEDDING_PROVIDER",
    "EMBEDDING_MODEL",
    "OPENAI_EMBEDDING_MODEL",
    "EMBEDDING_DIM",
    "EMBEDDING_BATCH_SIZE",
    # Qdrant
    "QDRANT_URL",
    "QDRANT_API_KEY",
    "COLLECTION_NAME",
    "CORPUS_PATH",
    # API keys
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    # LLM
    "PROVIDER_ANTHROPIC",
    "PROVIDER_OPENAI",
    "LLM_PROVIDER",
    "ANTHROPIC_MODEL",
    "OPENAI_MODEL",
    "LLM_TEMPERATURE",
    "LLM_TIMEOUT",
    "LLM_MAX_RETRIES",
    "CLASSIFIER_MAX_TOKENS",
    "DESCRIBER_MAX_TOKENS",
    "SELECTOR_MAX_TOKENS",
    # Search
    "MAX_ROUNDS",
    "CANDIDATE_LIMIT",
    "MAX_RESULT_LIMIT",
    "DEFAULT_SEARCH_LIMIT",
    "MAX_SEARCH_LIMIT",
    "MAX_QUERY_LENGTH",
    "NEUTRAL_POPULARITY",
    "DIGEST_DESCRIPTION_CHARS",
    "DIGEST_MAX_TAGS",
    "SIMILAR_ITEMS_LIMIT",
    # Personalization
    "DEFAULT_RECOMMEND_LIMIT",
    "HYBRID_BASELINE_WEIGHT",
    "HYBRID_LEARNED_WEIGHT",
    # API
    "REQUEST_TIMEOUT_SECONDS",
    "CORS_ORIGINS",
    "SHUTDOWN_DRAIN_SECONDS",
    # Logging
    "get_logger",
    "configure_logging",
    "log_banner",
    "log_kv",
    "LOG_LEVEL",
    "LOG_FORMAT",
]
