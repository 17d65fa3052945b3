"""
Embedding model adapters.

Two providers share one interface (``embed``, ``embed_many``, ``dim``):

- E5Embedder wraps sentence-transformers for E5 models, which need
  instruction prefixes: "passage: {text}" for corpus documents and
  "query: {text}" for search text.
- OpenAIEmbedder calls the OpenAI embeddings endpoint.

Whichever is configured, every vector it returns is checked against
EMBEDDING_DIM so a model/corpus mismatch fails loudly instead of silently
returning garbage neighbours.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from scout.config import (
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_DIM,
    EMBEDDING_MODEL,
    EMBEDDING_PROVIDER,
    LLM_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_EMBEDDING_MODEL,
    PROVIDER_E5,
    PROVIDER_OPENAI_EMBEDDINGS,
    get_logger,
)
from scout.core.errors import EmbeddingError
from scout.utils import require_import, thread_safe_singleton

logger = get_logger(__name__)


class EmbeddingService(Protocol):
    """Text to fixed-dimension vector."""

    dim: int

    def embed(self, text: str) -> np.ndarray:
        ...

    def embed_many(self, texts: list[str]) -> np.ndarray:
        ...


def check_dimension(vectors: np.ndarray, dim: int) -> np.ndarray:
    """Raise EmbeddingError unless the last axis has length ``dim``."""
    if vectors.shape[-1] != dim:
        raise EmbeddingError(
            f"embedding dimension {vectors.shape[-1]} does not match configured {dim}"
        )
    return vectors


# ---------------------------------------------------------------------------
# E5 (sentence-transformers)
# ---------------------------------------------------------------------------


class E5Embedder:
    """
    Wrapper for E5 models with automatic prefix handling.

    ``embed`` is for search text; ``embed_passages`` is for corpus building.
    """

    def __init__(self, model_name: str = EMBEDDING_MODEL, dim: int = EMBEDDING_DIM):
        """
        Load the embedding model.

        Args:
            model_name: HuggingFace model identifier.
            dim: Expected output dimension.

        Raises:
            ImportError: If sentence_transformers is not installed.
        """
        st = require_import("sentence_transformers", pip_name="sentence-transformers")

        logger.info("Loading embedding model: %s", model_name)
        self.model = st.SentenceTransformer(model_name)
        self.model_name = model_name
        self.dim = dim

    def _encode(self, texts: list[str], batch_size: int, show_progress: bool) -> np.ndarray:
        try:
            vectors = self.model.encode(
                texts,
                batch_size=batch_size,
                show_progress_bar=show_progress,
                normalize_embeddings=True,
            )
        except (RuntimeError, ValueError) as e:
            raise EmbeddingError(f"{self.model_name} failed to encode: {e}") from e
        return check_dimension(np.asarray(vectors, dtype=np.float32), self.dim)

    def embed_passages(
        self,
        texts: list[str],
        batch_size: int = EMBEDDING_BATCH_SIZE,
        show_progress: bool = True,
    ) -> np.ndarray:
        """Embed corpus documents. Shape (n_texts, dim)."""
        return self._encode([f"passage: {t}" for t in texts], batch_size, show_progress)

    def embed_many(self, texts: list[str]) -> np.ndarray:
        """Embed search texts. Shape (n_texts, dim)."""
        return self._encode([f"query: {t}" for t in texts], EMBEDDING_BATCH_SIZE, False)

    def embed(self, text: str) -> np.ndarray:
        """Embed a single search text. Shape (dim,)."""
        if not text or not text.strip():
            raise EmbeddingError("cannot embed empty text")
        return self.embed_many([text])[0]


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


class OpenAIEmbedder:
    """OpenAI embeddings endpoint, one best-effort call per request."""

    def __init__(
        self,
        model_name: str = OPENAI_EMBEDDING_MODEL,
        dim: int = EMBEDDING_DIM,
        api_key: str | None = None,
        timeout: float = LLM_TIMEOUT,
    ):
        openai = require_import("openai")

        self.client = openai.OpenAI(
            api_key=api_key or OPENAI_API_KEY,
            timeout=timeout,
            max_retries=0,
        )
        self._api_error = openai.OpenAIError
        self.model_name = model_name
        self.dim = dim

    def embed_many(self, texts: list[str]) -> np.ndarray:
        try:
            response = self.client.embeddings.create(model=self.model_name, input=texts)
        except self._api_error as e:
            raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e
        vectors = np.asarray([d.embedding for d in response.data], dtype=np.float32)
        return check_dimension(vectors, self.dim)

    def embed_passages(self, texts: list[str], show_progress: bool = False) -> np.ndarray:
        return self.embed_many(texts)

    def embed(self, text: str) -> np.ndarray:
        if not text or not text.strip():
            raise EmbeddingError("cannot embed empty text")
        return self.embed_many([text])[0]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_embedder(provider: str | None = None) -> EmbeddingService:
    """
    Build the configured embedder.

    Raises:
        ValueError: If provider is not recognized.
    """
    provider = provider.lower().strip() if provider else EMBEDDING_PROVIDER
    if provider == PROVIDER_E5:
        return E5Embedder()
    if provider == PROVIDER_OPENAI_EMBEDDINGS:
        return OpenAIEmbedder()
    raise ValueError(
        f"Unknown embedding provider: {provider}. "
        f"Use '{PROVIDER_E5}' or '{PROVIDER_OPENAI_EMBEDDINGS}'."
    )


@thread_safe_singleton
def get_embedder() -> EmbeddingService:
    """Get or create the process-wide embedder (thread-safe singleton)."""
    return create_embedder()


__all__ = [
    "EmbeddingService",
    "E5Embedder",
    "OpenAIEmbedder",
    "check_dimension",
    "create_embedder",
    "get_embedder",
]
