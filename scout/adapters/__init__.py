"""
Scout adapters layer.

External service wrappers that implement the interfaces expected by the
service layer: LLM clients, embeddings, the item corpus index (Qdrant or
in-memory), and the user profile store.
"""

# LLM clients
from scout.adapters.llm import (
    AnthropicClient,
    LLMClient,
    OpenAIClient,
    get_llm_client,
)

# Embeddings
from scout.adapters.embeddings import (
    E5Embedder,
    EmbeddingService,
    OpenAIEmbedder,
    create_embedder,
    get_embedder,
)

# Corpus index
from scout.adapters.vector_store import (
    ItemCorpusIndex,
    QdrantCorpusIndex,
    collection_exists,
    create_collection,
    create_payload_indexes,
    get_client,
    upload_items,
)
from scout.adapters.memory_index import InMemoryCorpusIndex

# Profiles
from scout.adapters.profile_store import SQLiteProfileStore, UserProfileStore

__all__ = [
    # LLM
    "LLMClient",
    "AnthropicClient",
    "OpenAIClient",
    "get_llm_client",
    # Embeddings
    "EmbeddingService",
    "E5Embedder",
    "OpenAIEmbedder",
    "create_embedder",
    "get_embedder",
    # Corpus index
    "ItemCorpusIndex",
    "QdrantCorpusIndex",
    "InMemoryCorpusIndex",
    "get_client",
    "create_collection",
    "create_payload_indexes",
    "upload_items",
    "collection_exists",
    # Profiles
    "UserProfileStore",
    "SQLiteProfileStore",
]
