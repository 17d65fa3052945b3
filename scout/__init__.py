"""
Scout: conversational semantic game discovery

Turns a free-text request, or a stored preference vector, into a ranked and
justified list of games drawn from an embedded corpus, with up to three rounds
of conversational refinement.

Architecture:
    scout.core       - Pure domain logic (models, filters, popularity, conversation)
    scout.adapters   - External service wrappers (LLM, embeddings, vector store, profiles)
    scout.services   - Orchestration layer (intent, resolution, retrieval, selection)
    scout.config     - Configuration settings
"""

__version__ = "0.1.0"

# Expose key public API for convenience imports
from scout.core import (
    # Models
    Candidate,
    ConversationState,
    IntentAnalysis,
    Item,
    SearchOutcome,
    SelectionResult,
    # Functions
    apply_popularity_curve,
    compose_query_vector,
)

from scout.services import (
    CandidateRetriever,
    EmbeddingResolver,
    IntentClassifier,
    Reranker,
    SearchEngine,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "Candidate",
    "ConversationState",
    "IntentAnalysis",
    "Item",
    "SearchOutcome",
    "SelectionResult",
    # Core functions
    "apply_popularity_curve",
    "compose_query_vector",
    # Services
    "SearchEngine",
    "IntentClassifier",
    "EmbeddingResolver",
    "CandidateRetriever",
    "Reranker",
]
