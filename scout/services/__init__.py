"""
Scout services layer.

Orchestration logic that coordinates between core domain logic and adapters:
intent classification, embedding resolution, candidate retrieval, selection,
and the request-level search engine.
"""

# Intent classification
from scout.services.intent import IntentClassifier, fallback_analysis, normalize_follow_ups

# Embedding resolution
from scout.services.resolver import EmbeddingResolver, GenerativeDescriber

# Retrieval
from scout.services.retrieval import CandidateRetriever

# Selection
from scout.services.selection import Reranker, rank_by_similarity

# Orchestration
from scout.services.search import SearchEngine

__all__ = [
    "IntentClassifier",
    "fallback_analysis",
    "normalize_follow_ups",
    "EmbeddingResolver",
    "GenerativeDescriber",
    "CandidateRetriever",
    "Reranker",
    "rank_by_similarity",
    "SearchEngine",
]
