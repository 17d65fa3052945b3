"""
Scout core domain layer.

Pure domain logic with no external service dependencies.
Contains models, errors, filters, the popularity curve, conversation state,
preference composition, prompts, and generative response parsing.
"""

# Models (all dataclasses)
from scout.core.models import (
    # Enums
    FeedbackType,
    IntentType,
    ResolutionSource,
    SearchType,
    # Corpus
    Candidate,
    Item,
    SelectionResult,
    # Users
    UserProfile,
    # Intent
    FollowUpQuestion,
    IntentAnalysis,
    ParseFailure,
    ResolvedQuery,
    SelectionPick,
    # Conversation and output
    ConversationState,
    RecommendationOutcome,
    SearchOutcome,
)

# Errors
from scout.core.errors import (
    ClassificationError,
    ConversationStateError,
    EmbeddingError,
    EmbeddingResolutionError,
    ItemNotFoundError,
    MissingPreferenceVectorError,
    ProfileNotFoundError,
    RetrievalError,
    ScoutError,
    SearchCancelled,
    SelectionError,
    ValidationError,
)

# Filters
from scout.core.filters import FilterBuilder, FilterSpec, SearchFilters

# Popularity curve
from scout.core.popularity import apply_popularity_curve, median_review_count

# Preferences
from scout.core.preferences import build_exclusions, compose_query_vector

# Title matching
from scout.core.matching import name_match_rank, rank_name_matches

# Parsing
from scout.core.parsing import extract_json_block, parse_intent, parse_selection

__all__ = [
    # Models
    "FeedbackType",
    "IntentType",
    "ResolutionSource",
    "SearchType",
    "Candidate",
    "Item",
    "SelectionResult",
    "UserProfile",
    "FollowUpQuestion",
    "IntentAnalysis",
    "ParseFailure",
    "ResolvedQuery",
    "SelectionPick",
    "ConversationState",
    "RecommendationOutcome",
    "SearchOutcome",
    # Errors
    "ScoutError",
    "ValidationError",
    "ClassificationError",
    "SelectionError",
    "ConversationStateError",
    "EmbeddingError",
    "EmbeddingResolutionError",
    "RetrievalError",
    "ProfileNotFoundError",
    "MissingPreferenceVectorError",
    "ItemNotFoundError",
    "SearchCancelled",
    # Filters
    "FilterBuilder",
    "FilterSpec",
    "SearchFilters",
    # Popularity
    "apply_popularity_curve",
    "median_review_count",
    # Preferences
    "build_exclusions",
    "compose_query_vector",
    # Matching
    "name_match_rank",
    "rank_name_matches",
    # Parsing
    "extract_json_block",
    "parse_intent",
    "parse_selection",
]
