"""
Core domain models for the Scout discovery engine.

All dataclasses are consolidated here for:
- Single source of truth for type definitions
- Easy imports across modules
- Clear domain model documentation

Models are organized by pipeline stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from scout.utils import distance_to_similarity

if TYPE_CHECKING:
    import numpy as np


# ============================================================================
# ENUMS
# ============================================================================


class SearchType(str, Enum):
    """Entry-point search modes."""

    BASIC = "basic"
    SEMANTIC = "semantic"
    AI = "ai"


class IntentType(str, Enum):
    """How the classifier reads the user's request."""

    SPECIFIC_GAME = "specific_game"
    CLEAR_INTENT = "clear_intent"
    VAGUE = "vague"


class FeedbackType(str, Enum):
    """User feedback on a single item. Only the exclusion types are read here."""

    LOVE = "love"
    LIKE = "like"
    DISLIKE = "dislike"
    NOT_INTERESTED = "not_interested"
    HIDDEN = "hidden"

    @property
    def excludes(self) -> bool:
        return self in (FeedbackType.NOT_INTERESTED, FeedbackType.HIDDEN)


class ResolutionSource(str, Enum):
    """Which branch of the resolver produced the query vector."""

    MATCHED_ITEM = "matched_item"
    SYNTHESIZED_DESCRIPTION = "synthesized_description"
    SEARCH_DESCRIPTION = "search_description"


# ============================================================================
# CORPUS MODELS
# ============================================================================


@dataclass
class Item:
    """
    A game in the corpus with its metadata and (optional) stored embedding.

    Immutable for the duration of a request; only ingestion writes items.
    """

    item_id: str
    name: str
    genres: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    review_score: float | None = None  # percent positive, 0-100
    review_count: int | None = None
    release_year: int | None = None
    price: str | None = None
    is_free: bool = False
    short_description: str | None = None
    header_image: str | None = None
    developers: list[str] = field(default_factory=list)
    embedding: np.ndarray | None = field(default=None, repr=False, compare=False)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None

    def to_payload(self) -> dict[str, Any]:
        """Payload stored next to the vector in the index."""
        return {
            "item_id": self.item_id,
            "name": self.name,
            "genres": list(self.genres),
            "tags": list(self.tags),
            "categories": list(self.categories),
            "review_score": self.review_score,
            "review_count": self.review_count,
            "release_year": self.release_year,
            "price": self.price,
            "is_free": self.is_free,
            "short_description": self.short_description,
            "header_image": self.header_image,
            "developers": list(self.developers),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], embedding=None) -> Item:
        return cls(
            item_id=str(payload["item_id"]),
            name=payload.get("name") or "",
            genres=list(payload.get("genres") or []),
            tags=list(payload.get("tags") or []),
            categories=list(payload.get("categories") or []),
            review_score=payload.get("review_score"),
            review_count=payload.get("review_count"),
            release_year=payload.get("release_year"),
            price=payload.get("price"),
            is_free=bool(payload.get("is_free", False)),
            short_description=payload.get("short_description"),
            header_image=payload.get("header_image"),
            developers=list(payload.get("developers") or []),
            embedding=embedding,
        )

    def document_text(self) -> str:
        """Text embedded for the item at ingestion time."""
        parts = [self.name]
        if self.short_description:
            parts.append(self.short_description)
        if self.genres:
            parts.append("Genres: " + ", ".join(self.genres))
        if self.tags:
            parts.append("Tags: " + ", ".join(self.tags))
        return ". ".join(parts)

    def to_view(self) -> dict[str, Any]:
        """Public JSON view of the item."""
        return {
            "appId": self.item_id,
            "name": self.name,
            "shortDescription": self.short_description,
            "headerImage": self.header_image,
            "genres": self.genres,
            "tags": self.tags,
            "categories": self.categories,
            "developers": self.developers,
            "reviewScore": self.review_score,
            "reviewCount": self.review_count,
            "releaseYear": self.release_year,
            "price": self.price,
            "isFree": self.is_free,
        }


@dataclass
class Candidate:
    """
    An item retrieved for one request, paired with its cosine distance.

    Never persisted. Distance is in [0, 2]; similarity is derived from it.
    """

    item: Item
    distance: float

    @property
    def similarity(self) -> float:
        return distance_to_similarity(self.distance)

    @property
    def item_id(self) -> str:
        return self.item.item_id

    @property
    def review_count(self) -> int | None:
        return self.item.review_count

    def to_view(self) -> dict[str, Any]:
        view = self.item.to_view()
        view["similarity"] = round(self.similarity, 4)
        return view


@dataclass
class SelectionResult:
    """A candidate chosen for the final list, with its reason and rank (1-based)."""

    candidate: Candidate
    reason: str
    rank: int

    def to_view(self) -> dict[str, Any]:
        view = self.candidate.to_view()
        view["aiReason"] = self.reason
        view["rank"] = self.rank
        return view


# ============================================================================
# USER MODELS
# ============================================================================


@dataclass
class UserProfile:
    """Per-user preference vectors and exclusion lists. Read-only here."""

    user_id: str
    baseline_vector: np.ndarray | None = field(default=None, repr=False)
    learned_vector: np.ndarray | None = field(default=None, repr=False)
    owned_ids: set[str] = field(default_factory=set)
    not_interested_ids: set[str] = field(default_factory=set)


# ============================================================================
# INTENT MODELS
# ============================================================================


@dataclass
class FollowUpQuestion:
    """A short refinement question with 2-4 suggested answers."""

    question: str
    suggested_answers: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"question": self.question, "suggestedAnswers": list(self.suggested_answers)}


@dataclass
class IntentAnalysis:
    """Structured reading of the user's request."""

    type: IntentType
    game_name: str | None
    search_description: str
    confidence: int
    follow_up_questions: list[FollowUpQuestion] = field(default_factory=list)
    fallback: bool = False  # True when produced by the heuristic fallback


@dataclass
class ParseFailure:
    """
    A generative response that could not be parsed into its schema.

    Kept distinct from a low-confidence result so callers route it to the
    stage fallback instead of coercing it.
    """

    reason: str
    raw: str = ""


@dataclass
class SelectionPick:
    """One entry of the selector's ordered response."""

    item_id: str
    reason: str


@dataclass
class ResolvedQuery:
    """The single vector a request will search with, and where it came from."""

    vector: np.ndarray = field(repr=False)
    source: ResolutionSource
    matched_item: Item | None = None
    embedded_text: str | None = None


# ============================================================================
# CONVERSATION MODELS
# ============================================================================


@dataclass(frozen=True)
class ConversationState:
    """
    Client-held conversation state, round-tripped as a continuation token.

    ``original_query`` is fixed after round 1; ``refinements`` only grows,
    and holds at most ``max_rounds - 1`` entries.
    """

    original_query: str
    refinements: tuple[str, ...] = ()
    round: int = 1
    max_rounds: int = 3
    version: int = 1

    @property
    def can_refine(self) -> bool:
        return self.round < self.max_rounds

    @property
    def is_closed(self) -> bool:
        return not self.can_refine

    @property
    def effective_query(self) -> str:
        if not self.refinements:
            return self.original_query
        return " | ".join((self.original_query, *self.refinements))


# ============================================================================
# PIPELINE OUTPUT
# ============================================================================


@dataclass
class SearchOutcome:
    """Everything the entry point needs to build a search response."""

    search_type: SearchType
    query: str
    results: list[Item | Candidate | SelectionResult]  # by search type
    analysis: IntentAnalysis | None = None
    resolved: ResolvedQuery | None = None
    state: ConversationState | None = None

    @property
    def count(self) -> int:
        return len(self.results)


@dataclass
class RecommendationOutcome:
    """Result of the personalized path."""

    user_id: str
    results: list[Candidate]
    using_hybrid_vector: bool
    excluded_count: int

    @property
    def count(self) -> int:
        return len(self.results)


__all__ = [
    "SearchType",
    "IntentType",
    "FeedbackType",
    "ResolutionSource",
    "Item",
    "Candidate",
    "SelectionResult",
    "UserProfile",
    "FollowUpQuestion",
    "IntentAnalysis",
    "ParseFailure",
    "SelectionPick",
    "ResolvedQuery",
    "ConversationState",
    "SearchOutcome",
    "RecommendationOutcome",
]
