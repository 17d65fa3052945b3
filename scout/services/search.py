"""
Search orchestration.

Wires the stages into the three request paths:

- ``search``: basic (title substring), semantic (raw query embedding) and
  ai (conversation state, classification, resolution, retrieval, popularity
  curve, selection).
- ``recommend``: personalized retrieval from the user's preference vector.
- ``similar``: neighbours of a corpus item.

The engine holds only injected, immutable collaborators; every request
recomputes its own state. Cancellation is checked between stages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from scout.config import (
    CANDIDATE_LIMIT,
    DEFAULT_RECOMMEND_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    MAX_QUERY_LENGTH,
    MAX_ROUNDS,
    MAX_SEARCH_LIMIT,
    SIMILAR_ITEMS_LIMIT,
    get_logger,
)
from scout.core import conversation
from scout.core.errors import ProfileNotFoundError, ValidationError
from scout.core.models import (
    Candidate,
    Item,
    RecommendationOutcome,
    SearchOutcome,
    SearchType,
    UserProfile,
)
from scout.core.popularity import apply_popularity_curve
from scout.core.preferences import build_exclusions, compose_query_vector
from scout.services.intent import IntentClassifier
from scout.services.resolver import EmbeddingResolver, GenerativeDescriber
from scout.services.retrieval import CandidateRetriever
from scout.services.selection import Reranker
from scout.utils import CancellationToken, timed_operation

if TYPE_CHECKING:
    from scout.adapters.profile_store import UserProfileStore
    from scout.core.filters import SearchFilters

logger = get_logger(__name__)

QUERY_REQUIRED = 'Query parameter "q" is required'
QUERY_TOO_LONG = "Query must be at most {limit} characters"
REFINEMENT_TOO_LONG = "Refinement must be at most {limit} characters"


def parse_search_type(value: str | SearchType | None) -> SearchType:
    """Validate the requested search mode. Defaults to ai."""
    if value is None or value == "":
        return SearchType.AI
    try:
        return SearchType(value)
    except ValueError:
        raise ValidationError(
            f'Invalid search type "{value}". Use basic, semantic, or ai'
        ) from None


def clamp_limit(limit: int | None, default: int, maximum: int = MAX_SEARCH_LIMIT) -> int:
    if limit is None or limit < 1:
        return default
    return min(limit, maximum)


class SearchEngine:
    """
    Request-level pipeline over injected stage services.

    Collaborators are built once at startup and shared read-only between
    concurrent requests.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        resolver: EmbeddingResolver,
        retriever: CandidateRetriever,
        reranker: Reranker,
        profile_store: UserProfileStore | None = None,
        max_rounds: int = MAX_ROUNDS,
        candidate_limit: int = CANDIDATE_LIMIT,
    ):
        self.classifier = classifier
        self.resolver = resolver
        self.retriever = retriever
        self.reranker = reranker
        self.profile_store = profile_store
        self.max_rounds = max_rounds
        self.candidate_limit = candidate_limit

    @property
    def index(self):
        return self.retriever.index

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _optional_profile(self, user_id: str | None) -> UserProfile | None:
        """Profile for exclusions on the search path; absence is not an error."""
        if not user_id or self.profile_store is None:
            return None
        try:
            return self.profile_store.get(user_id)
        except ProfileNotFoundError:
            logger.info("No profile for user %s; searching without exclusions", user_id)
            return None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(
        self,
        query: str | None,
        search_type: str | SearchType | None = SearchType.AI,
        limit: int | None = None,
        conversation_context: Any = None,
        refinement: str | None = None,
        user_id: str | None = None,
        filters: SearchFilters | None = None,
        popularity_score: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> SearchOutcome:
        """
        Run one search request.

        Args:
            query: Free-text query. Required for every search type.
            search_type: basic, semantic or ai.
            limit: Requested result count.
            conversation_context: Continuation token from the previous round.
            refinement: Answer to a follow-up question.
            user_id: Enables owned/not-interested exclusions.
            filters: Metadata filters applied at retrieval.
            popularity_score: 0-100 popularity bias, 50 neutral.
            cancel: Cooperative cancellation flag.

        Returns:
            SearchOutcome for the entry point to render.

        Raises:
            ValidationError: Missing or over-long query, over-long refinement,
                or unknown search type.
            EmbeddingResolutionError, RetrievalError: Fatal stage failures.
            SearchCancelled: If ``cancel`` was set.
        """
        if not query or not query.strip():
            raise ValidationError(QUERY_REQUIRED)
        query = query.strip()
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationError(QUERY_TOO_LONG.format(limit=MAX_QUERY_LENGTH))
        if refinement and len(refinement.strip()) > MAX_QUERY_LENGTH:
            raise ValidationError(REFINEMENT_TOO_LONG.format(limit=MAX_QUERY_LENGTH))
        kind = parse_search_type(search_type)
        cancel = cancel or CancellationToken()

        if kind == SearchType.BASIC:
            return self._basic(query, clamp_limit(limit, DEFAULT_SEARCH_LIMIT))
        if kind == SearchType.SEMANTIC:
            return self._semantic(query, clamp_limit(limit, DEFAULT_SEARCH_LIMIT), cancel)
        return self._ai(
            query,
            limit or DEFAULT_SEARCH_LIMIT,
            conversation_context,
            refinement,
            user_id,
            filters,
            popularity_score,
            cancel,
        )

    def _basic(self, query: str, limit: int) -> SearchOutcome:
        with timed_operation("Title search", logger):
            items: list[Item] = self.index.search_titles(query, limit)
        return SearchOutcome(search_type=SearchType.BASIC, query=query, results=list(items))

    def _semantic(self, query: str, limit: int, cancel: CancellationToken) -> SearchOutcome:
        cancel.raise_if_cancelled("embedding")
        resolved = self.resolver.embed_text(query)
        cancel.raise_if_cancelled("retrieval")
        candidates = self.retriever.retrieve(resolved.vector, limit=limit)
        return SearchOutcome(
            search_type=SearchType.SEMANTIC,
            query=query,
            results=candidates,
            resolved=resolved,
        )

    def _ai(
        self,
        query: str,
        limit: int,
        conversation_context: Any,
        refinement: str | None,
        user_id: str | None,
        filters: SearchFilters | None,
        popularity_score: float | None,
        cancel: CancellationToken,
    ) -> SearchOutcome:
        state = conversation.resume(
            conversation_context, query, refinement, max_rounds=self.max_rounds
        )
        effective_query = state.effective_query
        logger.info(
            "AI search round %d/%d: %r", state.round, state.max_rounds, effective_query
        )

        cancel.raise_if_cancelled("classification")
        analysis = self.classifier.classify(effective_query, state.refinements)

        resolved = self.resolver.resolve(analysis, cancel)

        profile = self._optional_profile(user_id)
        matched_id = resolved.matched_item.item_id if resolved.matched_item else None
        exclude = build_exclusions(profile, matched_item_id=matched_id)

        cancel.raise_if_cancelled("retrieval")
        candidates = self.retriever.retrieve(
            resolved.vector, exclude, filters, limit=self.candidate_limit
        )
        candidates = apply_popularity_curve(candidates, popularity_score)

        cancel.raise_if_cancelled("selection")
        results = self.reranker.select(effective_query, candidates, limit)

        cancel.raise_if_cancelled("response")
        return SearchOutcome(
            search_type=SearchType.AI,
            query=query,
            results=results,
            analysis=analysis,
            resolved=resolved,
            state=state,
        )

    # ------------------------------------------------------------------
    # Personalized recommendations
    # ------------------------------------------------------------------

    def recommend(
        self,
        user_id: str | None,
        limit: int | None = None,
        exclude_owned: bool = True,
        filters: SearchFilters | None = None,
        popularity_score: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> RecommendationOutcome:
        """
        Nearest neighbours of the user's composed preference vector.

        Raises:
            ValidationError: Missing user id.
            ProfileNotFoundError: No stored profile.
            MissingPreferenceVectorError: Profile has no usable vector.
            RetrievalError: Index failure.
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError("userId is required")
        if self.profile_store is None:
            raise ProfileNotFoundError("no profile store configured")
        limit = clamp_limit(limit, DEFAULT_RECOMMEND_LIMIT)
        cancel = cancel or CancellationToken()

        profile = self.profile_store.get(user_id)
        vector, using_hybrid = compose_query_vector(profile)
        exclude = build_exclusions(profile, exclude_owned=exclude_owned)

        cancel.raise_if_cancelled("retrieval")
        candidates: list[Candidate] = self.retriever.retrieve(
            vector, exclude, filters, limit=max(limit, self.candidate_limit)
        )
        candidates = apply_popularity_curve(candidates, popularity_score)[:limit]

        logger.info(
            "Recommended %d games for %s (hybrid=%s, excluded=%d)",
            len(candidates),
            user_id,
            using_hybrid,
            len(exclude),
        )
        return RecommendationOutcome(
            user_id=user_id,
            results=candidates,
            using_hybrid_vector=using_hybrid,
            excluded_count=len(exclude),
        )

    # ------------------------------------------------------------------
    # Similar items
    # ------------------------------------------------------------------

    def similar(
        self, item_id: str, limit: int | None = None
    ) -> tuple[Item, list[Candidate]]:
        """Neighbours of ``item_id``. Raises ItemNotFoundError when absent."""
        limit = clamp_limit(limit, SIMILAR_ITEMS_LIMIT)
        return self.retriever.similar_to(str(item_id), limit)


def build_engine(
    llm_client,
    embedder,
    index,
    profile_store: UserProfileStore | None = None,
) -> SearchEngine:
    """Wire the stage services around one LLM client, embedder and index."""
    return SearchEngine(
        classifier=IntentClassifier(llm_client),
        resolver=EmbeddingResolver(embedder, index, GenerativeDescriber(llm_client)),
        retriever=CandidateRetriever(index),
        reranker=Reranker(llm_client),
        profile_store=profile_store,
    )


__all__ = [
    "SearchEngine",
    "build_engine",
    "parse_search_type",
    "clamp_limit",
    "QUERY_REQUIRED",
    "QUERY_TOO_LONG",
    "REFINEMENT_TOO_LONG",
]
