"""
Candidate retrieval service.

Nearest-neighbour search over the item corpus under filter and exclusion
predicates. Candidates come back ascending by cosine distance with full
metadata for the later stages. Any index failure is fatal (RetrievalError).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from scout.api.metrics import observe_stage
from scout.config import CANDIDATE_LIMIT, SIMILAR_ITEMS_LIMIT, get_logger
from scout.core.errors import ItemNotFoundError
from scout.core.filters import SearchFilters
from scout.core.models import Candidate, Item
from scout.utils import timed_operation

if TYPE_CHECKING:
    import numpy as np

    from scout.adapters.vector_store import ItemCorpusIndex

logger = get_logger(__name__)


class CandidateRetriever:
    """
    Service for retrieving candidates from the corpus index.

    Builds a FilterSpec from the request filters and exclusion set and lets
    the index evaluate it.
    """

    def __init__(self, index: ItemCorpusIndex, candidate_limit: int = CANDIDATE_LIMIT):
        """
        Initialize retrieval service.

        Args:
            index: Corpus index (Qdrant or in-memory).
            candidate_limit: Default number of candidates to retrieve.
        """
        self.index = index
        self.candidate_limit = candidate_limit

    def retrieve(
        self,
        vector: np.ndarray,
        exclude: Iterable[str] | None = None,
        filters: SearchFilters | None = None,
        limit: int | None = None,
    ) -> list[Candidate]:
        """
        Retrieve nearest candidates.

        Args:
            vector: Query vector in the corpus embedding space.
            exclude: Item IDs that must not be returned.
            filters: Optional metadata filters.
            limit: Maximum candidates. Defaults to the service limit.

        Returns:
            Candidates sorted by distance ascending.

        Raises:
            RetrievalError: If the index query fails.
        """
        limit = limit or self.candidate_limit
        excluded = set(exclude or ())
        spec = (filters or SearchFilters()).to_spec(excluded)

        with timed_operation("Retrieval", logger, observe_stage("retrieval")):
            results = self.index.query(vector, spec, limit)

        candidates = []
        for candidate in results:
            # Skip excluded items the index let through
            if candidate.item_id in excluded:
                continue
            candidates.append(candidate)

        logger.info(
            "Retrieved %d candidates (%d excluded ids)", len(candidates), len(excluded)
        )
        return candidates

    def similar_to(
        self,
        item_id: str,
        limit: int = SIMILAR_ITEMS_LIMIT,
        exclude: Iterable[str] | None = None,
        filters: SearchFilters | None = None,
    ) -> tuple[Item, list[Candidate]]:
        """
        Neighbours of a corpus item, excluding the item itself.

        Raises:
            ItemNotFoundError: If the item is missing or has no embedding.
            RetrievalError: If the index query fails.
        """
        item = self.index.get(item_id)
        if item is None or not item.has_embedding:
            raise ItemNotFoundError(f"no embedded game with id {item_id}")

        excluded = {item_id, *(exclude or ())}
        return item, self.retrieve(item.embedding, excluded, filters, limit)


__all__ = ["CandidateRetriever"]
