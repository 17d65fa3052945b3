"""
In-memory corpus index.

Brute-force cosine search over a numpy matrix. Suitable for small corpora,
local development without Qdrant, and tests. Implements the same
ItemCorpusIndex interface as the Qdrant adapter and evaluates the same
FilterSpec predicates in Python.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np

from scout.adapters.vector_store import check_query_dimension
from scout.config import EMBEDDING_DIM, get_logger
from scout.core.errors import RetrievalError
from scout.core.filters import FilterSpec
from scout.core.matching import rank_name_matches
from scout.core.models import Candidate, Item
from scout.utils import normalize_vectors

logger = get_logger(__name__)


class InMemoryCorpusIndex:
    """Corpus held as a list of items plus a unit-normalized embedding matrix."""

    def __init__(self, items: list[Item], dim: int = EMBEDDING_DIM):
        self.dim = dim
        self._items = {item.item_id: item for item in items}
        self._embedded = [item for item in items if item.has_embedding]

        if self._embedded:
            matrix = np.vstack(
                [np.asarray(item.embedding, dtype=np.float32) for item in self._embedded]
            )
            if matrix.shape[1] != dim:
                raise RetrievalError(
                    f"corpus embedding dimension {matrix.shape[1]} does not match configured {dim}"
                )
            self._matrix = normalize_vectors(matrix)
        else:
            self._matrix = np.zeros((0, dim), dtype=np.float32)

        logger.info(
            "In-memory corpus: %d items, %d embedded", len(self._items), len(self._embedded)
        )

    def __len__(self) -> int:
        return len(self._items)

    @classmethod
    def from_jsonl(cls, path: Path | str, dim: int = EMBEDDING_DIM) -> InMemoryCorpusIndex:
        """
        Load items from a JSON-lines file.

        Each line holds the item payload fields plus an optional
        ``embedding`` list.
        """
        items = []
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                vector = record.pop("embedding", None)
                embedding = np.asarray(vector, dtype=np.float32) if vector else None
                items.append(Item.from_payload(record, embedding=embedding))
        return cls(items, dim=dim)

    def query(
        self,
        vector: np.ndarray,
        spec: FilterSpec | None = None,
        limit: int = 50,
    ) -> list[Candidate]:
        check_query_dimension(vector, self.dim)
        if not self._embedded or limit <= 0:
            return []

        query = normalize_vectors(np.asarray(vector, dtype=np.float32))
        distances = 1.0 - self._matrix @ query

        if spec is not None and not spec.is_empty:
            mask = np.fromiter(
                (spec.matches(item) for item in self._embedded),
                dtype=bool,
                count=len(self._embedded),
            )
            eligible = np.flatnonzero(mask)
        else:
            eligible = np.arange(len(self._embedded))

        if eligible.size == 0:
            return []

        k = min(limit, eligible.size)
        top = eligible[np.argpartition(distances[eligible], k - 1)[:k]]
        top = top[np.argsort(distances[top], kind="stable")]

        return [
            Candidate(item=self._embedded[i], distance=float(np.clip(distances[i], 0.0, 2.0)))
            for i in top
        ]

    def find_by_name(self, name: str) -> Item | None:
        if not name or not name.strip():
            return None
        matches = rank_name_matches(name, self._items.values())
        return matches[0] if matches else None

    def search_titles(self, text: str, limit: int) -> list[Item]:
        needle = text.strip().casefold()
        items = [i for i in self._items.values() if needle and needle in i.name.casefold()]
        items.sort(key=lambda i: (i.review_count is None, -(i.review_count or 0)))
        return items[:limit]

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)


__all__ = ["InMemoryCorpusIndex"]
