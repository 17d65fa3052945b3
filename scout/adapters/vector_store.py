"""
Qdrant vector store adapter.

Holds the item corpus: one point per game, the game's embedding as the
vector and its metadata as payload. Exposes the corpus-index interface the
pipeline uses (nearest-neighbour query, title lookup, fetch by id) plus the
collection management used when building the corpus.

Only embedded games are uploaded, so every point is eligible for retrieval.
"""

from __future__ import annotations

import hashlib
from time import perf_counter
from typing import TYPE_CHECKING, Protocol

import numpy as np

from scout.config import (
    COLLECTION_NAME,
    EMBEDDING_DIM,
    QDRANT_API_KEY,
    QDRANT_URL,
    get_logger,
)
from scout.core.errors import RetrievalError
from scout.core.filters import FilterSpec
from scout.core.matching import rank_name_matches
from scout.core.models import Candidate, Item
from scout.utils import require_import, thread_safe_singleton

if TYPE_CHECKING:
    from qdrant_client import QdrantClient

logger = get_logger(__name__)

# Points per scroll page when collecting title matches; all pages are read
NAME_SCAN_PAGE_SIZE = 256


class ItemCorpusIndex(Protocol):
    """Nearest-neighbour and lookup operations over the item corpus."""

    dim: int

    def query(
        self,
        vector: np.ndarray,
        spec: FilterSpec | None = None,
        limit: int = 50,
    ) -> list[Candidate]:
        """Candidates ascending by cosine distance."""
        ...

    def find_by_name(self, name: str) -> Item | None:
        """Best title match with its stored embedding, or None."""
        ...

    def search_titles(self, text: str, limit: int) -> list[Item]:
        """Items whose title contains ``text``, most reviewed first."""
        ...

    def get(self, item_id: str) -> Item | None:
        """Item with its stored embedding, or None."""
        ...


def _generate_point_id(item_id: str) -> str:
    """
    Deterministic point ID for an item.

    Uses MD5 hash (32-char hex) for Qdrant compatibility.
    """
    return hashlib.md5(item_id.encode()).hexdigest()


def check_query_dimension(vector: np.ndarray, dim: int) -> None:
    if np.shape(vector)[-1] != dim:
        raise RetrievalError(
            f"query vector dimension {np.shape(vector)[-1]} does not match index dimension {dim}"
        )


@thread_safe_singleton
def get_client() -> "QdrantClient":
    """
    Get or create the global Qdrant client connection.

    Raises:
        ImportError: If qdrant-client is not installed.
    """
    qdrant = require_import("qdrant_client", pip_name="qdrant-client")
    QdrantClient = qdrant.QdrantClient

    if QDRANT_API_KEY:
        return QdrantClient(url=QDRANT_URL, api_key=QDRANT_API_KEY, timeout=30)
    return QdrantClient(url=QDRANT_URL, timeout=30)


# ---------------------------------------------------------------------------
# Collection management
# ---------------------------------------------------------------------------


def create_collection(
    client,
    collection_name: str = COLLECTION_NAME,
    dim: int = EMBEDDING_DIM,
) -> None:
    """
    Create the item collection with cosine distance.

    Deletes existing collection if present.
    """
    from qdrant_client.models import Distance, VectorParams

    if client.collection_exists(collection_name):
        logger.info("Deleting existing collection: %s", collection_name)
        client.delete_collection(collection_name)

    logger.info("Creating collection: %s (dim=%d)", collection_name, dim)
    client.create_collection(
        collection_name=collection_name,
        vectors_config=VectorParams(size=dim, distance=Distance.COSINE),
    )


def name_index_params():
    """
    Full-text index on game titles.

    The prefix tokenizer indexes every prefix of every title word, so a
    partial word such as "stard" matches "Stardew Valley".
    """
    from qdrant_client.models import TextIndexParams, TextIndexType, TokenizerType

    return TextIndexParams(
        type=TextIndexType.TEXT,
        tokenizer=TokenizerType.PREFIX,
        lowercase=True,
    )


def title_filter(text: str):
    """Server-side prefilter for title lookups over the ``name`` text index."""
    from qdrant_client.models import FieldCondition, Filter, MatchText

    return Filter(must=[FieldCondition(key="name", match=MatchText(text=text))])


def create_payload_indexes(client, collection_name: str = COLLECTION_NAME) -> None:
    """Create payload indexes for every field a filter or title lookup touches."""
    from qdrant_client.models import PayloadSchemaType

    indexes = [
        ("item_id", PayloadSchemaType.KEYWORD),
        ("genres", PayloadSchemaType.KEYWORD),
        ("tags", PayloadSchemaType.KEYWORD),
        ("categories", PayloadSchemaType.KEYWORD),
        ("review_score", PayloadSchemaType.FLOAT),
        ("review_count", PayloadSchemaType.INTEGER),
        ("release_year", PayloadSchemaType.INTEGER),
        ("is_free", PayloadSchemaType.BOOL),
        ("name", name_index_params()),
    ]

    for field_name, field_schema in indexes:
        client.create_payload_index(
            collection_name=collection_name,
            field_name=field_name,
            field_schema=field_schema,
        )

    logger.info("Indexes created for: %s", ", ".join(f for f, _ in indexes))


def upload_items(
    client,
    items: list[Item],
    collection_name: str = COLLECTION_NAME,
    batch_size: int = 100,
) -> int:
    """
    Upsert embedded items. Items without an embedding are skipped.

    Returns:
        Number of points written.
    """
    from qdrant_client.models import PointStruct
    from tqdm import tqdm

    embedded = [item for item in items if item.has_embedding]
    skipped = len(items) - len(embedded)
    if skipped:
        logger.warning("Skipping %d items without embeddings", skipped)

    start = perf_counter()
    for i in tqdm(range(0, len(embedded), batch_size), desc="Uploading to Qdrant"):
        batch = embedded[i : i + batch_size]
        points = [
            PointStruct(
                id=_generate_point_id(item.item_id),
                vector=np.asarray(item.embedding, dtype=np.float32).tolist(),
                payload=item.to_payload(),
            )
            for item in batch
        ]
        client.upsert(collection_name=collection_name, points=points)

    logger.info(
        "Uploaded %d points to %s in %.2f seconds",
        len(embedded),
        collection_name,
        perf_counter() - start,
    )
    return len(embedded)


def collection_exists(client, collection_name: str = COLLECTION_NAME) -> bool:
    """True if the collection exists and has points."""
    try:
        if not client.collection_exists(collection_name):
            return False
        info = client.get_collection(collection_name)
        return (info.points_count or 0) > 0
    except Exception as e:
        logger.debug("collection_exists check failed: %s", e)
        return False


# ---------------------------------------------------------------------------
# Corpus index
# ---------------------------------------------------------------------------


class QdrantCorpusIndex:
    """
    Item corpus backed by a Qdrant collection.

    Any client error is raised as RetrievalError; the pipeline treats it as
    fatal.
    """

    def __init__(
        self,
        client: QdrantClient | None = None,
        collection_name: str = COLLECTION_NAME,
        dim: int = EMBEDDING_DIM,
    ):
        self._client = client
        self.collection_name = collection_name
        self.dim = dim

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        return self._client

    def _item_from_point(self, point) -> Item:
        vector = getattr(point, "vector", None)
        embedding = np.asarray(vector, dtype=np.float32) if vector is not None else None
        return Item.from_payload(point.payload or {}, embedding=embedding)

    def query(
        self,
        vector: np.ndarray,
        spec: FilterSpec | None = None,
        limit: int = 50,
    ) -> list[Candidate]:
        """
        Nearest neighbours by cosine distance.

        Qdrant reports cosine similarity; distance is ``1 - score`` so that
        it lies in [0, 2] and sorts ascending.
        """
        check_query_dimension(vector, self.dim)
        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=np.asarray(vector, dtype=np.float32).tolist(),
                query_filter=spec.to_qdrant() if spec is not None else None,
                limit=limit,
                with_payload=True,
            )
        except Exception as e:
            raise RetrievalError(f"Qdrant query failed: {e}", stage="retrieval") from e

        candidates = [
            Candidate(item=Item.from_payload(hit.payload or {}), distance=1.0 - float(hit.score))
            for hit in response.points
        ]
        candidates.sort(key=lambda c: c.distance)
        return candidates

    def _scroll_title_matches(self, text: str) -> list[Item]:
        """
        Every point whose title passes the text-index prefilter.

        Pages through the whole match set so ranking never sees an arbitrary
        slice. Vectors are not fetched; callers load the winner with ``get``.
        """
        items: list[Item] = []
        offset = None
        try:
            while True:
                points, offset = self.client.scroll(
                    collection_name=self.collection_name,
                    scroll_filter=title_filter(text),
                    limit=NAME_SCAN_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                )
                items.extend(self._item_from_point(p) for p in points)
                if offset is None:
                    break
        except Exception as e:
            raise RetrievalError(f"Qdrant title lookup failed: {e}", stage="retrieval") from e

        logger.debug("Title prefilter %r matched %d points", text, len(items))
        return items

    def find_by_name(self, name: str) -> Item | None:
        if not name or not name.strip():
            return None
        # Every uploaded point carries a vector; it is fetched for the winner only
        matches = rank_name_matches(
            name, self._scroll_title_matches(name.strip()), require_embedding=False
        )
        if not matches:
            return None
        return self.get(matches[0].item_id)

    def search_titles(self, text: str, limit: int) -> list[Item]:
        needle = text.strip().casefold()
        if not needle:
            return []
        items = [
            item
            for item in self._scroll_title_matches(text.strip())
            if needle in item.name.casefold()
        ]
        items.sort(key=lambda i: (i.review_count is None, -(i.review_count or 0)))
        return items[:limit]

    def get(self, item_id: str) -> Item | None:
        try:
            points = self.client.retrieve(
                collection_name=self.collection_name,
                ids=[_generate_point_id(item_id)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise RetrievalError(f"Qdrant retrieve failed: {e}", stage="retrieval") from e
        return self._item_from_point(points[0]) if points else None


__all__ = [
    "ItemCorpusIndex",
    "QdrantCorpusIndex",
    "NAME_SCAN_PAGE_SIZE",
    "name_index_params",
    "title_filter",
    "check_query_dimension",
    "get_client",
    "create_collection",
    "create_payload_indexes",
    "upload_items",
    "collection_exists",
]
