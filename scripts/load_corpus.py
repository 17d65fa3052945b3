"""
Corpus loading and embedding pipeline.

Reads a JSONL game catalog, embeds every game that has no stored vector,
and either uploads the result to Qdrant or writes an embedded JSONL file the
API can serve from memory (CORPUS_PATH).

Each input line holds the item payload fields (``item_id``, ``name``,
``genres``, ``tags``, ``categories``, ``review_score``, ``review_count``,
``release_year``, ``price``, ``is_free``, ``short_description``,
``header_image``, ``developers``) and an optional ``embedding`` list.

Usage:
    python scripts/load_corpus.py data/games.jsonl
    python scripts/load_corpus.py data/games.jsonl --force
    python scripts/load_corpus.py data/games.jsonl --out data/games_embedded.jsonl

Run from project root.
"""

import argparse
import json
from pathlib import Path

import numpy as np

from scout.adapters.embeddings import get_embedder
from scout.adapters.vector_store import (
    collection_exists,
    create_collection,
    create_payload_indexes,
    get_client,
    upload_items,
)
from scout.config import COLLECTION_NAME, configure_logging, get_logger, log_banner, log_kv
from scout.core.models import Item

logger = get_logger(__name__)


def read_items(path: Path) -> list[Item]:
    items = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Skipping line %d: %s", line_no, e)
                continue
            vector = record.pop("embedding", None)
            embedding = np.asarray(vector, dtype=np.float32) if vector else None
            items.append(Item.from_payload(record, embedding=embedding))
    return items


def embed_missing(items: list[Item]) -> int:
    """Embed items without a stored vector in place. Returns the count embedded."""
    pending = [item for item in items if not item.has_embedding]
    if not pending:
        return 0

    embedder = get_embedder()
    vectors = embedder.embed_passages([item.document_text() for item in pending])
    for item, vector in zip(pending, vectors):
        item.embedding = vector
    return len(pending)


def write_items(items: list[Item], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for item in items:
            record = item.to_payload()
            if item.has_embedding:
                record["embedding"] = np.asarray(item.embedding, dtype=float).round(6).tolist()
            f.write(json.dumps(record) + "\n")
    logger.info("Wrote %d items to %s", len(items), path)


def upload(items: list[Item], force: bool) -> None:
    client = get_client()
    if collection_exists(client) and not force:
        logger.info("Collection %s already populated; use --force to rebuild", COLLECTION_NAME)
        return

    dim = get_embedder().dim
    create_collection(client, dim=dim)
    create_payload_indexes(client)
    upload_items(client, items)


def main():
    parser = argparse.ArgumentParser(description="Embed and load the game corpus")
    parser.add_argument("catalog", type=Path, help="JSONL game catalog")
    parser.add_argument("--out", type=Path, default=None, help="Write embedded JSONL here")
    parser.add_argument(
        "--skip-upload", action="store_true", help="Do not touch Qdrant"
    )
    parser.add_argument(
        "--force", action="store_true", help="Recreate the Qdrant collection"
    )
    args = parser.parse_args()

    configure_logging()
    log_banner(logger, "SCOUT CORPUS LOADER")

    items = read_items(args.catalog)
    log_kv(logger, "Games read", len(items))

    embedded = embed_missing(items)
    log_kv(logger, "Games embedded", embedded)
    log_kv(logger, "Games with vectors", sum(item.has_embedding for item in items))

    if args.out:
        write_items(items, args.out)
    if not args.skip_upload:
        upload(items, force=args.force)

    log_banner(logger, "DONE")


if __name__ == "__main__":
    main()
