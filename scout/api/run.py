"""
Server entry point.

Usage:
    python -m scout.api.run
    python -m scout.api.run --port 8000 --corpus data/games.jsonl

For auto-reload during development, use uvicorn directly:
    uvicorn scout.api.app:create_app --factory --reload --port 8000
"""

from __future__ import annotations

import argparse
import os

import uvicorn

from scout.config import configure_logging


def main():
    parser = argparse.ArgumentParser(description="Scout API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument(
        "--port", type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port (defaults to PORT env var, then 8000)",
    )
    parser.add_argument(
        "--corpus",
        default=None,
        help="JSONL corpus to serve from memory instead of Qdrant",
    )
    parser.add_argument("--log-level", default=None, help="Overrides SCOUT_LOG_LEVEL")
    args = parser.parse_args()

    # Config reads the environment at import time
    if args.corpus:
        os.environ["CORPUS_PATH"] = args.corpus

    configure_logging(level=args.log_level)

    from scout.api.app import create_app

    app = create_app()
    # One worker: the embedding model is loaded per process.
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
