"""
Shared utility functions.
"""

from __future__ import annotations

import importlib
import string
import threading
import time
from contextlib import contextmanager
from functools import wraps
from types import ModuleType
from typing import TYPE_CHECKING, Callable, Generator, TypeVar

if TYPE_CHECKING:
    import logging

    import numpy as np

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Import Utilities
# ---------------------------------------------------------------------------


def require_import(
    package: str,
    *,
    pip_name: str | None = None,
) -> ModuleType:
    """Import a package with a standardized error message.

    Usage:
        qdrant = require_import("qdrant_client", pip_name="qdrant-client")
        st = require_import("sentence_transformers", pip_name="sentence-transformers")

    Args:
        package: The Python package name to import.
        pip_name: The pip install name if different from package name.

    Returns:
        The imported module.

    Raises:
        ImportError: With a helpful message including install command.
    """
    try:
        return importlib.import_module(package)
    except ImportError as e:
        raise ImportError(
            f"{package} package required. Install with: pip install {pip_name or package}"
        ) from e


# ---------------------------------------------------------------------------
# Singleton Utilities
# ---------------------------------------------------------------------------


def thread_safe_singleton(factory_fn: Callable[[], T]) -> Callable[[], T]:
    """Decorator for thread-safe lazy singleton initialization.

    Usage:
        @thread_safe_singleton
        def get_embedder():
            return E5Embedder()

    Args:
        factory_fn: Zero-argument callable that creates the instance.

    Returns:
        A wrapper function that returns the singleton instance.
    """
    instance: T | None = None
    lock = threading.Lock()

    @wraps(factory_fn)
    def get_instance() -> T:
        nonlocal instance
        if instance is None:
            with lock:
                if instance is None:
                    instance = factory_fn()
        return instance

    return get_instance


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


@contextmanager
def timed_operation(
    name: str,
    logger: logging.Logger | None = None,
    metrics_observer: Callable[[float], None] | None = None,
    log_format: str = "%s: %.0fms",
) -> Generator[None, None, None]:
    """Context manager for timing operations with optional logging and metrics.

    Usage:
        with timed_operation("Classification", logger, observe_stage("classification")):
            analysis = classifier.classify(query, refinements)

    Args:
        name: Operation name for logging.
        logger: Logger instance for info-level timing output.
        metrics_observer: Callback that receives duration in seconds.
        log_format: Format string for log message (name, ms).
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - t0
        if metrics_observer is not None:
            metrics_observer(duration)
        if logger is not None:
            logger.info(log_format, name, duration * 1000)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class CancellationToken:
    """Cooperative cancellation flag shared between a request and its worker.

    The HTTP layer calls ``cancel()`` when the client goes away or the request
    times out; the pipeline calls ``raise_if_cancelled()`` between stages.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            from scout.core.errors import SearchCancelled

            raise SearchCancelled(f"Cancelled before {stage}", stage=stage)


# ---------------------------------------------------------------------------
# Text and vectors
# ---------------------------------------------------------------------------


def normalize_text(text: str) -> str:
    """Normalize text for fuzzy matching.

    Converts to lowercase, strips punctuation, and collapses whitespace.
    """
    text = text.lower().translate(str.maketrans("", "", string.punctuation))
    return " ".join(text.split())


def normalize_vectors(vectors: np.ndarray, eps: float = 1e-10) -> np.ndarray:
    """L2-normalize vectors to unit norm with numerical stability.

    Args:
        vectors: Array of shape (n, d) or (d,) to normalize.
        eps: Small constant for numerical stability.

    Returns:
        Normalized vectors with the same shape as input.
    """
    import numpy as np

    if vectors.ndim == 1:
        norm = np.linalg.norm(vectors) + eps
        return vectors / norm

    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms = np.where(norms == 0, 1, norms + eps)
    return vectors / norms


def distance_to_similarity(distance: float) -> float:
    """Map a cosine distance in [0, 2] to a similarity in [0, 1]."""
    distance = min(max(float(distance), 0.0), 2.0)
    return 1.0 - distance / 2.0


__all__ = [
    "require_import",
    "thread_safe_singleton",
    "timed_operation",
    "CancellationToken",
    "normalize_text",
    "normalize_vectors",
    "distance_to_similarity",
]
