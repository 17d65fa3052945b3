"""
Error taxonomy for the discovery pipeline.

Fatal errors (``fatal = True``) stop the request and reach the caller as a
generic message plus a detail string. Non-fatal errors are raised inside a
stage, logged, and replaced by that stage's documented fallback.
"""

from __future__ import annotations


class ScoutError(Exception):
    """Base class for all pipeline errors."""

    fatal: bool = True
    status_code: int = 500
    public_message: str = "Failed to perform search"

    def __init__(self, detail: str = "", *, stage: str | None = None):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message
        self.stage = stage

    def to_response(self) -> dict:
        return {"success": False, "error": self.public_message, "details": self.detail}


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


class ValidationError(ScoutError):
    """Missing or invalid request input. Rejected before any stage runs."""

    status_code = 400
    public_message = "Invalid request"

    def to_response(self) -> dict:
        return {"success": False, "error": self.detail}


# ---------------------------------------------------------------------------
# Non-fatal stage errors
# ---------------------------------------------------------------------------


class ClassificationError(ScoutError):
    """Intent classification failed; the heuristic analysis is used instead."""

    fatal = False


class SelectionError(ScoutError):
    """Selection failed; candidates are returned in similarity order."""

    fatal = False


class ConversationStateError(ScoutError):
    """Continuation token was malformed; a fresh round-1 state is used."""

    fatal = False


# ---------------------------------------------------------------------------
# Fatal stage errors
# ---------------------------------------------------------------------------


class EmbeddingError(ScoutError):
    """The embedding service could not produce a vector."""

    status_code = 502
    public_message = "Failed to embed text"


class EmbeddingResolutionError(ScoutError):
    """No query vector could be resolved for the request."""

    status_code = 502
    public_message = "Failed to perform search"


class RetrievalError(ScoutError):
    """The corpus index query failed."""

    status_code = 503
    public_message = "Failed to perform search"


class ProfileNotFoundError(ScoutError):
    """No profile is stored for the requested user."""

    status_code = 404
    public_message = "User profile not found"


class MissingPreferenceVectorError(ProfileNotFoundError):
    """The profile exists but carries no usable preference vector."""

    status_code = 400
    public_message = "User has no preference vector"


class ItemNotFoundError(ScoutError):
    """The requested item is absent from the corpus or has no embedding."""

    status_code = 404
    public_message = "Game not found"


class SearchCancelled(ScoutError):
    """The caller abandoned the request; partial results are discarded."""

    status_code = 499
    public_message = "Search cancelled"


__all__ = [
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
]
