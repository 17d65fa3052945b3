"""
Stateless multi-turn conversation protocol.

Nothing is stored server-side. Each response carries a continuation token
(``{originalQuery, refinements, round, version}``); the caller sends it back
unchanged together with the next refinement answer. Because the token is
untrusted input it is validated on every request, and any structural problem
resets the conversation to a fresh round 1 keyed on the literal query.

States: ROUND_1 .. ROUND_max, then CLOSED once round >= max_rounds. In CLOSED
no refinement is accepted and no follow-up questions are surfaced.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from scout.config import MAX_ROUNDS, get_logger
from scout.core.errors import ConversationStateError
from scout.core.models import ConversationState

logger = get_logger(__name__)

TOKEN_VERSION = 1


def start(query: str, max_rounds: int = MAX_ROUNDS) -> ConversationState:
    """Fresh round-1 state for a new query."""
    return ConversationState(original_query=query.strip(), max_rounds=max_rounds)


def advance(state: ConversationState, refinement: str | None) -> ConversationState:
    """
    Accept one refinement answer and move to the next round.

    Blank refinements and refinements arriving in CLOSED leave the state as is.
    """
    answer = (refinement or "").strip()
    if not answer:
        return state
    if state.is_closed:
        logger.info(
            "Refinement ignored: conversation closed at round %d/%d",
            state.round,
            state.max_rounds,
        )
        return state
    return replace(
        state,
        refinements=(*state.refinements, answer),
        round=state.round + 1,
    )


def to_token(state: ConversationState) -> dict[str, Any]:
    """Serialize state into the continuation token echoed by the caller."""
    return {
        "originalQuery": state.original_query,
        "refinements": list(state.refinements),
        "round": state.round,
        "version": state.version,
    }


def _validate_token(token: Any, max_rounds: int) -> ConversationState:
    if not isinstance(token, dict):
        raise ConversationStateError(f"token must be an object, got {type(token).__name__}")

    version = token.get("version", TOKEN_VERSION)
    if version != TOKEN_VERSION:
        raise ConversationStateError(f"unsupported token version: {version!r}")

    original = token.get("originalQuery")
    if not isinstance(original, str) or not original.strip():
        raise ConversationStateError("originalQuery must be a non-empty string")

    refinements = token.get("refinements", [])
    if not isinstance(refinements, list) or not all(
        isinstance(r, str) and r.strip() for r in refinements
    ):
        raise ConversationStateError("refinements must be a list of non-empty strings")
    if len(refinements) > max_rounds - 1:
        raise ConversationStateError(
            f"too many refinements: {len(refinements)} > {max_rounds - 1}"
        )

    round_ = token.get("round")
    # bool is an int subclass; reject it explicitly
    if not isinstance(round_, int) or isinstance(round_, bool):
        raise ConversationStateError("round must be an integer")
    if not 1 <= round_ <= max_rounds:
        raise ConversationStateError(f"round out of range: {round_}")
    if len(refinements) != round_ - 1:
        raise ConversationStateError(
            f"round {round_} inconsistent with {len(refinements)} refinements"
        )

    return ConversationState(
        original_query=original.strip(),
        refinements=tuple(r.strip() for r in refinements),
        round=round_,
        max_rounds=max_rounds,
        version=TOKEN_VERSION,
    )


def _load_token(token: Any, max_rounds: int) -> ConversationState | None:
    try:
        return _validate_token(token, max_rounds)
    except ConversationStateError as e:
        logger.warning(
            "Invalid conversation token, starting fresh: %s",
            e.detail,
            extra={"stage": "conversation"},
        )
        return None


def from_token(token: Any, query: str, max_rounds: int = MAX_ROUNDS) -> ConversationState:
    """
    Rebuild state from an incoming continuation token.

    Args:
        token: Untrusted token as received from the caller.
        query: Literal query string of this request, used on reset.
        max_rounds: Round cap.

    Returns:
        The validated state, or a fresh round-1 state for ``query`` when the
        token is malformed.
    """
    state = _load_token(token, max_rounds)
    return state if state is not None else start(query, max_rounds)


def resume(
    token: Any,
    query: str,
    refinement: str | None = None,
    max_rounds: int = MAX_ROUNDS,
) -> ConversationState:
    """
    Entry-point helper: state for this request.

    Without a token, or with a malformed one, the request starts round 1 and
    any refinement is ignored. With a valid token the refinement (if any)
    advances the round.
    """
    state = _load_token(token, max_rounds) if token is not None else None
    if state is None:
        return start(query, max_rounds)
    return advance(state, refinement)


__all__ = [
    "TOKEN_VERSION",
    "start",
    "advance",
    "to_token",
    "from_token",
    "resume",
]
