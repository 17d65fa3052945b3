"""
Candidate selection service.

One generative call picks and orders the final results from the candidate
digest and gives a short reason for each. The model's order is the final
order; unknown or duplicate ids are dropped. Any failure degrades to the top
candidates in similarity order with a generic reason.
"""

from __future__ import annotations

from scout.adapters.llm import LLM_CALL_ERRORS, LLMClient
from scout.api.metrics import observe_stage, record_fallback
from scout.config import MAX_RESULT_LIMIT, SELECTOR_MAX_TOKENS, get_logger
from scout.core.errors import SelectionError
from scout.core.models import Candidate, ParseFailure, SelectionPick, SelectionResult
from scout.core.parsing import parse_selection
from scout.core.prompts import build_selector_prompt
from scout.utils import timed_operation

logger = get_logger(__name__)

FALLBACK_REASON = "Matched based on game description similarity"


def result_limit(requested: int | None, cap: int = MAX_RESULT_LIMIT) -> int:
    """Final list length: min(requested, cap), at least 1."""
    if not requested or requested < 1:
        return cap
    return min(requested, cap)


def rank_by_similarity(
    candidates: list[Candidate],
    limit: int,
    reason: str = FALLBACK_REASON,
) -> list[SelectionResult]:
    """Top ``limit`` candidates by similarity, ties broken by retrieval order."""
    ordered = sorted(
        enumerate(candidates),
        key=lambda pair: (-pair[1].similarity, pair[0]),
    )
    return [
        SelectionResult(candidate=c, reason=reason, rank=rank)
        for rank, (_, c) in enumerate(ordered[:limit], 1)
    ]


def apply_picks(
    picks: list[SelectionPick],
    candidates: list[Candidate],
    limit: int,
) -> list[SelectionResult]:
    """
    Map the model's ordered picks back onto candidates.

    Ids that are not candidates of this request, and repeats, are dropped.
    """
    by_id = {c.item_id: c for c in candidates}
    results: list[SelectionResult] = []
    seen: set[str] = set()

    for pick in picks:
        if len(results) == limit:
            break
        candidate = by_id.get(pick.item_id)
        if candidate is None:
            logger.debug("Selector returned unknown id %s", pick.item_id)
            continue
        if pick.item_id in seen:
            continue
        seen.add(pick.item_id)
        results.append(
            SelectionResult(
                candidate=candidate,
                reason=pick.reason or FALLBACK_REASON,
                rank=len(results) + 1,
            )
        )
    return results


class Reranker:
    """Generative selection over the (popularity-adjusted) candidate list."""

    def __init__(self, client: LLMClient, max_tokens: int = SELECTOR_MAX_TOKENS):
        self.client = client
        self.max_tokens = max_tokens

    def pick(
        self,
        query: str,
        candidates: list[Candidate],
        limit: int,
    ) -> list[SelectionPick] | ParseFailure:
        """
        Call the model and parse its ordered picks.

        Raises:
            TimeoutError, ConnectionError, RuntimeError: From the LLM client.
        """
        system, user = build_selector_prompt(query, candidates, limit)
        with timed_operation("Selection", logger, observe_stage("selection")):
            text, _ = self.client.generate(
                system, user, max_tokens=self.max_tokens, json_mode=True
            )
        return parse_selection(text)

    def select(
        self,
        query: str,
        candidates: list[Candidate],
        requested_limit: int | None = None,
    ) -> list[SelectionResult]:
        """
        Choose and order the final results.

        Args:
            query: Effective query the user searched with.
            candidates: Candidates after the popularity curve.
            requested_limit: Caller's limit; capped at MAX_RESULT_LIMIT.

        Returns:
            Ranked results, never more than the result limit and never
            containing an id absent from ``candidates``.
        """
        if not candidates:
            return []

        limit = result_limit(requested_limit)
        try:
            picks = self.pick(query, candidates, limit)
            if isinstance(picks, ParseFailure):
                raise SelectionError(picks.reason, stage="selection")
        except (SelectionError, *LLM_CALL_ERRORS) as e:
            logger.warning(
                "Selection failed, ranking by similarity: %s",
                e,
                extra={"stage": "selection"},
            )
            record_fallback("selection")
            return rank_by_similarity(candidates, limit)

        results = apply_picks(picks, candidates, limit)
        logger.info(
            "Selected %d of %d candidates (%d picks returned)",
            len(results),
            len(candidates),
            len(picks),
        )
        return results


__all__ = [
    "FALLBACK_REASON",
    "Reranker",
    "apply_picks",
    "rank_by_similarity",
    "result_limit",
]
