"""
Embedding resolution service.

Maps an IntentAnalysis to the single vector the request searches with:

1. specific_game with a name: fuzzy title match in the corpus. A match
   contributes its stored embedding and is recorded for self-exclusion.
2. specific_game without a match: ask the describer for a description of
   the game. UNKNOWN (or a failed call) falls back to the search description;
   otherwise the synthesized description is embedded.
3. Any other intent: embed the search description.

Failing to produce a vector is fatal and raised as EmbeddingResolutionError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from scout.adapters.llm import LLM_CALL_ERRORS, LLMClient
from scout.api.metrics import observe_stage, record_fallback
from scout.config import DESCRIBER_MAX_TOKENS, get_logger
from scout.core.errors import EmbeddingError, EmbeddingResolutionError, RetrievalError
from scout.core.models import IntentAnalysis, IntentType, ResolutionSource, ResolvedQuery
from scout.core.prompts import DESCRIBER_SYSTEM_PROMPT, UNKNOWN_SENTINEL
from scout.utils import CancellationToken, timed_operation

if TYPE_CHECKING:
    from scout.adapters.embeddings import EmbeddingService
    from scout.adapters.vector_store import ItemCorpusIndex

logger = get_logger(__name__)


def is_unknown(description: str | None) -> bool:
    """True for the describer's UNKNOWN sentinel or an empty reply."""
    text = (description or "").strip().strip(".\"'").strip()
    return not text or text.upper() == UNKNOWN_SENTINEL


class GenerativeDescriber:
    """Describe a game by name for embedding, or return UNKNOWN."""

    def __init__(self, client: LLMClient, max_tokens: int = DESCRIBER_MAX_TOKENS):
        self.client = client
        self.max_tokens = max_tokens

    def describe(self, name: str) -> str:
        """
        Raises:
            TimeoutError, ConnectionError, RuntimeError: From the LLM client.
        """
        with timed_operation("Description", logger, observe_stage("description")):
            text, _ = self.client.generate(
                DESCRIBER_SYSTEM_PROMPT, name, max_tokens=self.max_tokens
            )
        text = (text or "").strip()
        return UNKNOWN_SENTINEL if is_unknown(text) else text


class EmbeddingResolver:
    """Resolve an intent to a query vector in the corpus embedding space."""

    def __init__(
        self,
        embedder: EmbeddingService,
        index: ItemCorpusIndex,
        describer: GenerativeDescriber,
    ):
        self.embedder = embedder
        self.index = index
        self.describer = describer

    def embed_text(
        self,
        text: str,
        source: ResolutionSource = ResolutionSource.SEARCH_DESCRIPTION,
    ) -> ResolvedQuery:
        """Embed ``text`` directly. Raises EmbeddingResolutionError on failure."""
        try:
            with timed_operation("Embedding", logger, observe_stage("embedding")):
                vector = self.embedder.embed(text)
        except EmbeddingError as e:
            raise EmbeddingResolutionError(e.detail, stage="embedding") from e
        return ResolvedQuery(vector=np.asarray(vector), source=source, embedded_text=text)

    def _describe(self, name: str) -> str | None:
        try:
            description = self.describer.describe(name)
        except LLM_CALL_ERRORS as e:
            logger.warning(
                "Description synthesis failed for %r, using search description: %s",
                name,
                e,
                extra={"stage": "description"},
            )
            record_fallback("description")
            return None
        if is_unknown(description):
            logger.info("Describer does not know %r", name)
            return None
        return description

    def resolve(
        self,
        analysis: IntentAnalysis,
        cancel: CancellationToken | None = None,
    ) -> ResolvedQuery:
        """
        Produce the query vector for an analysis.

        Args:
            analysis: Classifier output.
            cancel: Checked before each external call.

        Returns:
            ResolvedQuery. ``matched_item`` is set when a corpus title matched.

        Raises:
            EmbeddingResolutionError: If no vector can be produced.
            SearchCancelled: If the request was cancelled.
        """
        if analysis.type == IntentType.SPECIFIC_GAME and analysis.game_name:
            name = analysis.game_name

            if cancel is not None:
                cancel.raise_if_cancelled("title lookup")
            try:
                matched = self.index.find_by_name(name)
            except RetrievalError as e:
                raise EmbeddingResolutionError(e.detail, stage="title lookup") from e

            if matched is not None and matched.has_embedding:
                vector = np.asarray(matched.embedding, dtype=np.float32)
                if vector.shape != (self.index.dim,):
                    raise EmbeddingResolutionError(
                        f"stored embedding for {matched.item_id} has shape {vector.shape}",
                        stage="title lookup",
                    )
                logger.info("Matched %r to corpus item %s (%s)", name, matched.item_id, matched.name)
                return ResolvedQuery(
                    vector=vector,
                    source=ResolutionSource.MATCHED_ITEM,
                    matched_item=matched,
                )

            if cancel is not None:
                cancel.raise_if_cancelled("description")
            description = self._describe(name)
            if description is not None:
                if cancel is not None:
                    cancel.raise_if_cancelled("embedding")
                return self.embed_text(description, ResolutionSource.SYNTHESIZED_DESCRIPTION)

        if cancel is not None:
            cancel.raise_if_cancelled("embedding")
        return self.embed_text(analysis.search_description, ResolutionSource.SEARCH_DESCRIPTION)


__all__ = ["GenerativeDescriber", "EmbeddingResolver", "is_unknown"]
