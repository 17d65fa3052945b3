"""Tests for scout.services.resolver: intent to query vector."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from scout.adapters.memory_index import InMemoryCorpusIndex
from scout.core.errors import EmbeddingError, EmbeddingResolutionError, SearchCancelled
from scout.core.models import IntentAnalysis, IntentType, Item, ResolutionSource
from scout.services.resolver import EmbeddingResolver, GenerativeDescriber, is_unknown
from scout.utils import CancellationToken

DIM = 4
QUERY_VECTOR = np.array([0, 0, 0, 1], dtype=np.float32)


def _index() -> InMemoryCorpusIndex:
    return InMemoryCorpusIndex(
        [
            Item("1145360", "Hades", review_count=200000, embedding=np.array([1, 0, 0, 0], dtype=np.float32)),
            Item("2", "Celeste", review_count=90000, embedding=np.array([0, 1, 0, 0], dtype=np.float32)),
        ],
        dim=DIM,
    )


def _embedder(error=None) -> MagicMock:
    embedder = MagicMock()
    embedder.dim = DIM
    if error is not None:
        embedder.embed.side_effect = error
    else:
        embedder.embed.return_value = QUERY_VECTOR
    return embedder


def _describer(reply="UNKNOWN", error=None) -> MagicMock:
    describer = MagicMock(spec=GenerativeDescriber)
    if error is not None:
        describer.describe.side_effect = error
    else:
        describer.describe.return_value = reply
    return describer


def _analysis(type_=IntentType.SPECIFIC_GAME, name="Hades", description="roguelike action"):
    return IntentAnalysis(type=type_, game_name=name, search_description=description, confidence=80)


class TestIsUnknown:
    @pytest.mark.parametrize("text", ["UNKNOWN", "unknown.", ' "Unknown" ', "", None])
    def test_sentinel_variants(self, text):
        assert is_unknown(text)

    def test_real_description(self):
        assert not is_unknown("A cozy farming sim with seasons.")


class TestGenerativeDescriber:
    def test_returns_description(self):
        client = MagicMock()
        client.generate.return_value = ("  Fast roguelike with Greek gods.  ", 40)
        assert GenerativeDescriber(client).describe("Hades") == "Fast roguelike with Greek gods."

    def test_normalizes_unknown(self):
        client = MagicMock()
        client.generate.return_value = ("Unknown.", 3)
        assert GenerativeDescriber(client).describe("Zzyzx Quest") == "UNKNOWN"


class TestEmbeddingResolver:
    def test_exact_match_uses_stored_vector(self):
        embedder = _embedder()
        describer = _describer()
        resolved = EmbeddingResolver(embedder, _index(), describer).resolve(_analysis())
        assert resolved.source == ResolutionSource.MATCHED_ITEM
        assert resolved.matched_item.item_id == "1145360"
        np.testing.assert_array_equal(resolved.vector, [1, 0, 0, 0])
        embedder.embed.assert_not_called()
        describer.describe.assert_not_called()

    def test_unknown_game_uses_search_description(self):
        embedder = _embedder()
        describer = _describer("UNKNOWN")
        resolved = EmbeddingResolver(embedder, _index(), describer).resolve(
            _analysis(name="Obscure Indie Thing", description="moody pixel platformer")
        )
        assert resolved.source == ResolutionSource.SEARCH_DESCRIPTION
        assert resolved.matched_item is None
        embedder.embed.assert_called_once_with("moody pixel platformer")

    def test_known_unmatched_game_embeds_description(self):
        embedder = _embedder()
        describer = _describer("Open-world fantasy RPG with dragons.")
        resolved = EmbeddingResolver(embedder, _index(), describer).resolve(
            _analysis(name="Skyrim")
        )
        assert resolved.source == ResolutionSource.SYNTHESIZED_DESCRIPTION
        assert resolved.embedded_text == "Open-world fantasy RPG with dragons."
        embedder.embed.assert_called_once_with("Open-world fantasy RPG with dragons.")

    def test_describer_error_falls_back(self):
        embedder = _embedder()
        resolved = EmbeddingResolver(
            embedder, _index(), _describer(error=TimeoutError("slow"))
        ).resolve(_analysis(name="Skyrim", description="fantasy rpg"))
        assert resolved.source == ResolutionSource.SEARCH_DESCRIPTION
        embedder.embed.assert_called_once_with("fantasy rpg")

    def test_clear_intent_embeds_description(self):
        embedder = _embedder()
        describer = _describer()
        resolved = EmbeddingResolver(embedder, _index(), describer).resolve(
            _analysis(type_=IntentType.CLEAR_INTENT, name=None, description="cozy farming")
        )
        assert resolved.source == ResolutionSource.SEARCH_DESCRIPTION
        describer.describe.assert_not_called()

    def test_embedding_failure_is_fatal(self):
        resolver = EmbeddingResolver(
            _embedder(error=EmbeddingError("model unavailable")), _index(), _describer()
        )
        with pytest.raises(EmbeddingResolutionError):
            resolver.resolve(_analysis(type_=IntentType.VAGUE, name=None))

    def test_cancelled_before_lookup(self):
        token = CancellationToken()
        token.cancel()
        resolver = EmbeddingResolver(_embedder(), _index(), _describer())
        with pytest.raises(SearchCancelled):
            resolver.resolve(_analysis(), token)

    def test_embed_text(self):
        resolved = EmbeddingResolver(_embedder(), _index(), _describer()).embed_text("roguelike")
        assert resolved.source == ResolutionSource.SEARCH_DESCRIPTION
        assert resolved.vector.shape == (DIM,)
