"""Tests for scout.core.parsing: schema-validated model output."""

import json

import pytest

from scout.core.models import IntentType, ParseFailure
from scout.core.parsing import extract_json_block, parse_intent, parse_selection


class TestExtractJsonBlock:
    def test_plain_object(self):
        assert extract_json_block('{"a": 1}') == {"a": 1}

    def test_fenced_block(self):
        text = '```json\n{"results": []}\n```'
        assert extract_json_block(text) == {"results": []}

    def test_surrounding_chatter(self):
        text = 'Sure! Here you go: {"type": "vague"} Hope that helps.'
        assert extract_json_block(text) == {"type": "vague"}

    def test_bare_array(self):
        assert extract_json_block('[{"appId": "1"}]') == [{"appId": "1"}]

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "{broken"])
    def test_unparseable_raises(self, text):
        with pytest.raises(ValueError):
            extract_json_block(text)


class TestParseIntent:
    def test_full_response(self):
        text = json.dumps(
            {
                "type": "specific_game",
                "gameName": "Hades",
                "searchDescription": "fast roguelike action with story",
                "confidence": 92,
                "followUpQuestions": [
                    {"question": "Solo or co-op?", "suggestedAnswers": ["Solo", "Co-op"]}
                ],
            }
        )
        result = parse_intent(text, "games like Hades")
        assert result.type == IntentType.SPECIFIC_GAME
        assert result.game_name == "Hades"
        assert result.confidence == 92
        assert result.follow_up_questions[0].suggested_answers == ["Solo", "Co-op"]

    def test_defaults_for_missing_fields(self):
        result = parse_intent("{}", "cozy farming")
        assert result.type == IntentType.CLEAR_INTENT
        assert result.game_name is None
        assert result.search_description == "cozy farming"
        assert result.confidence == 50
        assert result.follow_up_questions == []

    def test_blank_game_name_is_none(self):
        result = parse_intent('{"type": "specific_game", "gameName": "  "}', "q")
        assert result.game_name is None

    def test_confidence_clamped(self):
        assert parse_intent('{"confidence": 250}', "q").confidence == 100
        assert parse_intent('{"confidence": -3}', "q").confidence == 0

    def test_unknown_type_is_failure(self):
        result = parse_intent('{"type": "mystery"}', "q")
        assert isinstance(result, ParseFailure)

    def test_non_object_is_failure(self):
        assert isinstance(parse_intent("[1, 2]", "q"), ParseFailure)

    def test_garbage_is_failure(self):
        result = parse_intent("I cannot help with that", "q")
        assert isinstance(result, ParseFailure)
        assert result.raw == "I cannot help with that"


class TestParseSelection:
    def test_results_key(self):
        text = json.dumps({"results": [{"appId": "1", "reason": "Tight combat."}]})
        picks = parse_selection(text)
        assert [(p.item_id, p.reason) for p in picks] == [("1", "Tight combat.")]

    def test_games_key_and_numeric_ids(self):
        picks = parse_selection(json.dumps({"games": [{"appId": 1145360, "reason": "x"}]}))
        assert picks[0].item_id == "1145360"

    def test_bare_list_and_item_id_alias(self):
        picks = parse_selection(json.dumps([{"item_id": "7"}, {"id": "8", "reason": "y"}]))
        assert [p.item_id for p in picks] == ["7", "8"]
        assert picks[0].reason == ""

    def test_malformed_entries_dropped(self):
        picks = parse_selection(json.dumps({"results": [{"reason": "no id"}, {"appId": "2"}]}))
        assert [p.item_id for p in picks] == ["2"]

    def test_empty_selection_is_valid(self):
        assert parse_selection('{"results": []}') == []

    def test_all_entries_malformed_is_failure(self):
        assert isinstance(parse_selection('{"results": [{"reason": "x"}]}'), ParseFailure)

    def test_missing_array_is_failure(self):
        assert isinstance(parse_selection('{"picks": "none"}'), ParseFailure)

    def test_unparseable_is_failure(self):
        assert isinstance(parse_selection("nope"), ParseFailure)
