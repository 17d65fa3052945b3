"""
Schema-validated parsing of generative responses.

Model output is untrusted text. Each parser returns either a typed result or
a :class:`ParseFailure`; an unexpected shape is never coerced into data.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from scout.config import get_logger
from scout.core.models import (
    FollowUpQuestion,
    IntentAnalysis,
    IntentType,
    ParseFailure,
    SelectionPick,
)

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 50


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def extract_json_block(text: str) -> dict[str, Any] | list[Any]:
    """
    Pull a JSON object or array out of a model response.

    Handles fenced code blocks and leading/trailing chatter.

    Raises:
        ValueError: If no JSON object or array can be parsed.
    """
    raw = (text or "").strip()
    if not raw:
        raise ValueError("Model returned an empty response.")

    if raw.startswith("```"):
        first_newline = raw.find("\n")
        last_fence = raw.rfind("```")
        if first_newline != -1 and last_fence > first_newline:
            raw = raw[first_newline:last_fence].strip()

    candidates = [raw]
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = raw.find(open_ch)
        end = raw.rfind(close_ch)
        if start != -1 and end > start:
            candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, (dict, list)):
            return parsed

    raise ValueError(f"Could not parse JSON from model response: {text[:200]}")


# ---------------------------------------------------------------------------
# Intent schema
# ---------------------------------------------------------------------------


class FollowUpSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = Field(min_length=1)
    suggested_answers: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("suggestedAnswers", "suggested_answers", "answers"),
    )


class IntentSchema(BaseModel):
    """Classifier response. Missing optional fields take documented defaults."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: IntentType = IntentType.CLEAR_INTENT
    game_name: str | None = Field(None, validation_alias=AliasChoices("gameName", "game_name"))
    search_description: str | None = Field(
        None, validation_alias=AliasChoices("searchDescription", "search_description")
    )
    confidence: float | None = None
    follow_up_questions: list[FollowUpSchema] | None = Field(
        None, validation_alias=AliasChoices("followUpQuestions", "follow_up_questions")
    )

    @field_validator("game_name", "search_description")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


def parse_intent(text: str, query: str) -> IntentAnalysis | ParseFailure:
    """
    Parse a classifier response.

    Args:
        text: Raw model output.
        query: Effective query, used when the description is missing.

    Returns:
        IntentAnalysis, or ParseFailure for unparseable or schema-invalid output.
        Follow-up questions are returned as given; the classifier normalizes them.
    """
    try:
        data = extract_json_block(text)
    except ValueError as e:
        return ParseFailure(reason=str(e), raw=text or "")
    if not isinstance(data, dict):
        return ParseFailure(reason="expected a JSON object", raw=text)

    try:
        schema = IntentSchema.model_validate(data)
    except ValidationError as e:
        return ParseFailure(reason=f"schema mismatch: {e.error_count()} errors", raw=text)

    confidence = DEFAULT_CONFIDENCE if schema.confidence is None else schema.confidence
    questions = [
        FollowUpQuestion(
            question=q.question.strip(),
            suggested_answers=[a.strip() for a in q.suggested_answers if a and a.strip()],
        )
        for q in (schema.follow_up_questions or [])
    ]

    return IntentAnalysis(
        type=schema.type,
        game_name=schema.game_name,
        search_description=schema.search_description or query,
        confidence=int(min(max(confidence, 0), 100)),
        follow_up_questions=questions,
    )


# ---------------------------------------------------------------------------
# Selection schema
# ---------------------------------------------------------------------------


class PickSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_id: str = Field(validation_alias=AliasChoices("appId", "item_id", "id"))
    reason: str = ""

    @field_validator("item_id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        # Ids often come back as numbers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


def parse_selection(text: str) -> list[SelectionPick] | ParseFailure:
    """
    Parse a selector response into ordered picks.

    Accepts ``{"results": [...]}``, ``{"games": [...]}`` or a bare array.
    Individual malformed entries are dropped; a response with no usable
    array is a ParseFailure. An empty array is a valid empty selection.
    """
    try:
        data = extract_json_block(text)
    except ValueError as e:
        return ParseFailure(reason=str(e), raw=text or "")

    if isinstance(data, dict):
        entries = data.get("results", data.get("games"))
    else:
        entries = data
    if not isinstance(entries, list):
        return ParseFailure(reason="no results array in selection response", raw=text)

    picks: list[SelectionPick] = []
    dropped = 0
    for entry in entries:
        try:
            pick = PickSchema.model_validate(entry)
        except ValidationError:
            dropped += 1
            continue
        picks.append(SelectionPick(item_id=pick.item_id, reason=pick.reason.strip()))

    if dropped:
        logger.debug("Dropped %d malformed selection entries", dropped)
    if entries and not picks:
        return ParseFailure(reason="no valid entries in selection response", raw=text)
    return picks


__all__ = [
    "DEFAULT_CONFIDENCE",
    "extract_json_block",
    "FollowUpSchema",
    "IntentSchema",
    "PickSchema",
    "parse_intent",
    "parse_selection",
]
