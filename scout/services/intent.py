"""
Intent classification service.

Turns the effective query into an IntentAnalysis: intent type, optional game
name, a search description, a confidence score, and exactly three follow-up
questions. This stage always degrades rather than failing: any transport or
parse error produces a heuristic analysis built from the query itself.
"""

from __future__ import annotations

import re

from scout.adapters.llm import LLM_CALL_ERRORS, LLMClient
from scout.api.metrics import observe_stage, record_fallback
from scout.config import CLASSIFIER_MAX_TOKENS, get_logger
from scout.core.errors import ClassificationError
from scout.core.models import FollowUpQuestion, IntentAnalysis, IntentType, ParseFailure
from scout.core.parsing import DEFAULT_CONFIDENCE, parse_intent
from scout.core.prompts import build_classifier_prompt
from scout.utils import normalize_text, timed_operation

logger = get_logger(__name__)

FOLLOW_UP_COUNT = 3
MIN_ANSWERS = 2
MAX_ANSWERS = 4

# Used when the model answered but left out (or spoiled) some questions
DEFAULT_FOLLOW_UPS = (
    FollowUpQuestion("What mood are you in?", ["Relaxing", "Challenging", "Either"]),
    FollowUpQuestion("Solo or with friends?", ["Solo", "Multiplayer", "Either"]),
    FollowUpQuestion("Long sessions or quick plays?", ["Long", "Short", "Either"]),
)

# Used when the classifier response could not be used at all
FALLBACK_FOLLOW_UPS = (
    FollowUpQuestion("What genre interests you most?", ["Action", "RPG", "Strategy", "Indie"]),
    FollowUpQuestion("Prefer story or gameplay?", ["Story", "Gameplay", "Both"]),
    FollowUpQuestion("Challenging or relaxing?", ["Challenging", "Relaxing", "Either"]),
)

_PLATFORM_PATTERN = re.compile(
    r"\b(platforms?|console|pc|playstation|ps[345]|xbox|switch|nintendo|mac|linux|steam ?deck|mobile)\b",
    re.IGNORECASE,
)


def _is_platform_question(question: FollowUpQuestion) -> bool:
    return bool(_PLATFORM_PATTERN.search(question.question))


def normalize_follow_ups(
    questions: list[FollowUpQuestion],
    defaults: tuple[FollowUpQuestion, ...] = DEFAULT_FOLLOW_UPS,
) -> list[FollowUpQuestion]:
    """
    Exactly three short, distinct, platform-free questions.

    Drops platform questions, duplicates (after text normalization) and
    questions with fewer than two answers; clamps answers to four; then
    tops up from ``defaults``.
    """
    result: list[FollowUpQuestion] = []
    seen: set[str] = set()

    for q in [*questions, *defaults]:
        if len(result) == FOLLOW_UP_COUNT:
            break
        key = normalize_text(q.question)
        if not key or key in seen or _is_platform_question(q):
            continue
        answers = []
        for a in q.suggested_answers:
            if a and normalize_text(a) not in {normalize_text(x) for x in answers}:
                answers.append(a)
        if len(answers) < MIN_ANSWERS:
            continue
        seen.add(key)
        result.append(FollowUpQuestion(q.question, answers[:MAX_ANSWERS]))

    return result


def fallback_analysis(query: str) -> IntentAnalysis:
    """Heuristic analysis used whenever classification fails."""
    return IntentAnalysis(
        type=IntentType.CLEAR_INTENT,
        game_name=None,
        search_description=query,
        confidence=DEFAULT_CONFIDENCE,
        follow_up_questions=[
            FollowUpQuestion(q.question, list(q.suggested_answers)) for q in FALLBACK_FOLLOW_UPS
        ],
        fallback=True,
    )


class IntentClassifier:
    """
    Classify a search request with a single LLM call.

    ``classify_raw`` exposes the tagged result (analysis or ParseFailure);
    ``classify`` applies the fallback and never raises for model failures.
    """

    def __init__(self, client: LLMClient, max_tokens: int = CLASSIFIER_MAX_TOKENS):
        self.client = client
        self.max_tokens = max_tokens

    def classify_raw(
        self,
        query: str,
        refinements: list[str] | tuple[str, ...] = (),
    ) -> IntentAnalysis | ParseFailure:
        """
        Call the model and parse its answer.

        Raises:
            TimeoutError, ConnectionError, RuntimeError: From the LLM client.
        """
        system, user = build_classifier_prompt(query, refinements)
        with timed_operation("Classification", logger, observe_stage("classification")):
            text, _ = self.client.generate(
                system, user, max_tokens=self.max_tokens, json_mode=True
            )
        return parse_intent(text, query)

    def classify(
        self,
        query: str,
        refinements: list[str] | tuple[str, ...] = (),
    ) -> IntentAnalysis:
        """
        Classify the effective query.

        Args:
            query: Original query plus refinements, already joined.
            refinements: Prior refinement answers, for prompt context.

        Returns:
            IntentAnalysis with exactly three follow-up questions.
        """
        try:
            result = self.classify_raw(query, refinements)
            if isinstance(result, ParseFailure):
                raise ClassificationError(result.reason, stage="classification")
        except (ClassificationError, *LLM_CALL_ERRORS) as e:
            logger.warning(
                "Classification failed, using heuristic intent: %s",
                e,
                extra={"stage": "classification"},
            )
            record_fallback("classification")
            return fallback_analysis(query)

        if result.type == IntentType.SPECIFIC_GAME and not result.game_name:
            logger.info("specific_game without a game name; treating as clear_intent")
            result.type = IntentType.CLEAR_INTENT

        result.follow_up_questions = normalize_follow_ups(result.follow_up_questions)
        logger.info(
            "Intent: %s game=%s confidence=%d",
            result.type.value,
            result.game_name,
            result.confidence,
        )
        return result


__all__ = [
    "IntentClassifier",
    "DEFAULT_FOLLOW_UPS",
    "FALLBACK_FOLLOW_UPS",
    "normalize_follow_ups",
    "fallback_analysis",
]
