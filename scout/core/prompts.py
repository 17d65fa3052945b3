"""
LLM prompt templates for the three generative stages.

Prompt design notes:
1. Classifier and selector ask for JSON only; the adapters also request JSON
   mode where the provider supports it.
2. Follow-up questions never mention platform. The corpus is a single
   storefront, so the question can only waste a round.
3. The describer has an explicit UNKNOWN escape so the resolver can tell
   "never heard of it" apart from a confident description.
4. Candidate digests are compact and truncated; the selector sees up to 50.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from scout.config import DIGEST_DESCRIPTION_CHARS, DIGEST_MAX_TAGS

if TYPE_CHECKING:
    from scout.core.models import Candidate


UNKNOWN_SENTINEL = "UNKNOWN"


# ---------------------------------------------------------------------------
# Intent classification
# ---------------------------------------------------------------------------

CLASSIFIER_SYSTEM_PROMPT = """Analyze this game search query and extract the user's intent.{context_note}

If the query references a specific game (e.g. "games like Hades", "similar to Stardew Valley"):
- type: "specific_game"
- gameName: the exact game name mentioned
- searchDescription: that game's core appeal in 2-3 sentences

If the query describes what they want (e.g. "cozy farming games", "roguelike with good combat"):
- type: "clear_intent"
- gameName: null
- searchDescription: their request rephrased as a description of the ideal game

If the query is vague (e.g. "fun games", "something good"):
- type: "vague"
- gameName: null
- searchDescription: your best interpretation

Generate exactly 3 follow-up questions that narrow the results. Each question must
cover a different aspect and help rule out games that do not fit.

NEVER ask about platform or console. Every game in the catalog is a PC game.

For each question:
- question: SHORT clarifying question, 5-10 words
  Good: "Online or local co-op?", "Prefer challenging or relaxing?"
  Never: "What platform?", "PC or console?"
- suggestedAnswers: 2-4 SHORT answers, 1-3 words each

Return JSON only:
{{"type": "...", "gameName": "..." or null, "searchDescription": "...", "confidence": 0-100,
 "followUpQuestions": [{{"question": "...", "suggestedAnswers": ["...", "..."]}}, ...]}}"""


def build_classifier_prompt(query: str, refinements: list[str] | tuple[str, ...] = ()) -> tuple[str, str]:
    """Return (system, user) prompts for intent classification."""
    context_note = ""
    if refinements:
        context_note = f"\n\nUser has already specified: {', '.join(refinements)}"
    return CLASSIFIER_SYSTEM_PROMPT.format(context_note=context_note), query


# ---------------------------------------------------------------------------
# Description synthesis
# ---------------------------------------------------------------------------

DESCRIBER_SYSTEM_PROMPT = f"""You are a game expert. Describe the given game's key characteristics for finding similar games.

Include:
- Primary genres (roguelike, RPG, shooter, ...)
- Core mechanics (deck-building, extraction, base-building, ...)
- Feel and vibes (cozy, intense, atmospheric, challenging, ...)
- Setting and theme (sci-fi, fantasy, post-apocalyptic, ...)
- Multiplayer aspects if relevant (co-op, PvP, solo)
- Games it is often compared to

Write 2-3 dense sentences about what makes it distinctive and what players enjoy.
If you do not know the game, reply with "{UNKNOWN_SENTINEL}" and nothing else."""


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

SELECTOR_SYSTEM_PROMPT = """You are a game recommendation expert. Given a user's search query and a list of candidate games, select UP TO {limit} games that match what the user is looking for.

Consider:
- Gameplay style, mechanics and the "vibes" the user describes
- Genre preferences, explicit or implied
- Quality signals (review scores)
- Specific requirements in the query
- "Features" lists store categories such as "Co-op", "Online PvP", "4-player local"

Return a JSON object with a "results" array of objects with:
- "appId": the game's ID (string)
- "reason": one sentence on why this game matches

Example:
{{"results": [{{"appId": "413150", "reason": "Cozy farming sim with light combat"}}]}}

For broad queries (like "co-op games" or "relaxing games") include many results, aiming for {limit}.
Return fewer only for very specific queries where few games truly match."""

SELECTOR_USER_TEMPLATE = """User's search: "{query}"

Candidate games:
{digest}

Select the best matches and explain why each fits the user's request."""


def format_candidate_digest(
    candidates: list[Candidate],
    max_description_chars: int = DIGEST_DESCRIPTION_CHARS,
    max_tags: int = DIGEST_MAX_TAGS,
) -> str:
    """
    Format candidates as a numbered digest for the selector prompt.

    Args:
        candidates: Candidates in presentation order.
        max_description_chars: Description truncation length.
        max_tags: Maximum tags listed per game.

    Returns:
        Digest string, one block per candidate separated by blank lines.
    """
    blocks = []
    for i, candidate in enumerate(candidates, 1):
        item = candidate.item
        lines = [f'{i}. "{item.name}" (ID: {item.item_id})']
        if item.genres:
            lines.append(f"   Genres: {', '.join(item.genres)}")
        if item.categories:
            lines.append(f"   Features: {', '.join(item.categories)}")
        if item.tags:
            lines.append(f"   Tags: {', '.join(item.tags[:max_tags])}")
        if item.review_score:
            lines.append(f"   Reviews: {item.review_score:g}% positive")
        if item.release_year:
            lines.append(f"   Year: {item.release_year}")
        if item.short_description:
            desc = item.short_description
            if len(desc) > max_description_chars:
                desc = desc[:max_description_chars] + "..."
            lines.append(f"   Desc: {desc}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_selector_prompt(
    query: str,
    candidates: list[Candidate],
    limit: int,
) -> tuple[str, str]:
    """Return (system, user) prompts for candidate selection."""
    system = SELECTOR_SYSTEM_PROMPT.format(limit=limit)
    user = SELECTOR_USER_TEMPLATE.format(
        query=query,
        digest=format_candidate_digest(candidates),
    )
    return system, user


__all__ = [
    "UNKNOWN_SENTINEL",
    "CLASSIFIER_SYSTEM_PROMPT",
    "DESCRIBER_SYSTEM_PROMPT",
    "SELECTOR_SYSTEM_PROMPT",
    "SELECTOR_USER_TEMPLATE",
    "build_classifier_prompt",
    "build_selector_prompt",
    "format_candidate_digest",
]
