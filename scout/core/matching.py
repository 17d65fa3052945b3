"""
Fuzzy title matching used to resolve "games like X" to a corpus item.

Rank order: exact case-insensitive title, then prefix, then substring.
Ties go to the item with more reviews; unknown review counts sort last.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from scout.core.models import Item

EXACT = 0
PREFIX = 1
SUBSTRING = 2


def name_match_rank(query: str, name: str) -> int | None:
    """Match tier of ``name`` for ``query``, or None when it does not match."""
    q = query.strip().casefold()
    n = (name or "").strip().casefold()
    if not q or not n:
        return None
    if n == q:
        return EXACT
    if n.startswith(q):
        return PREFIX
    if q in n:
        return SUBSTRING
    return None


def rank_name_matches(
    query: str,
    items: Iterable[Item],
    require_embedding: bool = True,
) -> list[Item]:
    """
    Matching items ordered best first.

    Args:
        query: Title as written by the user or the classifier.
        items: Items to consider.
        require_embedding: Skip items that have no stored vector.
    """
    scored = []
    for item in items:
        if require_embedding and not item.has_embedding:
            continue
        rank = name_match_rank(query, item.name)
        if rank is None:
            continue
        count = item.review_count
        scored.append(((rank, count is None, -(count or 0)), item))
    scored.sort(key=lambda pair: pair[0])
    return [item for _, item in scored]


__all__ = ["EXACT", "PREFIX", "SUBSTRING", "name_match_rank", "rank_name_matches"]
