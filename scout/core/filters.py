"""
Composable filter predicates for corpus queries.

Filters are built as data (field, operator, value) rather than query strings,
so one predicate can be rendered to a Qdrant ``Filter`` for the vector store
and evaluated in memory for the numpy index and for tests.

Usage:
    spec = (
        FilterBuilder()
        .at_least("review_score", 80)
        .between("release_year", 2015, None)
        .any_of("genres", ["Roguelike", "Action"])
        .exclude_ids({"1145360"})
        .build()
    )
    qdrant_filter = spec.to_qdrant()
    keep = [item for item in items if spec.matches(item)]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:
    from qdrant_client.models import Filter

    from scout.core.models import Item


# Payload fields a predicate may reference, and whether they hold a list.
FILTERABLE_FIELDS = {
    "review_score": False,
    "review_count": False,
    "release_year": False,
    "is_free": False,
    "genres": True,
    "tags": True,
    "categories": True,
}

GTE = "gte"
LTE = "lte"
EQ = "eq"
ANY = "any"


@dataclass(frozen=True)
class Condition:
    """A single parameterized predicate on one payload field."""

    field: str
    op: str
    value: Any

    def matches(self, item: Item) -> bool:
        actual = getattr(item, self.field)
        if self.op == ANY:
            values = set(actual or [])
            return any(v in values for v in self.value)
        # Missing scalars never satisfy a comparison
        if actual is None:
            return False
        if self.op == GTE:
            return actual >= self.value
        if self.op == LTE:
            return actual <= self.value
        return actual == self.value

    def to_qdrant(self):
        from qdrant_client.models import FieldCondition, MatchAny, MatchValue, Range

        if self.op == GTE:
            return FieldCondition(key=self.field, range=Range(gte=self.value))
        if self.op == LTE:
            return FieldCondition(key=self.field, range=Range(lte=self.value))
        if self.op == ANY:
            return FieldCondition(key=self.field, match=MatchAny(any=list(self.value)))
        return FieldCondition(key=self.field, match=MatchValue(value=self.value))


@dataclass(frozen=True)
class FilterSpec:
    """An immutable conjunction of conditions plus an excluded-id set."""

    conditions: tuple[Condition, ...] = ()
    excluded_ids: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.conditions and not self.excluded_ids

    def matches(self, item: Item) -> bool:
        if item.item_id in self.excluded_ids:
            return False
        return all(c.matches(item) for c in self.conditions)

    def merge(self, other: FilterSpec) -> FilterSpec:
        return FilterSpec(
            conditions=self.conditions + other.conditions,
            excluded_ids=self.excluded_ids | other.excluded_ids,
        )

    def to_qdrant(self) -> Filter | None:
        """Render to a Qdrant filter, or None when nothing constrains the query."""
        if self.is_empty:
            return None

        from qdrant_client.models import FieldCondition, Filter, MatchAny

        must = [c.to_qdrant() for c in self.conditions]
        must_not = []
        if self.excluded_ids:
            must_not.append(
                FieldCondition(key="item_id", match=MatchAny(any=sorted(self.excluded_ids)))
            )
        return Filter(must=must or None, must_not=must_not or None)


class FilterBuilder:
    """Fluent builder for :class:`FilterSpec`. Unknown fields raise ValueError."""

    def __init__(self) -> None:
        self._conditions: list[Condition] = []
        self._excluded: set[str] = set()

    def _add(self, field_name: str, op: str, value: Any) -> FilterBuilder:
        if field_name not in FILTERABLE_FIELDS:
            raise ValueError(f"Field is not filterable: {field_name}")
        if op == ANY and not FILTERABLE_FIELDS[field_name]:
            raise ValueError(f"any_of requires a list field, got: {field_name}")
        self._conditions.append(Condition(field_name, op, value))
        return self

    def at_least(self, field_name: str, value: float | int | None) -> FilterBuilder:
        if value is not None:
            self._add(field_name, GTE, value)
        return self

    def at_most(self, field_name: str, value: float | int | None) -> FilterBuilder:
        if value is not None:
            self._add(field_name, LTE, value)
        return self

    def between(self, field_name: str, low, high) -> FilterBuilder:
        return self.at_least(field_name, low).at_most(field_name, high)

    def equals(self, field_name: str, value: Any) -> FilterBuilder:
        if value is not None:
            self._add(field_name, EQ, value)
        return self

    def any_of(self, field_name: str, values: Iterable[str] | None) -> FilterBuilder:
        values = tuple(v for v in (values or ()) if v)
        if values:
            self._add(field_name, ANY, values)
        return self

    def exclude_ids(self, ids: Iterable[str] | None) -> FilterBuilder:
        self._excluded.update(str(i) for i in (ids or ()))
        return self

    def build(self) -> FilterSpec:
        return FilterSpec(tuple(self._conditions), frozenset(self._excluded))


@dataclass
class SearchFilters:
    """Caller-facing filter options for search and recommendation requests."""

    min_review_score: float | None = None
    min_review_count: int | None = None
    max_review_count: int | None = None
    release_year_min: int | None = None
    release_year_max: int | None = None
    is_free: bool | None = None
    genres: list[str] = field(default_factory=list)

    def to_spec(self, exclude: Iterable[str] | None = None) -> FilterSpec:
        return (
            FilterBuilder()
            .at_least("review_score", self.min_review_score)
            .between("review_count", self.min_review_count, self.max_review_count)
            .between("release_year", self.release_year_min, self.release_year_max)
            .equals("is_free", self.is_free)
            .any_of("genres", self.genres)
            .exclude_ids(exclude)
            .build()
        )


__all__ = [
    "FILTERABLE_FIELDS",
    "Condition",
    "FilterSpec",
    "FilterBuilder",
    "SearchFilters",
]
