"""
Translate filter predicates into SQLAlchemy clauses over the listings table.

Scalar predicates map onto ``listings`` columns. ``features`` is a child
table, so collection predicates on it become correlated EXISTS subqueries.
"""

from __future__ import annotations

from sqlalchemy import and_, exists, false, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from carmarket.models.listings import Listing, ListingFeature
from carmarket.search.filters import (
    AllOf,
    AnyOf,
    Contains,
    ContainsAll,
    ContainsAny,
    Equals,
    Filter,
    IsNull,
    OneOf,
    Range,
)

COLLECTION_FIELDS = {"features"}


def _column(name: str) -> ColumnElement:
    try:
        return Listing.__table__.c[name]
    except KeyError:
        raise ValueError(f"Unknown listing field '{name}'") from None


def _has_feature(*conditions: ColumnElement[bool]) -> ColumnElement[bool]:
    return exists(
        select(ListingFeature.feature).where(
            ListingFeature.listing_id == Listing.id, *conditions
        )
    )


def to_clause(f: Filter) -> ColumnElement[bool]:
    """
    Build a WHERE clause for a filter tree.

    Args:
        f: Filter predicate

    Returns:
        ColumnElement[bool]: Clause usable in ``select(Listing).where(...)``

    Raises:
        ValueError: If the filter references an unknown field
    """
    if isinstance(f, AllOf):
        return and_(true(), *(to_clause(clause) for clause in f.clauses))
    if isinstance(f, AnyOf):
        return or_(false(), *(to_clause(clause) for clause in f.clauses))

    if f.field in COLLECTION_FIELDS:
        if isinstance(f, ContainsAll):
            return and_(*(_has_feature(ListingFeature.feature == value) for value in f.values))
        if isinstance(f, ContainsAny):
            return _has_feature(ListingFeature.feature.in_(f.values))
        raise ValueError(f"Unsupported predicate {type(f).__name__} on '{f.field}'")

    column = _column(f.field)

    if isinstance(f, Equals):
        return column.is_(f.value) if isinstance(f.value, bool) else column == f.value
    if isinstance(f, (OneOf, ContainsAny)):
        return column.in_(f.values)
    if isinstance(f, ContainsAll):
        return and_(*(column == value for value in f.values))
    if isinstance(f, Range):
        bounds = []
        if f.gte is not None:
            bounds.append(column >= f.gte)
        if f.lte is not None:
            bounds.append(column <= f.lte)
        if f.gt is not None:
            bounds.append(column > f.gt)
        if f.lt is not None:
            bounds.append(column < f.lt)
        return and_(true(), *bounds)
    if isinstance(f, Contains):
        return column.icontains(f.term, autoescape=True)
    if isinstance(f, IsNull):
        return column.is_(None)

    raise ValueError(f"Unsupported predicate {type(f).__name__}")
