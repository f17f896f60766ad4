"""
Immutable filter predicates produced by the query compiler.

A filter is a small tree of frozen dataclasses. Field names are listing
column names (snake_case). Trees compose with ``AllOf``/``AnyOf`` and are
translated to SQL by ``carmarket.search.sql``; nothing here knows about the
database.

Example:
    >>> f = AllOf((Equals("vehicle_type", "Car"), Range("price", gte=500000.0)))
    >>> sorted(fields_of(f))
    ['price', 'vehicle_type']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class OneOf:
    """Set membership on a scalar column."""

    field: str
    values: tuple[Any, ...]


@dataclass(frozen=True)
class Range:
    """Inclusive (gte/lte) and exclusive (gt/lt) bounds; any subset may be set."""

    field: str
    gte: Optional[Any] = None
    lte: Optional[Any] = None
    gt: Optional[Any] = None
    lt: Optional[Any] = None


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match. The term is matched literally."""

    field: str
    term: str


@dataclass(frozen=True)
class ContainsAll:
    """A multi-valued attribute must hold every value."""

    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class ContainsAny:
    """The attribute must hold at least one of the values."""

    field: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class IsNull:
    field: str


@dataclass(frozen=True)
class AllOf:
    clauses: tuple["Filter", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AnyOf:
    clauses: tuple["Filter", ...] = field(default_factory=tuple)


Filter = Union[Equals, OneOf, Range, Contains, ContainsAll, ContainsAny, IsNull, AllOf, AnyOf]


@dataclass(frozen=True)
class GeoRadius:
    """Proximity directive applied by the read path, separate from the filter."""

    latitude: float
    longitude: float
    radius_meters: float


@dataclass(frozen=True)
class CompiledQuery:
    filter: AllOf
    geo: Optional[GeoRadius] = None


def and_(*filters: Filter) -> AllOf:
    """
    Combine filters with logical AND, flattening nested AllOf nodes.

    Args:
        *filters: Filters to combine

    Returns:
        AllOf: A single conjunction
    """
    clauses: list[Filter] = []
    for f in filters:
        if isinstance(f, AllOf):
            clauses.extend(f.clauses)
        else:
            clauses.append(f)
    return AllOf(tuple(clauses))


def fields_of(f: Filter) -> set[str]:
    """Return every field name referenced anywhere in a filter tree."""
    if isinstance(f, (AllOf, AnyOf)):
        names: set[str] = set()
        for clause in f.clauses:
            names |= fields_of(clause)
        return names
    return {f.field}


def find(f: Filter, name: str) -> list[Filter]:
    """Return the leaf predicates on ``name``, searching the whole tree."""
    if isinstance(f, (AllOf, AnyOf)):
        found: list[Filter] = []
        for clause in f.clauses:
            found.extend(find(clause, name))
        return found
    return [f] if f.field == name else []
