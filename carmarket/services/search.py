"""
Public listing search.

The compiled client filter is ANDed with the default visibility predicate
before it reaches SQL, so hidden listings (expired, deleted, unapproved,
sold past their grace window) never come back from a default search.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import asc, desc, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.elements import ColumnElement

from carmarket.db.readers.listings import (
    count_listings_by_make,
    get_images_for_listings,
    row_to_dict,
)
from carmarket.errors import ValidationError
from carmarket.lifecycle.state_machine import default_visibility
from carmarket.metrics import search_latency, search_requests
from carmarket.models.listings import Listing, ListingFeature
from carmarket.search.compiler import compile_query
from carmarket.search.filters import GeoRadius, and_
from carmarket.search.sql import to_clause
from carmarket.utils.datetime import utc_now
from carmarket.utils.geo import bounding_box, haversine_meters
from carmarket.utils.params import to_int

logger = structlog.get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50

SORT_FIELDS = {
    "price": Listing.price,
    "year": Listing.year,
    "mileage": Listing.mileage,
    "numberOfCylinders": Listing.number_of_cylinders,
    "carDoors": Listing.car_doors,
    "createdAt": Listing.created_at,
}


@dataclass
class SearchPage:
    items: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    pages: int = field(init=False)

    def __post_init__(self) -> None:
        self.pages = (self.total + self.limit - 1) // self.limit if self.total else 0


def pagination(params: Mapping[str, Any]) -> tuple[int, int]:
    """Page number and page size from client params, clamped to 1..MAX_PAGE_SIZE."""
    page = to_int(params.get("page")) or DEFAULT_PAGE
    limit = to_int(params.get("limit")) or DEFAULT_PAGE_SIZE
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


def _ordering(params: Mapping[str, Any]) -> list[ColumnElement]:
    """Promoted listings first, then the requested field, newest first as tiebreak."""
    ordering: list[ColumnElement] = [
        desc(Listing.featured),
        desc(Listing.is_boosted),
        desc(Listing.boost_priority),
    ]
    column = SORT_FIELDS.get(str(params.get("sort") or ""))
    if column is not None:
        direction = asc if str(params.get("order") or "").lower() == "asc" else desc
        ordering.append(direction(column))
    ordering += [desc(Listing.created_at), desc(Listing.id)]
    return ordering


def attach_children(conn: Connection, items: list[dict[str, Any]]) -> None:
    ids = [item["id"] for item in items]
    images = get_images_for_listings(conn, ids)

    features: dict[int, list[str]] = {listing_id: [] for listing_id in ids}
    if ids:
        rows = conn.execute(
            select(ListingFeature.listing_id, ListingFeature.feature)
            .where(ListingFeature.listing_id.in_(ids))
            .order_by(ListingFeature.feature)
        )
        for listing_id, feature in rows:
            features[listing_id].append(feature)

    for item in items:
        item["images"] = images.get(item["id"], [])
        item["features"] = features[item["id"]]


def _geo_candidates(
    conn: Connection, where: ColumnElement[bool], geo: GeoRadius
) -> list[tuple[int, float]]:
    """Ids within the radius, nearest first, with their distance in meters."""
    min_lat, max_lat, min_lng, max_lng = bounding_box(
        geo.latitude, geo.longitude, geo.radius_meters
    )
    box = [
        Listing.latitude.is_not(None),
        Listing.longitude.is_not(None),
        Listing.latitude.between(min_lat, max_lat),
    ]
    if min_lng is not None:
        box.append(Listing.longitude.between(min_lng, max_lng))

    rows = conn.execute(
        select(Listing.id, Listing.latitude, Listing.longitude).where(where, *box)
    )
    hits = []
    for listing_id, lat, lng in rows:
        distance = haversine_meters(geo.latitude, geo.longitude, lat, lng)
        if distance <= geo.radius_meters:
            hits.append((listing_id, distance))
    hits.sort(key=lambda hit: (hit[1], hit[0]))
    return hits


def search_listings(
    engine: Engine,
    params: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> SearchPage:
    """
    Run a public listing search.

    Args:
        engine: SQLAlchemy engine
        params: Raw client query parameters (filters plus page, limit, sort, order)
        now: Clock reading for the visibility window; defaults to the current UTC time

    Returns:
        SearchPage: Matching listings with images and features, and paging totals.
        Geo searches order by distance and include ``distance_meters``.

    Raises:
        ValidationError: If the parameters do not compile
    """
    now = now or utc_now()

    with search_latency.time():
        try:
            compiled = compile_query(params)
        except ValidationError as e:
            search_requests.labels(status="invalid").inc()
            logger.info("search_rejected", field=e.field, error=e.message)
            raise

        page, limit = pagination(params)
        where = to_clause(and_(compiled.filter, default_visibility(now)))
        offset = (page - 1) * limit

        try:
            with engine.connect() as conn:
                if compiled.geo is not None:
                    hits = _geo_candidates(conn, where, compiled.geo)
                    total = len(hits)
                    window = hits[offset : offset + limit]
                    distances = dict(window)
                    rows = conn.execute(
                        select(Listing.__table__).where(Listing.id.in_(list(distances)))
                    ).mappings()
                    by_id = {row["id"]: row_to_dict(row) for row in rows}
                    items = []
                    for listing_id, distance in window:
                        item = by_id[listing_id]
                        item["distance_meters"] = round(distance, 1)
                        items.append(item)
                else:
                    total = conn.execute(
                        select(func.count()).select_from(Listing).where(where)
                    ).scalar_one()
                    rows = conn.execute(
                        select(Listing.__table__)
                        .where(where)
                        .order_by(*_ordering(params))
                        .offset(offset)
                        .limit(limit)
                    ).mappings()
                    items = [row_to_dict(row) for row in rows]

                attach_children(conn, items)
        except Exception:
            search_requests.labels(status="failure").inc()
            raise

    search_requests.labels(status="success").inc()
    logger.debug(
        "search_completed",
        total=total,
        page=page,
        limit=limit,
        geo=compiled.geo is not None,
    )
    return SearchPage(items=items, total=int(total), page=page, limit=limit)


def count_visible_by_make(engine: Engine, now: Optional[datetime] = None) -> list[dict[str, Any]]:
    """
    Count publicly visible listings per make for the browse-by-make facet.

    Uses the same visibility predicate as ``search_listings`` so a count
    never promises listings a search would hide.

    Returns:
        list[dict]: ``{"make": ..., "count": ...}``, most listings first
    """
    where = to_clause(default_visibility(now or utc_now()))
    with engine.connect() as conn:
        counts = count_listings_by_make(conn, where)
    return [{"make": make, "count": count} for make, count in counts]
