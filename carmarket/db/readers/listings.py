"""Read queries against the live listing store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from carmarket.models.listings import Listing, ListingFeature, ListingImage
from carmarket.utils.datetime import ensure_utc

LISTING_COLUMNS = Listing.__table__.c


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert a result mapping to a plain dict with aware UTC datetimes."""
    return {
        key: ensure_utc(value) if isinstance(value, datetime) else value
        for key, value in dict(row).items()
    }


def get_listing(conn: Connection, listing_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a single live listing.

    Args:
        conn: Active database connection
        listing_id: Listing primary key

    Returns:
        Optional[dict]: Listing row, or None if it is not in the live store
    """
    row = (
        conn.execute(select(Listing.__table__).where(Listing.id == listing_id))
        .mappings()
        .first()
    )
    return row_to_dict(row) if row else None


def get_listing_images(conn: Connection, listing_id: int) -> list[str]:
    result = conn.execute(
        select(ListingImage.url)
        .where(ListingImage.listing_id == listing_id)
        .order_by(ListingImage.position)
    )
    return list(result.scalars().all())


def get_listing_features(conn: Connection, listing_id: int) -> list[str]:
    result = conn.execute(
        select(ListingFeature.feature)
        .where(ListingFeature.listing_id == listing_id)
        .order_by(ListingFeature.feature)
    )
    return list(result.scalars().all())


def get_images_for_listings(conn: Connection, listing_ids: Iterable[int]) -> dict[int, list[str]]:
    """Fetch ordered image URLs for several listings in one query."""
    ids = list(listing_ids)
    images: dict[int, list[str]] = {listing_id: [] for listing_id in ids}
    if not ids:
        return images

    result = conn.execute(
        select(ListingImage.listing_id, ListingImage.url)
        .where(ListingImage.listing_id.in_(ids))
        .order_by(ListingImage.listing_id, ListingImage.position)
    )
    for listing_id, url in result:
        images[listing_id].append(url)
    return images


def find_shared_image_urls(
    conn: Connection, urls: Iterable[str], exclude_listing_id: int
) -> set[str]:
    """
    Return the URLs that another live listing still references.

    A relist copies its source's image URLs, so deleting them from the
    object store when the source is archived would break the new listing.

    Args:
        conn: Active database connection
        urls: Image URLs of the listing being archived
        exclude_listing_id: The listing being archived

    Returns:
        set[str]: URLs that must be kept
    """
    candidates = list(urls)
    if not candidates:
        return set()

    result = conn.execute(
        select(ListingImage.url)
        .where(ListingImage.url.in_(candidates))
        .where(ListingImage.listing_id != exclude_listing_id)
        .distinct()
    )
    return set(result.scalars().all())


def count_active_listings(conn: Connection, owner_id: int) -> int:
    result = conn.execute(
        select(func.count())
        .select_from(Listing)
        .where(Listing.owner_id == owner_id)
        .where(Listing.status == "active")
    )
    return int(result.scalar_one())


def find_duplicate_candidates(
    conn: Connection,
    owner_id: int,
    make: str,
    model: str,
    year: int,
    min_price: float,
    max_price: float,
    limit: int,
) -> list[dict[str, Any]]:
    """
    Select the owner's non-deleted listings matching make/model/year and price band.

    Make and model must already be normalized; they are stored normalized.

    Returns:
        list[dict]: Up to ``limit`` candidates, newest first
    """
    result = conn.execute(
        select(
            Listing.id,
            Listing.title,
            Listing.price,
            Listing.created_at,
            Listing.status,
        )
        .where(Listing.owner_id == owner_id)
        .where(Listing.make == make)
        .where(Listing.model == model)
        .where(Listing.year == year)
        .where(Listing.status != "deleted")
        .where(Listing.price >= min_price)
        .where(Listing.price <= max_price)
        .order_by(Listing.created_at.desc())
        .limit(limit)
    )
    return [row_to_dict(row) for row in result.mappings()]


def select_auto_delete_ids(conn: Connection, now: datetime) -> list[int]:
    """
    Select sold listings whose auto-delete window has elapsed.

    Listings already claimed by an archival run (is_auto_deleted) are never
    selected again.
    """
    result = conn.execute(
        select(Listing.id)
        .where(Listing.status == "sold")
        .where(Listing.is_auto_deleted.is_(False))
        .where(Listing.auto_delete_date.is_not(None))
        .where(Listing.auto_delete_date < now)
        .order_by(Listing.auto_delete_date, Listing.id)
    )
    return list(result.scalars().all())


def count_expirable(conn: Connection, now: datetime) -> int:
    result = conn.execute(
        select(func.count())
        .select_from(Listing)
        .where(Listing.status == "active")
        .where(Listing.expiry_date.is_not(None))
        .where(Listing.expiry_date < now)
    )
    return int(result.scalar_one())


def count_expired_boosts(conn: Connection, now: datetime) -> int:
    result = conn.execute(
        select(func.count())
        .select_from(Listing)
        .where(Listing.is_boosted.is_(True))
        .where(Listing.boost_expiry.is_not(None))
        .where(Listing.boost_expiry < now)
    )
    return int(result.scalar_one())


def list_owner_listings(
    conn: Connection,
    owner_id: int,
    status: Optional[str],
    offset: int,
    limit: int,
) -> tuple[list[dict[str, Any]], int]:
    """
    Page through one owner's listings, newest first.

    Listings claimed for deletion are never returned.

    Args:
        conn: Active database connection
        owner_id: Owner id
        status: Only return listings in this status (None for every status)
        offset: Rows to skip
        limit: Page size

    Returns:
        tuple: (listing rows, total matching rows)
    """
    conditions = [Listing.owner_id == owner_id, Listing.status != "deleted"]
    if status is not None:
        conditions.append(Listing.status == status)

    total = conn.execute(select(func.count()).select_from(Listing).where(*conditions)).scalar_one()
    rows = conn.execute(
        select(Listing.__table__)
        .where(*conditions)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
        .offset(offset)
        .limit(limit)
    ).mappings()
    return [row_to_dict(row) for row in rows], int(total)


def count_owner_listings_by_status(conn: Connection, owner_id: int) -> dict[str, int]:
    """Count an owner's non-deleted listings per status."""
    result = conn.execute(
        select(Listing.status, func.count())
        .where(Listing.owner_id == owner_id)
        .where(Listing.status != "deleted")
        .group_by(Listing.status)
    )
    return {status: int(count) for status, count in result}


def count_listings_by_make(conn: Connection, where: ColumnElement[bool]) -> list[tuple[str, int]]:
    """
    Count listings matching ``where`` per make.

    Makes are grouped case- and whitespace-insensitively.

    Returns:
        list[tuple[str, int]]: (make, count), most listings first
    """
    make = func.lower(func.trim(Listing.make))
    count = func.count()
    result = conn.execute(
        select(make.label("normalized_make"), count.label("listing_count"))
        .where(where)
        .where(Listing.make.is_not(None))
        .group_by(make)
        .order_by(count.desc(), make)
    )
    return [(name, int(total)) for name, total in result if name]
