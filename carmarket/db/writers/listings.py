"""
Write operations on the live listing store.

Every lifecycle write is a conditional UPDATE: the WHERE clause repeats the
transition guard (expected source status plus any time predicate), so the
selection and the transition happen in one statement and a racing writer
simply matches zero rows.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from carmarket.config import DEBUG
from carmarket.models.listings import Listing, ListingFeature, ListingImage

logger = structlog.get_logger(__name__)


def insert_listing(
    conn: Connection,
    values: dict[str, Any],
    images: list[str],
    features: list[str],
) -> int:
    """
    Insert a listing with its images and features.

    Args:
        conn: Active database connection (within transaction)
        values: Listing column values
        images: Ordered image URLs
        features: Feature names

    Returns:
        int: New listing id
    """
    if DEBUG:
        logger.debug("listing_insert_values", values=json.dumps(values, default=str))

    result = conn.execute(insert(Listing).values(**values))
    listing_id = int(result.inserted_primary_key[0])

    replace_images(conn, listing_id, images)
    replace_features(conn, listing_id, features)
    return listing_id


def replace_images(conn: Connection, listing_id: int, images: list[str]) -> None:
    conn.execute(delete(ListingImage).where(ListingImage.listing_id == listing_id))
    if images:
        conn.execute(
            insert(ListingImage),
            [
                {"listing_id": listing_id, "position": position, "url": url}
                for position, url in enumerate(images)
            ],
        )


def replace_features(conn: Connection, listing_id: int, features: list[str]) -> None:
    conn.execute(delete(ListingFeature).where(ListingFeature.listing_id == listing_id))
    unique = list(dict.fromkeys(features))
    if unique:
        conn.execute(
            insert(ListingFeature),
            [{"listing_id": listing_id, "feature": feature} for feature in unique],
        )


def apply_transition(
    conn: Connection,
    listing_id: int,
    expected_statuses: Iterable[str],
    changes: dict[str, Any],
    *conditions: ColumnElement[bool],
) -> bool:
    """
    Apply ``changes`` only while the listing still satisfies its precondition.

    Args:
        conn: Active database connection (within transaction)
        listing_id: Listing primary key
        expected_statuses: Statuses the listing must currently hold
        changes: Column values to set
        *conditions: Extra guard predicates (e.g. ``Listing.auto_delete_date < now``)

    Returns:
        bool: True if the row was updated, False if the guard no longer held
    """
    stmt = (
        update(Listing)
        .where(Listing.id == listing_id)
        .where(Listing.status.in_(list(expected_statuses)))
        .where(*conditions)
        .values(**changes)
    )
    result = conn.execute(stmt)
    return result.rowcount == 1


def expire_listings(conn: Connection, now: datetime) -> int:
    """
    Bulk-move active listings past their expiry date to expired.

    Only the status moves; updated_at keeps the last user edit.

    Returns:
        int: Number of listings expired
    """
    result = conn.execute(
        update(Listing)
        .where(Listing.status == "active")
        .where(Listing.expiry_date.is_not(None))
        .where(Listing.expiry_date < now)
        .values(status="expired")
    )
    return result.rowcount


def clear_expired_boosts(conn: Connection, now: datetime) -> int:
    """
    Remove boost placement from listings whose boost window has passed.

    Returns:
        int: Number of listings un-boosted
    """
    result = conn.execute(
        update(Listing)
        .where(Listing.is_boosted.is_(True))
        .where(Listing.boost_expiry.is_not(None))
        .where(Listing.boost_expiry < now)
        .values(is_boosted=False, boost_priority=0, updated_at=now)
    )
    return result.rowcount


def delete_listing(conn: Connection, listing_id: int) -> None:
    """Remove a listing and its child rows from the live store."""
    conn.execute(delete(ListingImage).where(ListingImage.listing_id == listing_id))
    conn.execute(delete(ListingFeature).where(ListingFeature.listing_id == listing_id))
    conn.execute(delete(Listing).where(Listing.id == listing_id))
