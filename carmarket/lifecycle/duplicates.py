"""Heuristic duplicate detection for new listings."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy.engine import Connection

from carmarket.db.readers.listings import find_duplicate_candidates
from carmarket.errors import DuplicateListingError
from carmarket.metrics import duplicate_rejections

logger = structlog.get_logger(__name__)

PRICE_TOLERANCE = 0.10
RECENT_WINDOW = timedelta(days=30)
MAX_CANDIDATES = 5


def find_recent_duplicates(
    conn: Connection,
    owner_id: int,
    make: str,
    model: str,
    year: int,
    price: float,
    now: datetime,
) -> list[dict[str, Any]]:
    """
    Find the owner's listings that look like the one being created.

    A candidate has the same normalized make, model and year, is not
    deleted, and is priced within 10% either way. It counts as a recent
    duplicate when it was created less than 30 days ago.

    Args:
        conn: Active database connection
        owner_id: Owner of the new listing
        make: Normalized make
        model: Normalized model
        year: Model year
        price: Price of the new listing
        now: Current time

    Returns:
        list[dict]: Recent duplicates (id, title, price, created_at, status)
    """
    candidates = find_duplicate_candidates(
        conn,
        owner_id=owner_id,
        make=make,
        model=model,
        year=year,
        min_price=price * (1 - PRICE_TOLERANCE),
        max_price=price * (1 + PRICE_TOLERANCE),
        limit=MAX_CANDIDATES,
    )
    cutoff = now - RECENT_WINDOW
    return [match for match in candidates if match["created_at"] > cutoff]


def check_duplicates(
    conn: Connection,
    owner_id: int,
    values: dict[str, Any],
    now: datetime,
    force: bool = False,
) -> None:
    """
    Reject a create that duplicates a recent listing unless ``force`` is set.

    Args:
        conn: Active database connection
        owner_id: Owner of the new listing
        values: Prepared (normalized) listing values
        now: Current time
        force: Caller override; skips the check entirely

    Raises:
        DuplicateListingError: Carrying the matching listings
    """
    if force:
        logger.info("duplicate_check_skipped", owner_id=owner_id)
        return

    matches = find_recent_duplicates(
        conn,
        owner_id=owner_id,
        make=values["make"],
        model=values["model"],
        year=values["year"],
        price=values["price"],
        now=now,
    )
    if matches:
        duplicate_rejections.inc()
        logger.info(
            "duplicate_listing_rejected",
            owner_id=owner_id,
            match_ids=[match["id"] for match in matches],
        )
        raise DuplicateListingError(matches)
