"""Read queries against the listing history archive."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from carmarket.db.readers.listings import row_to_dict
from carmarket.models.history import ListingHistory


def list_history_for_seller(
    conn: Connection, seller_user_id: int, offset: int, limit: int
) -> tuple[list[dict[str, Any]], int]:
    """
    Page through the archived listings of one seller, most recently archived first.

    Args:
        conn: Active database connection
        seller_user_id: Owner of the archived listings
        offset: Rows to skip
        limit: Page size

    Returns:
        tuple: (history rows, total rows for the seller)
    """
    total = conn.execute(
        select(func.count())
        .select_from(ListingHistory)
        .where(ListingHistory.seller_user_id == seller_user_id)
    ).scalar_one()
    rows = conn.execute(
        select(ListingHistory.__table__)
        .where(ListingHistory.seller_user_id == seller_user_id)
        .order_by(ListingHistory.created_at.desc(), ListingHistory.id.desc())
        .offset(offset)
        .limit(limit)
    ).mappings()
    return [row_to_dict(row) for row in rows], int(total)
