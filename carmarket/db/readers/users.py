"""Read queries for owners and the owner back-reference index."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from carmarket.db.readers.listings import row_to_dict
from carmarket.models.users import User, UserListingRef


def get_user(conn: Connection, user_id: int) -> Optional[dict[str, Any]]:
    row = conn.execute(select(User.__table__).where(User.id == user_id)).mappings().first()
    return row_to_dict(row) if row else None


def get_listing_refs(conn: Connection, user_id: int) -> list[int]:
    """
    Return the ids of the live listings an owner has posted.

    Args:
        conn: Active database connection
        user_id: Owner id

    Returns:
        list[int]: Listing ids in ascending order
    """
    result = conn.execute(
        select(UserListingRef.listing_id)
        .where(UserListingRef.user_id == user_id)
        .order_by(UserListingRef.listing_id)
    )
    return list(result.scalars().all())


def count_expired_subscriptions(conn: Connection, now: datetime) -> int:
    result = conn.execute(
        select(func.count())
        .select_from(User)
        .where(User.subscription_is_active.is_(True))
        .where(User.subscription_end_date.is_not(None))
        .where(User.subscription_end_date < now)
    )
    return int(result.scalar_one())
