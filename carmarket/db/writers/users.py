from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.engine import Connection

from carmarket.db.writers._upsert import insert_ignore
from carmarket.models.users import User, UserListingRef
from carmarket.plans import FREE_PLAN


def push_listing_ref(conn: Connection, user_id: int, listing_id: int) -> None:
    """
    Add a listing to its owner's back-reference index. Idempotent.

    Args:
        conn: SQLAlchemy DB connection.
        user_id: Owner id.
        listing_id: Live listing id.
    """
    insert_ignore(
        conn,
        UserListingRef,
        [{"user_id": user_id, "listing_id": listing_id}],
        conflict_columns=["user_id", "listing_id"],
    )


def pull_listing_ref(conn: Connection, user_id: int, listing_id: int) -> None:
    """
    Remove a listing from its owner's back-reference index.

    Pulling a reference that is not present is a no-op.

    Args:
        conn: SQLAlchemy DB connection.
        user_id: Owner id.
        listing_id: Listing id being archived.
    """
    conn.execute(
        delete(UserListingRef)
        .where(UserListingRef.user_id == user_id)
        .where(UserListingRef.listing_id == listing_id)
    )


def expire_subscriptions(conn: Connection, now: datetime) -> int:
    """
    Downgrade owners whose subscription ended to the free plan.

    The owner row is updated in place, never deleted.

    Args:
        conn: SQLAlchemy DB connection.
        now: Current time.

    Returns:
        int: Number of subscriptions expired.
    """
    result = conn.execute(
        update(User)
        .where(User.subscription_is_active.is_(True))
        .where(User.subscription_end_date.is_not(None))
        .where(User.subscription_end_date < now)
        .values(subscription_is_active=False, subscription_plan=FREE_PLAN, updated_at=now)
    )
    return result.rowcount
