from typing import Any

from sqlalchemy import insert
from sqlalchemy.engine import Connection

from carmarket.models.history import ListingHistory


def insert_history(conn: Connection, record: dict[str, Any]) -> int:
    """
    Write the archival snapshot for a listing.

    History rows are insert-only; there is no update counterpart.

    Args:
        conn: SQLAlchemy DB connection (inside the archival transaction).
        record: Column values for ListingHistory.

    Returns:
        int: History row id.
    """
    result = conn.execute(insert(ListingHistory).values(**record))
    return int(result.inserted_primary_key[0])
