"""
Dialect-aware INSERT ... ON CONFLICT DO NOTHING.

Used for idempotent index writes (owner back-references) so repeating a
push is a no-op on both PostgreSQL and SQLite.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def insert_ignore(
    conn: Connection,
    table: type,
    rows: list[dict[str, Any]],
    conflict_columns: list[str],
) -> int:
    """
    Insert rows, silently skipping any that collide on ``conflict_columns``.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., UserListingRef)
        rows: Row dicts to insert
        conflict_columns: Unique/primary key columns for ON CONFLICT

    Returns:
        int: Number of rows actually inserted

    Example:
        >>> with engine.begin() as conn:
        ...     insert_ignore(conn, UserListingRef, [{"user_id": 1, "listing_id": 7}],
        ...                   conflict_columns=["user_id", "listing_id"])
        1
    """
    if not rows:
        return 0

    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(rows)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(rows)
    else:
        raise NotImplementedError(f"insert_ignore does not support dialect '{dialect}'")

    stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
    result = conn.execute(stmt)
    return max(result.rowcount or 0, 0)
