"""
SQLAlchemy engine singleton.

PostgreSQL (psycopg) gets a pooled engine sized for the API plus the
archival worker pool; SQLite URLs, used by the test suite and local
experiments, fall back to SQLAlchemy's default pool.
"""

from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from carmarket.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def build_engine(url: str) -> Engine:
    """
    Create an engine for ``url`` with pool settings suited to its dialect.

    Args:
        url: SQLAlchemy database URL

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    options: dict[str, Any] = {"future": True, "echo": False}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return create_engine(url, **options)


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Optional[Engine] = None) -> bool:
    """
    Check whether the database answers a trivial query.

    Used by the /ready endpoint and by every sweep before it selects work,
    so an unreachable database becomes a systemic failure instead of a
    stream of per-item errors.

    Args:
        target: Engine to check (defaults to the module engine)

    Returns:
        bool: True if the database is reachable, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
