from sqlalchemy.orm import DeclarativeBase

from carmarket.config import SCHEMA


class Base(DeclarativeBase):
    """
    Base class for all marketplace ORM models.

    Tables live in the configured schema (``DB_SCHEMA``), or in the default
    schema when it is disabled.
    """

    pass


def table_args(*constraints: object) -> tuple:
    """Build ``__table_args__`` carrying the configured schema."""
    return (*constraints, {"schema": SCHEMA})


def qualified(table: str, column: str = "id") -> str:
    """Return a ForeignKey target string that honours the configured schema."""
    prefix = f"{SCHEMA}." if SCHEMA else ""
    return f"{prefix}{table}.{column}"
