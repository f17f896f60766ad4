"""
FastAPI dependency providers.

Routes receive the engine, the calling actor and the external adapters
through ``Depends`` so tests can swap them with ``app.dependency_overrides``.

Testing Example:
    >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    >>> app.dependency_overrides[get_object_store] = lambda: FakeObjectStore()
    >>> client = TestClient(app)
    >>> client.delete("/api/listings/1", headers={"X-User-Id": "7"})
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.engine import Engine

from carmarket.db.engine import engine
from carmarket.network.notifier import Notifier, build_notifier
from carmarket.network.object_store import ObjectStore, build_object_store
from carmarket.services.listings import Actor


def get_db_engine() -> Generator[Engine, None, None]:
    """Yield the SQLAlchemy engine for the live store."""
    yield engine


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """
    Build the calling actor from the identity headers set by the auth gateway.

    Raises:
        HTTPException: 401 when X-User-Id is missing or not an integer
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return Actor(user_id=int(x_user_id), role=(x_user_role or "individual").strip().lower())


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    return build_object_store()


@lru_cache(maxsize=1)
def get_notifier() -> Notifier:
    return build_notifier()
