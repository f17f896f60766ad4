"""
Shared fixtures.

The environment is set before any carmarket import so the config module
sees an in-memory SQLite URL and no schema qualification.
"""

from __future__ import annotations

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_SCHEMA"] = ""
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.pop("SOLD_LISTING_AUTO_DELETE_DAYS", None)
os.environ.pop("PUSHGATEWAY_URL", None)

from datetime import datetime, timezone  # noqa: E402
from typing import Any, Callable, Generator, Optional, Sequence  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, insert  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from carmarket.db.writers.listings import insert_listing  # noqa: E402
from carmarket.db.writers.users import push_listing_ref  # noqa: E402
from carmarket.errors import TransientExternalError  # noqa: E402
from carmarket.lifecycle.state_machine import initial_fields  # noqa: E402
from carmarket.models.base import Base  # noqa: E402
from carmarket.models.history import ListingHistory  # noqa: E402, F401
from carmarket.models.listings import Listing  # noqa: E402, F401
from carmarket.models.users import User  # noqa: E402
from carmarket.network.object_store import DeleteResult  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeObjectStore:
    """Records delete calls; URLs listed in ``fail`` are reported as failed."""

    def __init__(self, fail: Sequence[str] = (), unavailable: bool = False) -> None:
        self.fail = set(fail)
        self.unavailable = unavailable
        self.calls: list[list[str]] = []

    def delete_many(self, urls: Sequence[str]) -> DeleteResult:
        self.calls.append(list(urls))
        if self.unavailable:
            raise TransientExternalError("object store unreachable")
        return DeleteResult(
            deleted=[url for url in urls if url not in self.fail],
            failed=[url for url in urls if url in self.fail],
        )

    @property
    def deleted(self) -> list[str]:
        return [url for call in self.calls for url in call if url not in self.fail]


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[tuple[str, dict[str, Any]]] = []

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))
        if self.fail:
            raise RuntimeError("notification backend down")


def valid_payload(**overrides: Any) -> dict[str, Any]:
    """A create payload that passes validation for a Car."""
    payload: dict[str, Any] = {
        "title": "Toyota Land Cruiser GXR",
        "description": "Single owner, full service history",
        "make": "toyota",
        "model": "land cruiser",
        "year": 2022,
        "condition": "Used",
        "price": 250000,
        "city": "Dubai",
        "contact_number": "+971501234567",
        "fuel_type": "Petrol",
        "engine_capacity": 4.0,
        "transmission": "Automatic",
        "regional_spec": "GCC",
        "body_type": "SUV",
        "warranty": "Yes",
        "owner_type": "Owner",
        "mileage": 30000,
        "images": ["https://res.cloudinary.com/demo/image/upload/v1/cars/lc-1.jpg"],
        "features": ["Sunroof"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory listing store per test."""
    eng = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def make_user(engine: Engine) -> Callable[..., int]:
    counter = {"n": 0}

    def _make_user(**overrides: Any) -> int:
        counter["n"] += 1
        values = {
            "name": f"Seller {counter['n']}",
            "email": f"seller{counter['n']}@example.com",
            "role": "individual",
            "subscription_plan": "free",
            "subscription_is_active": False,
            "subscription_end_date": None,
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(overrides)
        with engine.begin() as conn:
            result = conn.execute(insert(User).values(**values))
            return int(result.inserted_primary_key[0])

    return _make_user


@pytest.fixture
def owner_id(make_user: Callable[..., int]) -> int:
    return make_user()


@pytest.fixture
def make_listing(engine: Engine, owner_id: int) -> Callable[..., int]:
    """
    Insert a listing directly, bypassing validation.

    Keyword overrides are column values; ``images``, ``features`` and
    ``created`` (creation time) are handled separately.
    """
    counter = itertools.count(1)

    def _make_listing(
        images: Optional[list[str]] = None,
        features: Optional[list[str]] = None,
        created: datetime = NOW,
        **overrides: Any,
    ) -> int:
        values = {
            "owner_id": owner_id,
            "title": "Nissan Patrol LE",
            "make": "Nissan",
            "model": "Patrol",
            "year": 2021,
            "condition": "Used",
            "price": 180000.0,
            "city": "Dubai",
            "contact_number": "+971501112222",
            "vehicle_type": "Car",
            "body_type": "SUV",
            "fuel_type": "Petrol",
            "mileage": 40000,
            "mileage_flagged": False,
            **initial_fields(created),
        }
        values.update(overrides)
        if images is None:
            images = [f"https://cdn.example.com/upload/car-{next(counter)}.jpg"]
        with engine.begin() as conn:
            listing_id = insert_listing(conn, values, images, features or [])
            push_listing_ref(conn, values["owner_id"], listing_id)
        return listing_id

    return _make_listing


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def payload_factory() -> Callable[..., dict[str, Any]]:
    return valid_payload


@pytest.fixture
def store_factory() -> type[FakeObjectStore]:
    return FakeObjectStore


@pytest.fixture
def notifier_factory() -> type[RecordingNotifier]:
    return RecordingNotifier
