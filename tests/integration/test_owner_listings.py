"""
Integration tests for the seller dashboard: own listings and listing history.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from carmarket.dependencies import get_db_engine, get_notifier, get_object_store
from carmarket.errors import AuthorizationError, ValidationError
from carmarket.main import app
from carmarket.services.listings import Actor, delete_listing
from carmarket.services.owners import get_listing_history, list_owner_listings


def ids(result: dict[str, Any], key: str = "listings") -> list[int]:
    return [item["id"] for item in result[key]]


@pytest.fixture
def portfolio(
    owner_id: int, make_user: Callable[..., int], make_listing: Callable[..., int], now: datetime
) -> dict[str, int]:
    """One listing per status for the owner, plus a listing owned by someone else."""
    stranger = make_user()
    return {
        "active": make_listing(created=now - timedelta(days=3)),
        "sold": make_listing(created=now - timedelta(days=2), status="sold"),
        "expired": make_listing(created=now - timedelta(days=1), status="expired"),
        "deleted": make_listing(created=now, status="deleted"),
        "foreign": make_listing(owner_id=stranger),
        "stranger": stranger,
    }


@pytest.mark.integration
def test_owner_listings_newest_first_with_stats(
    engine: Engine, owner_id: int, portfolio: dict[str, int]
) -> None:
    result = list_owner_listings(engine, Actor(owner_id))

    assert ids(result) == [portfolio["expired"], portfolio["sold"], portfolio["active"]]
    assert result["stats"] == {"total": 3, "active": 1, "sold": 1, "expired": 1}
    assert result["pagination"] == {"total": 3, "page": 1, "limit": 12, "pages": 1}
    assert result["listings"][0]["images"]


@pytest.mark.integration
@pytest.mark.parametrize("status", ["sold", " Sold "])
def test_owner_listings_status_filter_keeps_full_stats(
    engine: Engine, owner_id: int, portfolio: dict[str, int], status: str
) -> None:
    result = list_owner_listings(engine, Actor(owner_id), status=status)

    assert ids(result) == [portfolio["sold"]]
    assert result["pagination"]["total"] == 1
    assert result["stats"]["total"] == 3


@pytest.mark.integration
@pytest.mark.parametrize("status", [None, "", "all", "ALL"])
def test_owner_listings_all_statuses(
    engine: Engine, owner_id: int, portfolio: dict[str, int], status: Any
) -> None:
    assert len(list_owner_listings(engine, Actor(owner_id), status=status)["listings"]) == 3


@pytest.mark.integration
@pytest.mark.parametrize("status", ["deleted", "pending"])
def test_owner_listings_rejects_unknown_status(
    engine: Engine, owner_id: int, status: str
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        list_owner_listings(engine, Actor(owner_id), status=status)

    assert exc_info.value.field == "status"
    assert exc_info.value.allowed == ["all", "active", "sold", "expired"]


@pytest.mark.integration
def test_owner_listings_pagination(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    created = [make_listing(created=now - timedelta(hours=hours)) for hours in range(5)]

    result = list_owner_listings(engine, Actor(owner_id), page=3, limit=2)

    assert ids(result) == [created[4]]
    assert result["pagination"] == {"total": 5, "page": 3, "limit": 2, "pages": 3}


@pytest.mark.integration
def test_owner_listings_of_another_seller_need_admin(
    engine: Engine, owner_id: int, portfolio: dict[str, int]
) -> None:
    with pytest.raises(AuthorizationError):
        list_owner_listings(engine, Actor(owner_id), owner_id=portfolio["stranger"])

    result = list_owner_listings(engine, Actor(999, role="admin"), owner_id=portfolio["stranger"])
    assert ids(result) == [portfolio["foreign"]]


@pytest.mark.integration
def test_listing_history_newest_first(
    engine: Engine,
    owner_id: int,
    make_listing: Callable[..., int],
    object_store: Any,
    now: datetime,
) -> None:
    first, second = make_listing(), make_listing(status="sold")
    delete_listing(engine, Actor(owner_id), first, object_store, now=now)
    delete_listing(engine, Actor(owner_id), second, object_store, now=now + timedelta(hours=1))

    result = get_listing_history(engine, Actor(owner_id))

    assert [row["old_listing_id"] for row in result["history"]] == [second, first]
    assert [row["final_status"] for row in result["history"]] == ["sold", "deleted"]
    assert result["history"][0]["deleted_at"] == now + timedelta(hours=1)
    assert result["pagination"]["total"] == 2


@pytest.mark.integration
def test_listing_history_is_private(
    engine: Engine,
    owner_id: int,
    make_user: Callable[..., int],
    make_listing: Callable[..., int],
    object_store: Any,
    now: datetime,
) -> None:
    listing_id = make_listing()
    delete_listing(engine, Actor(owner_id), listing_id, object_store, now=now)
    stranger = make_user()

    with pytest.raises(AuthorizationError):
        get_listing_history(engine, Actor(stranger), seller_id=owner_id)

    assert get_listing_history(engine, Actor(stranger))["history"] == []
    admin_view = get_listing_history(engine, Actor(stranger, role="admin"), seller_id=owner_id)
    assert admin_view["pagination"]["total"] == 1


@pytest.fixture
def client(engine: Engine, object_store: Any, notifier: Any) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db_engine] = lambda: engine
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.integration
def test_my_listings_route(client: TestClient, owner_id: int, portfolio: dict[str, int]) -> None:
    headers = {"X-User-Id": str(owner_id)}

    response = client.get("/api/listings/mine", params={"status": "expired"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert ids(body) == [portfolio["expired"]]
    assert body["stats"] == {"total": 3, "active": 1, "sold": 1, "expired": 1}


@pytest.mark.integration
def test_my_listings_route_errors(
    client: TestClient, owner_id: int, portfolio: dict[str, int]
) -> None:
    headers = {"X-User-Id": str(owner_id)}

    assert client.get("/api/listings/mine").status_code == 401
    invalid = client.get("/api/listings/mine", params={"status": "gone"}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["field"] == "status"
    foreign = client.get(
        "/api/listings/mine", params={"ownerId": portfolio["stranger"]}, headers=headers
    )
    assert foreign.status_code == 403


@pytest.mark.integration
def test_history_route_after_delete(
    client: TestClient, owner_id: int, make_listing: Callable[..., int]
) -> None:
    headers = {"X-User-Id": str(owner_id)}
    listing_id = make_listing()
    assert client.delete(f"/api/listings/{listing_id}", headers=headers).status_code == 200

    response = client.get("/api/listings/history", headers=headers)

    assert response.status_code == 200
    (row,) = response.json()["history"]
    assert row["old_listing_id"] == listing_id
    assert row["deleted_by"] == owner_id


@pytest.mark.integration
def test_make_counts_route(client: TestClient, make_listing: Callable[..., int]) -> None:
    make_listing(make="Toyota")
    make_listing(make="Nissan")
    make_listing(make="Nissan")

    response = client.get("/api/listings/makes")

    assert response.status_code == 200
    assert response.json()["makes"] == [
        {"make": "nissan", "count": 2},
        {"make": "toyota", "count": 1},
    ]
