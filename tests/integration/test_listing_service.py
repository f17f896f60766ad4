"""
Integration tests for the listing lifecycle service against an in-memory store.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable
from unittest.mock import patch

import pytest
from sqlalchemy.engine import Engine

from carmarket.db.readers.users import get_listing_refs
from carmarket.errors import (
    AuthorizationError,
    DuplicateListingError,
    InvalidTransitionError,
    ListingLimitExceededError,
    ListingNotFoundError,
    ValidationError,
)
from carmarket.plans import Plan
from carmarket.services.listings import (
    Actor,
    boost_listing,
    create_listing,
    edit_listing,
    get_listing_details,
    mark_available,
    mark_sold,
    relist,
)


@pytest.mark.integration
def test_create_listing_stores_normalized_listing(
    engine: Engine, owner_id: int, now: datetime, payload_factory: Callable[..., dict[str, Any]]
) -> None:
    listing = create_listing(engine, Actor(owner_id), payload_factory(), now=now)

    assert listing["status"] == "active"
    assert listing["make"] == "Toyota"
    assert listing["model"] == "Land Cruiser"
    assert listing["owner_id"] == owner_id
    assert listing["expiry_date"] == now + timedelta(days=90)
    assert listing["features"] == ["Sunroof"]
    assert len(listing["images"]) == 1
    with engine.connect() as conn:
        assert get_listing_refs(conn, owner_id) == [listing["id"]]


@pytest.mark.integration
def test_duplicate_rejected_unless_forced(
    engine: Engine, owner_id: int, now: datetime, payload_factory: Callable[..., dict[str, Any]]
) -> None:
    """Test that a second listing priced within 10% is rejected until force is set."""
    actor = Actor(owner_id)
    first = create_listing(engine, actor, payload_factory(price=1_000_000), now=now)

    with pytest.raises(DuplicateListingError) as exc_info:
        create_listing(
            engine, actor, payload_factory(price=1_050_000), now=now + timedelta(days=2)
        )

    assert [match["id"] for match in exc_info.value.matches] == [first["id"]]

    forced = create_listing(
        engine, actor, payload_factory(price=1_050_000), force=True, now=now + timedelta(days=2)
    )
    assert forced["id"] != first["id"]


@pytest.mark.integration
def test_duplicate_check_ignores_old_or_differently_priced_listings(
    engine: Engine, owner_id: int, now: datetime, payload_factory: Callable[..., dict[str, Any]]
) -> None:
    actor = Actor(owner_id)
    create_listing(engine, actor, payload_factory(price=1_000_000), now=now)

    # Outside the 10% band
    create_listing(engine, actor, payload_factory(price=1_200_000), now=now)
    # Same price band, but the first listing is now older than 30 days
    create_listing(
        engine, actor, payload_factory(price=1_000_000), now=now + timedelta(days=31)
    )


@pytest.mark.integration
def test_duplicate_check_is_scoped_to_owner(
    engine: Engine,
    make_user: Callable[..., int],
    owner_id: int,
    now: datetime,
    payload_factory: Callable[..., dict[str, Any]],
) -> None:
    create_listing(engine, Actor(owner_id), payload_factory(), now=now)

    other = create_listing(engine, Actor(make_user()), payload_factory(), now=now)

    assert other["status"] == "active"


@pytest.mark.integration
def test_listing_limit_enforced_for_capped_plan(
    engine: Engine,
    make_user: Callable[..., int],
    owner_id: int,
    now: datetime,
    payload_factory: Callable[..., dict[str, Any]],
) -> None:
    capped = Plan(name="free", max_listings=1, boost_credits=0, duration_days=0)
    admin_id = make_user(role="admin")

    with patch("carmarket.services.listings.resolve_plan", return_value=capped):
        create_listing(engine, Actor(owner_id), payload_factory(), now=now)
        with pytest.raises(ListingLimitExceededError) as exc_info:
            create_listing(engine, Actor(owner_id), payload_factory(make="Lexus"), now=now)

        create_listing(engine, Actor(admin_id, "admin"), payload_factory(), now=now)
        create_listing(engine, Actor(admin_id, "admin"), payload_factory(make="Lexus"), now=now)

    assert exc_info.value.to_dict()["limit"] == 1


@pytest.mark.integration
def test_create_rejects_unknown_owner(
    engine: Engine, now: datetime, payload_factory: Callable[..., dict[str, Any]]
) -> None:
    with pytest.raises(AuthorizationError):
        create_listing(engine, Actor(9999), payload_factory(), now=now)


@pytest.mark.integration
def test_create_rejects_invalid_payload_without_writing(
    engine: Engine, owner_id: int, now: datetime, payload_factory: Callable[..., dict[str, Any]]
) -> None:
    with pytest.raises(ValidationError):
        create_listing(engine, Actor(owner_id), payload_factory(images=[]), now=now)

    with engine.connect() as conn:
        assert get_listing_refs(conn, owner_id) == []


@pytest.mark.integration
def test_mark_sold_starts_auto_delete_window(
    engine: Engine,
    owner_id: int,
    make_listing: Callable[..., int],
    notifier: Any,
    now: datetime,
) -> None:
    listing_id = make_listing(is_boosted=True, boost_priority=40, featured=True)

    listing = mark_sold(engine, Actor(owner_id), listing_id, 95_000, notifier=notifier, now=now)

    assert listing["status"] == "sold"
    assert listing["sold_date"] == now
    assert listing["auto_delete_date"] == now + timedelta(days=30)
    assert listing["actual_sale_price"] == 95_000
    assert listing["is_boosted"] is False
    assert listing["featured"] is False
    assert [event for event, _ in notifier.events] == ["listing.sold"]


@pytest.mark.integration
def test_mark_sold_uses_configured_window(
    engine: Engine,
    owner_id: int,
    make_listing: Callable[..., int],
    now: datetime,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SOLD_LISTING_AUTO_DELETE_DAYS", "7")

    listing = mark_sold(engine, Actor(owner_id), make_listing(), now=now)

    assert listing["auto_delete_date"] == now + timedelta(days=7)


@pytest.mark.integration
def test_mark_sold_twice_is_invalid_transition(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing()
    mark_sold(engine, Actor(owner_id), listing_id, now=now)

    with pytest.raises(InvalidTransitionError):
        mark_sold(engine, Actor(owner_id), listing_id, now=now)


@pytest.mark.integration
def test_notifier_failure_does_not_undo_sale(
    engine: Engine,
    owner_id: int,
    make_listing: Callable[..., int],
    notifier_factory: Any,
    now: datetime,
) -> None:
    listing_id = make_listing()

    mark_sold(engine, Actor(owner_id), listing_id, notifier=notifier_factory(fail=True), now=now)

    assert get_listing_details(engine, listing_id)["status"] == "sold"


@pytest.mark.integration
def test_only_owner_or_admin_may_act(
    engine: Engine,
    make_user: Callable[..., int],
    make_listing: Callable[..., int],
    now: datetime,
) -> None:
    stranger = make_user()
    listing_id = make_listing()

    with pytest.raises(AuthorizationError):
        mark_sold(engine, Actor(stranger), listing_id, now=now)

    listing = mark_sold(engine, Actor(stranger, "admin"), listing_id, now=now)
    assert listing["status"] == "sold"


@pytest.mark.integration
def test_mark_available_clears_sale(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing()
    mark_sold(engine, Actor(owner_id), listing_id, 90_000, now=now)

    listing = mark_available(engine, Actor(owner_id), listing_id, now=now + timedelta(days=1))

    assert listing["status"] == "active"
    assert listing["sold_date"] is None
    assert listing["auto_delete_date"] is None
    assert listing["actual_sale_price"] is None
    assert listing["expiry_date"] == now + timedelta(days=90)


@pytest.mark.integration
def test_mark_available_extends_elapsed_expiry(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing(created=now - timedelta(days=100), status="sold")

    listing = mark_available(engine, Actor(owner_id), listing_id, now=now)

    assert listing["expiry_date"] == now + timedelta(days=90)


@pytest.mark.integration
def test_relist_creates_new_active_listing(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    source_id = make_listing(
        created=now - timedelta(days=120),
        status="expired",
        features=["Sunroof", "Leather Seats"],
    )
    source = get_listing_details(engine, source_id)

    listing = relist(engine, Actor(owner_id), source_id, now=now)

    assert listing["id"] != source_id
    assert listing["status"] == "active"
    assert listing["created_at"] == now
    assert listing["expiry_date"] == now + timedelta(days=90)
    assert listing["images"] == source["images"]
    assert listing["features"] == ["Leather Seats", "Sunroof"]
    assert get_listing_details(engine, source_id)["status"] == "expired"
    with engine.connect() as conn:
        assert get_listing_refs(conn, owner_id) == [source_id, listing["id"]]


@pytest.mark.integration
def test_relist_from_active_is_invalid(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    with pytest.raises(InvalidTransitionError):
        relist(engine, Actor(owner_id), make_listing(), now=now)


@pytest.mark.integration
def test_boost_listing(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing()

    listing = boost_listing(engine, Actor(owner_id), listing_id, days=7, priority=80, now=now)

    assert listing["is_boosted"] is True
    assert listing["boost_priority"] == 80
    assert listing["boost_expiry"] == now + timedelta(days=7)

    with pytest.raises(ValidationError):
        boost_listing(engine, Actor(owner_id), listing_id, days=7, priority=101, now=now)


@pytest.mark.integration
def test_edit_rejects_mileage_rollback(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing(mileage=40_000)

    with pytest.raises(ValidationError) as exc_info:
        edit_listing(engine, Actor(owner_id), listing_id, {"mileage": 30_000}, now=now)

    assert exc_info.value.field == "mileage"
    assert get_listing_details(engine, listing_id)["mileage"] == 40_000


@pytest.mark.integration
def test_edit_flags_large_mileage_jump(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing(mileage=40_000)

    listing = edit_listing(
        engine, Actor(owner_id), listing_id, {"mileage": 100_000, "price": 150_000}, now=now
    )

    assert listing["mileage"] == 100_000
    assert listing["mileage_flagged"] is True
    assert listing["price"] == 150_000


@pytest.mark.integration
def test_edit_replaces_images_and_features(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    listing_id = make_listing()
    images = [
        "https://cdn.example.com/upload/new-1.jpg",
        "https://cdn.example.com/upload/new-2.jpg",
    ]

    listing = edit_listing(
        engine,
        Actor(owner_id),
        listing_id,
        {"images": images, "features": "Sunroof, Navigation"},
        now=now,
    )

    assert listing["images"] == images
    assert listing["features"] == ["Navigation", "Sunroof"]


@pytest.mark.integration
def test_edit_rejects_status_change(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    with pytest.raises(ValidationError):
        edit_listing(engine, Actor(owner_id), make_listing(), {"status": "sold"}, now=now)


@pytest.mark.integration
def test_lost_race_reports_current_status(
    engine: Engine, owner_id: int, make_listing: Callable[..., int], now: datetime
) -> None:
    """Test that a conditional update matching nothing surfaces as an invalid transition."""
    listing_id = make_listing()

    with patch("carmarket.services.listings.apply_transition", return_value=False):
        with pytest.raises(InvalidTransitionError) as exc_info:
            mark_sold(engine, Actor(owner_id), listing_id, now=now)

    assert exc_info.value.current == "active"
    assert exc_info.value.event == "mark_sold"


@pytest.mark.integration
def test_get_missing_listing(engine: Engine) -> None:
    with pytest.raises(ListingNotFoundError):
        get_listing_details(engine, 404)
