"""
User-driven listing operations.

Each operation loads the listing, checks the caller owns it (or is an
admin), asks the state machine for the transition's changes, and applies
them with a conditional UPDATE inside one transaction. Notifications are
sent after commit and never affect the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.engine import Connection, Engine

from carmarket.db.readers.listings import (
    count_active_listings,
    get_listing,
    get_listing_features,
    get_listing_images,
)
from carmarket.db.readers.users import get_user
from carmarket.db.writers.listings import (
    apply_transition,
    insert_listing,
    replace_features,
    replace_images,
)
from carmarket.db.writers.users import push_listing_ref
from carmarket.errors import (
    AuthorizationError,
    InvalidTransitionError,
    ListingLimitExceededError,
    ListingNotFoundError,
)
from carmarket.lifecycle.archival import ArchivalCoordinator, ArchiveMode, ArchiveResult
from carmarket.lifecycle.duplicates import check_duplicates
from carmarket.lifecycle.state_machine import (
    LIVE_STATUSES,
    ListingEvent,
    ListingStateMachine,
    ListingStatus,
    check_transition,
    initial_fields,
)
from carmarket.lifecycle.validation import prepare_edit, prepare_new_listing
from carmarket.metrics import listing_transitions
from carmarket.models.listings import Listing
from carmarket.network.notifier import Notifier, notify_safely
from carmarket.network.object_store import ObjectStore
from carmarket.plans import resolve_plan
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as asserted by the upstream auth gateway."""

    user_id: int
    role: str = "individual"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def authorize(actor: Actor, listing: dict[str, Any]) -> None:
    """
    Ensure the actor may act on the listing.

    Raises:
        AuthorizationError: If the actor is neither the owner nor an admin
    """
    if actor.is_admin or listing["owner_id"] == actor.user_id:
        return
    raise AuthorizationError(f"You are not allowed to modify listing {listing['id']}")


def _require_listing(conn: Connection, listing_id: int) -> dict[str, Any]:
    listing = get_listing(conn, listing_id)
    if listing is None:
        raise ListingNotFoundError(listing_id)
    return listing


def _with_children(conn: Connection, listing_id: int) -> dict[str, Any]:
    listing = _require_listing(conn, listing_id)
    listing["images"] = get_listing_images(conn, listing_id)
    listing["features"] = get_listing_features(conn, listing_id)
    return listing


def _lost_race(conn: Connection, listing_id: int, event: ListingEvent) -> InvalidTransitionError:
    current = conn.execute(select(Listing.status).where(Listing.id == listing_id)).scalar()
    return InvalidTransitionError(current, event.value)


def _check_listing_limit(conn: Connection, actor: Actor, owner: dict[str, Any]) -> None:
    if actor.is_admin:
        return
    plan = resolve_plan(owner["subscription_plan"], owner["subscription_is_active"])
    if plan.is_unlimited:
        return
    active = count_active_listings(conn, owner["id"])
    if active >= plan.max_listings:
        raise ListingLimitExceededError(plan.name, active, plan.max_listings)


def get_listing_details(engine: Engine, listing_id: int) -> dict[str, Any]:
    """
    Fetch a live listing with its images and features.

    Raises:
        ListingNotFoundError: If the listing is not in the live store
    """
    with engine.connect() as conn:
        return _with_children(conn, listing_id)


def create_listing(
    engine: Engine,
    actor: Actor,
    payload: dict[str, Any],
    force: bool = False,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Create an active listing owned by the caller.

    Validates the payload against the vehicle-type field policy, enforces
    the owner's plan listing limit, rejects recent duplicates unless
    ``force`` is set, then inserts the listing, its images and features and
    the owner back-reference in one transaction.

    Args:
        engine: SQLAlchemy engine
        actor: Authenticated caller (becomes the owner)
        payload: Listing fields keyed by column name, plus images and features
        force: Skip the duplicate check
        now: Clock reading; defaults to the current UTC time

    Returns:
        dict: The stored listing with images and features

    Raises:
        ValidationError: Invalid payload
        DuplicateListingError: Recent near-identical listing exists
        AuthorizationError: Unknown owner
        ListingLimitExceededError: Plan limit reached
    """
    now = now or utc_now()
    prepared = prepare_new_listing(payload, now)

    with engine.begin() as conn:
        owner = get_user(conn, actor.user_id)
        if owner is None:
            raise AuthorizationError(f"Unknown user {actor.user_id}")
        _check_listing_limit(conn, actor, owner)
        check_duplicates(conn, actor.user_id, prepared.values, now, force=force)

        values = {**prepared.values, **initial_fields(now), "owner_id": actor.user_id}
        listing_id = insert_listing(
            conn, values, prepared.images or [], prepared.features or []
        )
        push_listing_ref(conn, actor.user_id, listing_id)
        listing = _with_children(conn, listing_id)

    listing_transitions.labels(event="create").inc()
    logger.info(
        "listing_created",
        listing_id=listing_id,
        owner_id=actor.user_id,
        forced=force,
        mileage_flagged=listing["mileage_flagged"],
    )
    return listing


def edit_listing(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    updates: dict[str, Any],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Apply a partial update to a live listing.

    Mileage may not decrease; a jump over 50,000 is accepted and flagged.

    Raises:
        ListingNotFoundError, AuthorizationError, ValidationError, InvalidTransitionError
    """
    now = now or utc_now()

    with engine.begin() as conn:
        listing = _require_listing(conn, listing_id)
        authorize(actor, listing)
        check_transition(listing["status"], ListingEvent.EDIT)
        prepared = prepare_edit(listing, updates, now)

        if prepared.values:
            conditions = []
            if "mileage" in prepared.values:
                # Rollback protection must hold against concurrent edits too
                conditions.append(
                    or_(Listing.mileage.is_(None), Listing.mileage <= prepared.values["mileage"])
                )
            applied = apply_transition(
                conn,
                listing_id,
                [status.value for status in LIVE_STATUSES],
                prepared.values,
                *conditions,
            )
            if not applied:
                raise _lost_race(conn, listing_id, ListingEvent.EDIT)

        if prepared.images is not None:
            replace_images(conn, listing_id, prepared.images)
        if prepared.features is not None:
            replace_features(conn, listing_id, prepared.features)

        result = _with_children(conn, listing_id)

    logger.info(
        "listing_edited",
        listing_id=listing_id,
        fields=sorted(prepared.values),
        mileage_flagged=result["mileage_flagged"],
    )
    return result


def mark_sold(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    actual_sale_price: Optional[float] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Mark an active listing as sold and start its auto-delete window.

    Raises:
        ListingNotFoundError, AuthorizationError, InvalidTransitionError, ValidationError
    """
    now = now or utc_now()

    with engine.begin() as conn:
        listing = _require_listing(conn, listing_id)
        authorize(actor, listing)
        changes = ListingStateMachine(listing, now).mark_sold(actual_sale_price)
        if not apply_transition(conn, listing_id, [ListingStatus.ACTIVE.value], changes):
            raise _lost_race(conn, listing_id, ListingEvent.MARK_SOLD)
        result = _with_children(conn, listing_id)

    listing_transitions.labels(event="mark_sold").inc()
    logger.info(
        "listing_marked_sold",
        listing_id=listing_id,
        auto_delete_date=result["auto_delete_date"].isoformat(),
    )
    notify_safely(
        notifier,
        "listing.sold",
        {"listing_id": listing_id, "owner_id": listing["owner_id"], "title": listing["title"]},
    )
    return result


def mark_available(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Undo a sale: sold -> active.

    The auto-delete window and sale price are cleared; an elapsed expiry
    date is pushed out again.
    """
    now = now or utc_now()

    with engine.begin() as conn:
        listing = _require_listing(conn, listing_id)
        authorize(actor, listing)
        changes = ListingStateMachine(listing, now).mark_available()
        applied = apply_transition(
            conn,
            listing_id,
            [ListingStatus.SOLD.value],
            changes,
            Listing.is_auto_deleted.is_(False),
        )
        if not applied:
            raise _lost_race(conn, listing_id, ListingEvent.MARK_AVAILABLE)
        result = _with_children(conn, listing_id)

    listing_transitions.labels(event="mark_available").inc()
    logger.info("listing_marked_available", listing_id=listing_id)
    return result


def relist(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Create a fresh active listing from a sold or expired one.

    Attributes, images and features are copied; the source listing is not
    modified and is archived on its own schedule.

    Returns:
        dict: The new listing
    """
    now = now or utc_now()

    with engine.begin() as conn:
        source = _require_listing(conn, listing_id)
        authorize(actor, source)
        values = ListingStateMachine(source, now).relist()

        owner = get_user(conn, source["owner_id"])
        if owner is None:
            raise AuthorizationError(f"Unknown user {source['owner_id']}")
        _check_listing_limit(conn, actor, owner)

        new_id = insert_listing(
            conn,
            values,
            get_listing_images(conn, listing_id),
            get_listing_features(conn, listing_id),
        )
        push_listing_ref(conn, source["owner_id"], new_id)
        result = _with_children(conn, new_id)

    listing_transitions.labels(event="relist").inc()
    logger.info("listing_relisted", source_listing_id=listing_id, listing_id=new_id)
    return result


def boost_listing(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    days: int,
    priority: int,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Boost an active listing for ``days`` with a 0-100 priority."""
    now = now or utc_now()

    with engine.begin() as conn:
        listing = _require_listing(conn, listing_id)
        authorize(actor, listing)
        changes = ListingStateMachine(listing, now).boost(days, priority)
        if not apply_transition(conn, listing_id, [ListingStatus.ACTIVE.value], changes):
            raise _lost_race(conn, listing_id, ListingEvent.BOOST)
        result = _with_children(conn, listing_id)

    listing_transitions.labels(event="boost").inc()
    logger.info("listing_boosted", listing_id=listing_id, days=days, priority=priority)
    return result


def delete_listing(
    engine: Engine,
    actor: Actor,
    listing_id: int,
    object_store: ObjectStore,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> ArchiveResult:
    """
    Delete a listing on behalf of its owner or an admin via archival.

    Raises:
        ListingNotFoundError, AuthorizationError, InvalidTransitionError,
        TransactionalError
    """
    with engine.connect() as conn:
        listing = _require_listing(conn, listing_id)
    authorize(actor, listing)

    coordinator = ArchivalCoordinator(engine, object_store, notifier)
    return coordinator.archive(
        listing_id, ArchiveMode.MANUAL, deleted_by=actor.user_id, now=now
    )
