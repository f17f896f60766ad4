"""
Listing lifecycle state machine.

States are active, sold, expired and deleted. ``deleted`` is terminal and
only ever held inside the archival transaction, right before the row is
removed from the live store.

The machine is pure: it takes a listing row (any mapping of column name to
value) plus a clock reading and returns the column changes a transition
implies. Writers apply those changes with a conditional UPDATE whose WHERE
clause repeats the source-status guard, so a transition lands at most once
even when a sweep and a user action race for the same listing.

Example:
    >>> machine = ListingStateMachine(row, now=utc_now())
    >>> changes = machine.mark_sold(actual_sale_price=95000)
    >>> changes["status"]
    'sold'
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Optional

from carmarket.config import LISTING_EXPIRY_DAYS, get_auto_delete_days
from carmarket.errors import InvalidTransitionError, ValidationError
from carmarket.search.filters import AllOf, AnyOf, Equals, IsNull, OneOf, Range
from carmarket.utils.datetime import ensure_utc


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    EXPIRED = "expired"
    DELETED = "deleted"


class ListingEvent(str, Enum):
    MARK_SOLD = "mark_sold"
    MARK_AVAILABLE = "mark_available"
    EXPIRE = "expire"
    RELIST = "relist"
    AUTO_DELETE = "auto_delete"
    DELETE = "delete"
    BOOST = "boost"
    EDIT = "edit"


LIVE_STATUSES = frozenset({ListingStatus.ACTIVE, ListingStatus.SOLD, ListingStatus.EXPIRED})

# event -> (allowed source statuses, target status or None when the source row keeps its status)
TRANSITIONS: dict[ListingEvent, tuple[frozenset[ListingStatus], Optional[ListingStatus]]] = {
    ListingEvent.MARK_SOLD: (frozenset({ListingStatus.ACTIVE}), ListingStatus.SOLD),
    ListingEvent.MARK_AVAILABLE: (frozenset({ListingStatus.SOLD}), ListingStatus.ACTIVE),
    ListingEvent.EXPIRE: (frozenset({ListingStatus.ACTIVE}), ListingStatus.EXPIRED),
    ListingEvent.RELIST: (frozenset({ListingStatus.SOLD, ListingStatus.EXPIRED}), None),
    ListingEvent.AUTO_DELETE: (frozenset({ListingStatus.SOLD}), ListingStatus.DELETED),
    ListingEvent.DELETE: (LIVE_STATUSES, ListingStatus.DELETED),
    ListingEvent.BOOST: (frozenset({ListingStatus.ACTIVE}), ListingStatus.ACTIVE),
    ListingEvent.EDIT: (LIVE_STATUSES, None),
}

# Attributes a relist copies onto the new listing.
RELIST_COPY_FIELDS = (
    "owner_id",
    "title",
    "description",
    "make",
    "model",
    "variant",
    "year",
    "condition",
    "price",
    "color_exterior",
    "color_interior",
    "fuel_type",
    "engine_capacity",
    "transmission",
    "mileage",
    "regional_spec",
    "body_type",
    "vehicle_type",
    "city",
    "location",
    "car_doors",
    "contact_number",
    "warranty",
    "number_of_cylinders",
    "owner_type",
    "horsepower",
    "battery_range",
    "motor_power",
    "latitude",
    "longitude",
)

MAX_BOOST_PRIORITY = 100


def allowed_sources(event: ListingEvent) -> frozenset[ListingStatus]:
    """Return the statuses from which ``event`` may fire."""
    return TRANSITIONS[event][0]


def check_transition(current: Optional[str], event: ListingEvent) -> Optional[ListingStatus]:
    """
    Validate that ``event`` may fire from ``current``.

    Args:
        current: Current status value of the listing
        event: Event being applied

    Returns:
        Optional[ListingStatus]: Target status, or None when the source keeps its status

    Raises:
        InvalidTransitionError: If the event is not allowed from ``current``
    """
    sources, target = TRANSITIONS[event]
    if current not in {status.value for status in sources}:
        raise InvalidTransitionError(current, event.value)
    return target


def initial_fields(now: datetime, expiry_days: int = LISTING_EXPIRY_DAYS) -> dict[str, Any]:
    """Lifecycle columns for a freshly created (or relisted) listing."""
    return {
        "status": ListingStatus.ACTIVE.value,
        "expiry_date": now + timedelta(days=expiry_days),
        "sold_date": None,
        "auto_delete_date": None,
        "actual_sale_price": None,
        "is_auto_deleted": False,
        "is_boosted": False,
        "boost_expiry": None,
        "boost_priority": 0,
        "featured": False,
        "is_approved": True,
        "created_at": now,
        "updated_at": now,
    }


def default_visibility(now: datetime) -> AllOf:
    """
    Predicate every default search is ANDed with.

    Approved listings that are active, or sold and still inside their
    auto-delete grace window.

    Args:
        now: Current time

    Returns:
        AllOf: Visibility filter
    """
    return AllOf(
        (
            Equals("is_approved", True),
            OneOf("status", (ListingStatus.ACTIVE.value, ListingStatus.SOLD.value)),
            AnyOf(
                (
                    Equals("status", ListingStatus.ACTIVE.value),
                    IsNull("auto_delete_date"),
                    Range("auto_delete_date", gt=now),
                )
            ),
        )
    )


class ListingStateMachine:
    """
    Computes transition side effects for a single listing.

    Args:
        listing: Listing row (mapping of column name to value)
        now: Current time (aware UTC)
        auto_delete_days: Sold auto-delete window; read from config when omitted
        expiry_days: Lifetime of a new or reactivated listing
    """

    def __init__(
        self,
        listing: Mapping[str, Any],
        now: datetime,
        auto_delete_days: Optional[int] = None,
        expiry_days: int = LISTING_EXPIRY_DAYS,
    ) -> None:
        self.listing = listing
        self.now = now
        self.auto_delete_days = (
            auto_delete_days if auto_delete_days is not None else get_auto_delete_days()
        )
        self.expiry_days = expiry_days

    @property
    def status(self) -> Optional[str]:
        return self.listing.get("status")

    def can(self, event: ListingEvent) -> bool:
        return self.status in {status.value for status in allowed_sources(event)}

    def _field(self, name: str) -> Any:
        value = self.listing.get(name)
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value

    def mark_sold(self, actual_sale_price: Optional[float] = None) -> dict[str, Any]:
        """
        Changes for active -> sold.

        Starts the auto-delete window and drops boost and featured placement.

        Args:
            actual_sale_price: Optional final sale price for analytics (> 0)

        Returns:
            dict: Column changes

        Raises:
            InvalidTransitionError: If the listing is not active
            ValidationError: If the sale price is not positive
        """
        check_transition(self.status, ListingEvent.MARK_SOLD)
        if actual_sale_price is not None and actual_sale_price <= 0:
            raise ValidationError(
                "Actual sale price must be a positive number", field="actual_sale_price"
            )

        return {
            "status": ListingStatus.SOLD.value,
            "sold_date": self.now,
            "auto_delete_date": self.now + timedelta(days=self.auto_delete_days),
            "actual_sale_price": actual_sale_price,
            "is_boosted": False,
            "boost_expiry": None,
            "boost_priority": 0,
            "featured": False,
            "updated_at": self.now,
        }

    def mark_available(self) -> dict[str, Any]:
        """
        Changes for sold -> active (undo a sale).

        The expiry date is only pushed out when it already elapsed.
        """
        check_transition(self.status, ListingEvent.MARK_AVAILABLE)
        changes: dict[str, Any] = {
            "status": ListingStatus.ACTIVE.value,
            "sold_date": None,
            "auto_delete_date": None,
            "actual_sale_price": None,
            "updated_at": self.now,
        }
        expiry = self._field("expiry_date")
        if expiry is None or expiry < self.now:
            changes["expiry_date"] = self.now + timedelta(days=self.expiry_days)
        return changes

    def is_expired(self) -> bool:
        expiry = self._field("expiry_date")
        return (
            self.status == ListingStatus.ACTIVE.value and expiry is not None and expiry < self.now
        )

    def expire(self) -> dict[str, Any]:
        """Changes for active -> expired. Only the status moves."""
        check_transition(self.status, ListingEvent.EXPIRE)
        if not self.is_expired():
            raise InvalidTransitionError(self.status, ListingEvent.EXPIRE.value)
        return {"status": ListingStatus.EXPIRED.value}

    def relist(self) -> dict[str, Any]:
        """
        Column values for the new listing a relist creates.

        The source listing is left untouched; it stays until archived on
        its own schedule.
        """
        check_transition(self.status, ListingEvent.RELIST)
        values = {name: self.listing.get(name) for name in RELIST_COPY_FIELDS}
        values.update(
            mileage_flagged=bool(self.listing.get("mileage_flagged")),
            mileage_flag_reason=self.listing.get("mileage_flag_reason"),
        )
        values.update(initial_fields(self.now, self.expiry_days))
        return values

    def is_auto_delete_eligible(self) -> bool:
        auto_delete_date = self._field("auto_delete_date")
        return (
            self.status == ListingStatus.SOLD.value
            and not self.listing.get("is_auto_deleted")
            and auto_delete_date is not None
            and auto_delete_date < self.now
        )

    def delete(self, deleted_by: Optional[int], automatic: bool = False) -> dict[str, Any]:
        """
        Claim changes for the archival transaction.

        Args:
            deleted_by: Acting user id, None for the scheduler
            automatic: True for the sold auto-delete sweep

        Raises:
            InvalidTransitionError: If the listing cannot be archived in this mode
        """
        event = ListingEvent.AUTO_DELETE if automatic else ListingEvent.DELETE
        check_transition(self.status, event)
        if automatic and not self.is_auto_delete_eligible():
            raise InvalidTransitionError(self.status, event.value)
        return {
            "status": ListingStatus.DELETED.value,
            "is_auto_deleted": automatic,
            "deleted_at": self.now,
            "deleted_by": None if automatic else deleted_by,
            "updated_at": self.now,
        }

    def final_status(self, automatic: bool = False) -> str:
        """Status recorded in the history snapshot."""
        if automatic or self.status == ListingStatus.SOLD.value:
            return ListingStatus.SOLD.value
        if self.status == ListingStatus.EXPIRED.value:
            return ListingStatus.EXPIRED.value
        return ListingStatus.DELETED.value

    def boost(self, days: int, priority: int) -> dict[str, Any]:
        """
        Changes for boosting an active listing.

        Args:
            days: Boost duration in days (> 0)
            priority: Ranking priority, 0 to 100

        Raises:
            InvalidTransitionError: If the listing is not active
            ValidationError: If days or priority are out of range
        """
        check_transition(self.status, ListingEvent.BOOST)
        if days <= 0:
            raise ValidationError("Boost duration must be at least one day", field="days")
        if not 0 <= priority <= MAX_BOOST_PRIORITY:
            raise ValidationError(
                f"Boost priority must be between 0 and {MAX_BOOST_PRIORITY}", field="priority"
            )
        return {
            "is_boosted": True,
            "boost_expiry": self.now + timedelta(days=days),
            "boost_priority": priority,
            "updated_at": self.now,
        }
