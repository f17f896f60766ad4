"""
Seller dashboard reads: the caller's own listings and their archive.

Both are private to the owner; admins may look at any seller.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from carmarket.db.readers.history import list_history_for_seller
from carmarket.db.readers.listings import count_owner_listings_by_status
from carmarket.db.readers.listings import list_owner_listings as read_owner_listings
from carmarket.errors import AuthorizationError, ValidationError
from carmarket.lifecycle.state_machine import ListingStatus
from carmarket.services.listings import Actor
from carmarket.services.search import SearchPage, attach_children, pagination

logger = structlog.get_logger(__name__)

ALL_STATUSES = "all"
STATUS_FILTERS = (
    ListingStatus.ACTIVE.value,
    ListingStatus.SOLD.value,
    ListingStatus.EXPIRED.value,
)


def _resolve_owner(actor: Actor, owner_id: Optional[int]) -> int:
    if owner_id is None or owner_id == actor.user_id:
        return actor.user_id
    if actor.is_admin:
        return owner_id
    raise AuthorizationError(f"You are not allowed to view listings of user {owner_id}")


def _page_block(total: int, page: int, limit: int) -> dict[str, int]:
    page_info = SearchPage(items=[], total=total, page=page, limit=limit)
    return {"total": total, "page": page, "limit": limit, "pages": page_info.pages}


def _status_filter(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    value = status.strip().lower()
    if value in ("", ALL_STATUSES):
        return None
    if value not in STATUS_FILTERS:
        raise ValidationError(
            f"Invalid status: {status}. Must be one of: {ALL_STATUSES}, {', '.join(STATUS_FILTERS)}",
            field="status",
            allowed=(ALL_STATUSES,) + STATUS_FILTERS,
        )
    return value


def list_owner_listings(
    engine: Engine,
    actor: Actor,
    status: Optional[str] = None,
    page: Any = None,
    limit: Any = None,
    owner_id: Optional[int] = None,
) -> dict[str, Any]:
    """
    List a seller's listings, newest first, with per-status counts.

    Deleted listings are excluded. The counts in ``stats`` cover all of the
    seller's non-deleted listings regardless of ``status``.

    Args:
        engine: SQLAlchemy engine
        actor: Calling user
        status: active, sold, expired or all (default all)
        page: 1-based page number
        limit: Page size (max 50)
        owner_id: Seller to list; defaults to the caller, admins only otherwise

    Returns:
        dict: ``listings``, ``pagination`` and ``stats`` (total, active, sold, expired)

    Raises:
        ValidationError: Unknown status filter
        AuthorizationError: A non-admin asked for another seller
    """
    seller_id = _resolve_owner(actor, owner_id)
    status_value = _status_filter(status)
    page_number, page_size = pagination({"page": page, "limit": limit})

    with engine.connect() as conn:
        items, total = read_owner_listings(
            conn, seller_id, status_value, (page_number - 1) * page_size, page_size
        )
        attach_children(conn, items)
        by_status = count_owner_listings_by_status(conn, seller_id)

    logger.debug("owner_listings_listed", owner_id=seller_id, status=status_value, total=total)
    return {
        "listings": items,
        "pagination": _page_block(total, page_number, page_size),
        "stats": {
            "total": sum(by_status.values()),
            **{name: by_status.get(name, 0) for name in STATUS_FILTERS},
        },
    }


def get_listing_history(
    engine: Engine,
    actor: Actor,
    seller_id: Optional[int] = None,
    page: Any = None,
    limit: Any = None,
) -> dict[str, Any]:
    """
    Page through a seller's archived listings, most recently archived first.

    Raises:
        AuthorizationError: A non-admin asked for another seller
    """
    seller = _resolve_owner(actor, seller_id)
    page_number, page_size = pagination({"page": page, "limit": limit})

    with engine.connect() as conn:
        items, total = list_history_for_seller(
            conn, seller, (page_number - 1) * page_size, page_size
        )

    return {"history": items, "pagination": _page_block(total, page_number, page_size)}
