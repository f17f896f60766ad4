"""
Archival: convert a live listing into a history snapshot and remove it.

Order of operations for one listing:

1. Load the listing and re-check eligibility for the mode (manual or auto).
2. Best-effort delete of its images from the object store. Failures and
   timeouts are logged and counted, never fatal. Images still referenced by
   another live listing (a relist shares its source's images) are kept.
3. One database transaction: conditional claim of the row, history insert,
   owner back-reference pull, removal of the listing and its child rows.
   If the claim matches nothing another actor got there first and the
   whole transaction is rolled back.
4. After commit, a fire-and-forget ``listing.deleted`` notification.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from carmarket.db.readers.listings import (
    find_shared_image_urls,
    get_listing,
    get_listing_images,
)
from carmarket.db.writers.history import insert_history
from carmarket.db.writers.listings import apply_transition, delete_listing
from carmarket.db.writers.users import pull_listing_ref
from carmarket.errors import ArchivalConflictError, ListingNotFoundError, TransactionalError
from carmarket.lifecycle.state_machine import ListingStateMachine
from carmarket.metrics import archival_images, listing_transitions
from carmarket.models.listings import Listing
from carmarket.network.notifier import Notifier, notify_safely
from carmarket.network.object_store import ObjectStore
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


class ArchiveMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


@dataclass(frozen=True)
class ArchiveResult:
    listing_id: int
    history_id: int
    final_status: str
    images_deleted: int
    images_failed: int
    images_retained: int


class ArchivalCoordinator:
    """
    Archives listings for manual deletes and the sold auto-delete sweep.

    Args:
        engine: SQLAlchemy engine for the live store
        object_store: Image store used for best-effort cleanup
        notifier: Optional notifier for ``listing.deleted`` events
    """

    def __init__(
        self,
        engine: Engine,
        object_store: ObjectStore,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.engine = engine
        self.object_store = object_store
        self.notifier = notifier

    def archive(
        self,
        listing_id: int,
        mode: ArchiveMode = ArchiveMode.MANUAL,
        deleted_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ArchiveResult:
        """
        Archive a single listing.

        Args:
            listing_id: Listing to archive
            mode: MANUAL for owner/admin deletes, AUTO for the sold sweep
            deleted_by: Acting user id (ignored in AUTO mode)
            now: Clock reading; defaults to the current UTC time

        Returns:
            ArchiveResult: History id, final status and image cleanup counts

        Raises:
            ListingNotFoundError: The listing is not in the live store
            InvalidTransitionError: The listing is not eligible in this mode
            ArchivalConflictError: Another actor changed the listing first
            TransactionalError: The archival transaction failed and was rolled back
        """
        now = now or utc_now()
        automatic = mode is ArchiveMode.AUTO
        log = logger.bind(listing_id=listing_id, mode=mode.value)

        try:
            with self.engine.connect() as conn:
                listing = get_listing(conn, listing_id)
                if listing is None:
                    raise ListingNotFoundError(listing_id)
                images = get_listing_images(conn, listing_id)
                shared = find_shared_image_urls(conn, images, exclude_listing_id=listing_id)
        except SQLAlchemyError as e:
            raise TransactionalError(f"Could not load listing {listing_id}: {e}") from e

        machine = ListingStateMachine(listing, now)
        claim = machine.delete(deleted_by, automatic=automatic)
        final_status = machine.final_status(automatic=automatic)

        to_delete = [url for url in images if url not in shared]
        deleted, failed = self._cleanup_images(to_delete, log)
        retained = len(images) - len(to_delete)
        if retained:
            archival_images.labels(outcome="retained").inc(retained)

        conditions = [Listing.is_auto_deleted.is_(False)]
        if automatic:
            conditions += [
                Listing.auto_delete_date.is_not(None),
                Listing.auto_delete_date < now,
            ]

        try:
            with self.engine.begin() as conn:
                if not apply_transition(conn, listing_id, [listing["status"]], claim, *conditions):
                    raise ArchivalConflictError(listing_id)

                history_id = insert_history(
                    conn,
                    self._snapshot(listing, final_status, claim, deleted, failed, now),
                )
                pull_listing_ref(conn, listing["owner_id"], listing_id)
                delete_listing(conn, listing_id)
        except SQLAlchemyError as e:
            log.error("archival_transaction_failed", error=str(e))
            raise TransactionalError(f"Archival of listing {listing_id} rolled back: {e}") from e

        event = "auto_delete" if automatic else "delete"
        listing_transitions.labels(event=event).inc()
        log.info(
            "listing_archived",
            history_id=history_id,
            final_status=final_status,
            images_deleted=deleted,
            images_failed=failed,
            images_retained=retained,
        )

        notify_safely(
            self.notifier,
            "listing.deleted",
            {
                "listing_id": listing_id,
                "owner_id": listing["owner_id"],
                "title": listing["title"],
                "final_status": final_status,
                "automatic": automatic,
            },
        )

        return ArchiveResult(
            listing_id=listing_id,
            history_id=history_id,
            final_status=final_status,
            images_deleted=deleted,
            images_failed=failed,
            images_retained=retained,
        )

    def _cleanup_images(self, urls: list[str], log: Any) -> tuple[int, int]:
        if not urls:
            return 0, 0

        try:
            result = self.object_store.delete_many(urls)
        except Exception as e:
            log.warning("archival_image_cleanup_failed", images=len(urls), error=str(e))
            archival_images.labels(outcome="failed").inc(len(urls))
            return 0, len(urls)

        if result.failed:
            log.warning("archival_images_not_deleted", failed=result.failed)
        archival_images.labels(outcome="deleted").inc(len(result.deleted))
        archival_images.labels(outcome="failed").inc(len(result.failed))
        return len(result.deleted), len(result.failed)

    @staticmethod
    def _snapshot(
        listing: dict[str, Any],
        final_status: str,
        claim: dict[str, Any],
        images_deleted: int,
        images_failed: int,
        now: datetime,
    ) -> dict[str, Any]:
        return {
            "old_listing_id": listing["id"],
            "title": listing["title"],
            "make": listing["make"],
            "model": listing["model"],
            "year": listing["year"],
            "mileage": listing.get("mileage"),
            "final_status": final_status,
            "final_selling_date": listing.get("sold_date"),
            "seller_user_id": listing["owner_id"],
            "is_auto_deleted": claim["is_auto_deleted"],
            "deleted_by": claim["deleted_by"],
            "deleted_at": claim["deleted_at"],
            "images_deleted": images_deleted,
            "images_failed": images_failed,
            "created_at": now,
        }
