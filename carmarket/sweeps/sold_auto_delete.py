"""
Sold auto-delete sweep.

Sold listings whose auto-delete date has passed are archived one by one
through the ArchivalCoordinator. Each listing gets its own transaction, so
one failure never blocks the rest; a listing that another actor changed
after selection is skipped, not failed.
"""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from carmarket.config import ARCHIVAL_MAX_WORKERS
from carmarket.db.readers.listings import select_auto_delete_ids
from carmarket.errors import ArchivalConflictError, InvalidTransitionError, ListingNotFoundError
from carmarket.lifecycle.archival import ArchivalCoordinator, ArchiveMode
from carmarket.network.notifier import Notifier, build_notifier
from carmarket.network.object_store import ObjectStore, build_object_store
from carmarket.sweeps._runner import SweepReport, run_cli
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

JOB = "sold_auto_delete"

PROCESSED = "processed"
SKIPPED = "skipped"
FAILED = "failed"


def _archive_one(
    coordinator: ArchivalCoordinator, listing_id: int, now: datetime
) -> tuple[str, Optional[str]]:
    try:
        coordinator.archive(listing_id, ArchiveMode.AUTO, now=now)
        return PROCESSED, None
    except (ArchivalConflictError, InvalidTransitionError, ListingNotFoundError) as e:
        logger.info("auto_delete_skipped", listing_id=listing_id, reason=e.code)
        return SKIPPED, None
    except Exception as e:
        logger.exception("auto_delete_failed", listing_id=listing_id, error=str(e))
        return FAILED, f"listing {listing_id}: {e}"


def _tally(report: SweepReport, outcome: str, error: Optional[str]) -> None:
    if outcome == PROCESSED:
        report.processed += 1
    elif outcome == SKIPPED:
        report.skipped += 1
    else:
        report.failed += 1
        report.errors.append(error or "unknown error")


def run(
    engine: Engine,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    object_store: Optional[ObjectStore] = None,
    notifier: Optional[Notifier] = None,
    max_workers: int = ARCHIVAL_MAX_WORKERS,
) -> SweepReport:
    """
    Archive sold listings past their auto-delete date.

    Args:
        engine: SQLAlchemy engine
        now: Clock reading; defaults to the current UTC time
        dry_run: Count eligible listings without archiving
        object_store: Image store (defaults to the configured one)
        notifier: Notifier (defaults to the configured one)
        max_workers: Concurrent archivals; 1 runs them inline

    Returns:
        SweepReport: processed, skipped (lost races) and failed counts
    """
    now = now or utc_now()
    report = SweepReport(job=JOB, dry_run=dry_run)

    with engine.connect() as conn:
        listing_ids = select_auto_delete_ids(conn, now)
    report.found = len(listing_ids)

    if dry_run:
        logger.info(f"[DRY RUN] Would archive {report.found} sold listings")
        return report.finish()
    if not listing_ids:
        return report.finish()

    coordinator = ArchivalCoordinator(
        engine,
        object_store if object_store is not None else build_object_store(),
        notifier if notifier is not None else build_notifier(),
    )

    if max_workers <= 1:
        for listing_id in listing_ids:
            _tally(report, *_archive_one(coordinator, listing_id, now))
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(_archive_one, coordinator, listing_id, now)
                for listing_id in listing_ids
            ]
            for future in as_completed(futures):
                _tally(report, *future.result())

    return report.finish()


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_cli(JOB, run, argv)


if __name__ == "__main__":
    sys.exit(main())
