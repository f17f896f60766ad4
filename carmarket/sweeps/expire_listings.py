"""
Listing expiry sweep: active listings past their expiry date become expired.

One conditional bulk UPDATE; a listing sold or deleted between selection and
write no longer matches ``status = 'active'`` and is left alone.
"""

from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from carmarket.db.readers.listings import count_expirable
from carmarket.db.writers.listings import expire_listings
from carmarket.metrics import listing_transitions
from carmarket.sweeps._runner import SweepReport, run_cli
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

JOB = "expire_listings"


def run(engine: Engine, now: Optional[datetime] = None, dry_run: bool = False) -> SweepReport:
    """
    Expire every active listing whose expiry date has passed.

    Args:
        engine: SQLAlchemy engine
        now: Clock reading; defaults to the current UTC time
        dry_run: Count eligible listings without writing

    Returns:
        SweepReport: ``found`` and ``processed`` are the number expired
    """
    now = now or utc_now()
    report = SweepReport(job=JOB, dry_run=dry_run)

    if dry_run:
        with engine.connect() as conn:
            report.found = count_expirable(conn, now)
        logger.info(f"[DRY RUN] Would expire {report.found} listings")
        return report.finish()

    with engine.begin() as conn:
        expired = expire_listings(conn, now)

    report.found = report.processed = expired
    listing_transitions.labels(event="expire").inc(expired)
    return report.finish()


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_cli(JOB, run, argv)


if __name__ == "__main__":
    sys.exit(main())
