"""Boost expiry sweep: listings whose boost window has passed lose their placement."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from carmarket.db.readers.listings import count_expired_boosts
from carmarket.db.writers.listings import clear_expired_boosts
from carmarket.sweeps._runner import SweepReport, run_cli
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

JOB = "boost_expiry"


def run(engine: Engine, now: Optional[datetime] = None, dry_run: bool = False) -> SweepReport:
    """
    Clear ``is_boosted`` and reset priority where ``boost_expiry < now``.

    Listing status is untouched, so expired boosts on sold or expired
    listings are cleared as well.
    """
    now = now or utc_now()
    report = SweepReport(job=JOB, dry_run=dry_run)

    if dry_run:
        with engine.connect() as conn:
            report.found = count_expired_boosts(conn, now)
        logger.info(f"[DRY RUN] Would clear {report.found} expired boosts")
        return report.finish()

    with engine.begin() as conn:
        report.found = report.processed = clear_expired_boosts(conn, now)
    return report.finish()


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_cli(JOB, run, argv)


if __name__ == "__main__":
    sys.exit(main())
