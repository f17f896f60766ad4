"""Subscription expiry sweep: owners past their subscription end drop to the free plan."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy.engine import Engine

from carmarket.db.readers.users import count_expired_subscriptions
from carmarket.db.writers.users import expire_subscriptions
from carmarket.sweeps._runner import SweepReport, run_cli
from carmarket.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

JOB = "subscription_expiry"


def run(engine: Engine, now: Optional[datetime] = None, dry_run: bool = False) -> SweepReport:
    """
    Deactivate subscriptions whose end date has passed.

    Existing listings are kept; the free plan only applies to future creates.
    """
    now = now or utc_now()
    report = SweepReport(job=JOB, dry_run=dry_run)

    if dry_run:
        with engine.connect() as conn:
            report.found = count_expired_subscriptions(conn, now)
        logger.info(f"[DRY RUN] Would expire {report.found} subscriptions")
        return report.finish()

    with engine.begin() as conn:
        report.found = report.processed = expire_subscriptions(conn, now)
    return report.finish()


def main(argv: Optional[Sequence[str]] = None) -> int:
    return run_cli(JOB, run, argv)


if __name__ == "__main__":
    sys.exit(main())
