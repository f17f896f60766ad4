"""
Shared plumbing for the cron-style sweep jobs.

Each sweep module exposes ``run(engine, now=None, dry_run=False) -> SweepReport``
holding the job's logic, and a ``main()`` entry point that goes through
``run_cli``. Exit codes: 0 when the run completed (including zero eligible
items and per-item failures), 1 on systemic failure.
"""

from __future__ import annotations

import argparse
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional, Sequence

import structlog
from prometheus_client import REGISTRY, push_to_gateway
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from carmarket.config import DRY_RUN, PUSHGATEWAY_URL
from carmarket.db import engine as db
from carmarket.errors import SystemicError
from carmarket.logging_config import setup_logging
from carmarket.metrics import sweep_duration, sweep_items, sweep_runs

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_SYSTEMIC_FAILURE = 1


@dataclass
class SweepReport:
    job: str
    dry_run: bool = False
    found: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)
    started: float = field(default_factory=time.monotonic, repr=False)

    def finish(self) -> "SweepReport":
        self.duration_seconds = round(time.monotonic() - self.started, 3)
        return self

    @property
    def status(self) -> str:
        return "partial" if self.failed else "success"

    def as_log_fields(self) -> dict:
        fields = asdict(self)
        fields.pop("started")
        return fields


Sweep = Callable[..., SweepReport]


def execute(job: str, sweep: Sweep, target: Engine, **kwargs) -> SweepReport:
    """
    Run a sweep with health check, metrics and the completion log line.

    Args:
        job: Sweep name used for logs and metric labels
        sweep: The module's ``run`` function
        target: Engine for the live store
        **kwargs: Passed through to ``sweep`` (now, dry_run, ...)

    Returns:
        SweepReport: Counts for the run

    Raises:
        SystemicError: Database unreachable, the selection step failed, or
            every item failed and the database no longer answers
    """
    if not db.check_engine_health(target):
        sweep_runs.labels(job=job, status="failure").inc()
        raise SystemicError("Database is unreachable")

    logger.info("sweep_started", job=job, dry_run=kwargs.get("dry_run", False))

    with sweep_duration.labels(job=job).time():
        try:
            report = sweep(target, **kwargs)
        except SQLAlchemyError as e:
            sweep_runs.labels(job=job, status="failure").inc()
            raise SystemicError(f"{job} failed: {e}") from e

    # Every item failing can mean the store went away after selection.
    if report.failed and not report.processed and not db.check_engine_health(target):
        sweep_runs.labels(job=job, status="failure").inc()
        logger.error("sweep_lost_database", **report.as_log_fields())
        raise SystemicError(f"{job} failed: database became unreachable")

    sweep_runs.labels(job=job, status=report.status).inc()
    if not report.dry_run:
        sweep_items.labels(job=job, outcome="processed").inc(report.processed)
        sweep_items.labels(job=job, outcome="failed").inc(report.failed)
        sweep_items.labels(job=job, outcome="skipped").inc(report.skipped)

    if report.failed:
        logger.error("sweep_completed_with_failures", **report.as_log_fields())
    else:
        logger.info("sweep_completed", **report.as_log_fields())
    return report


def push_metrics(job: str) -> None:
    """Push the metrics registry to the Pushgateway when one is configured."""
    if not PUSHGATEWAY_URL:
        return
    try:
        push_to_gateway(PUSHGATEWAY_URL, job=f"carmarket_{job}", registry=REGISTRY)
    except Exception as e:
        logger.warning("metrics_push_failed", job=job, error=str(e))


def run_cli(job: str, sweep: Sweep, argv: Optional[Sequence[str]] = None) -> int:
    """
    Command line entry point shared by all sweeps.

    Args:
        job: Sweep name
        sweep: The module's ``run`` function
        argv: Arguments (defaults to sys.argv)

    Returns:
        int: Process exit code
    """
    parser = argparse.ArgumentParser(
        prog=f"carmarket-{job.replace('_', '-')}",
        description=f"Run the {job} sweep once.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=DRY_RUN,
        help="Count eligible items without writing (also DRY_RUN=true)",
    )
    args = parser.parse_args(argv)

    setup_logging(process=job)

    try:
        execute(job, sweep, db.engine, dry_run=args.dry_run)
    except SystemicError as e:
        logger.error("sweep_aborted", job=job, error=e.message)
        return EXIT_SYSTEMIC_FAILURE
    finally:
        push_metrics(job)

    return EXIT_OK
