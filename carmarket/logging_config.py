from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, Optional, cast

import structlog

from carmarket.config import LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

NOISY_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "uvicorn.access")


def setup_logging(level: Optional[str] = None, process: Optional[str] = None) -> None:
    """
    Configure structlog for the API process or a sweep job.

    INFO and above render as JSON lines for log shipping; DEBUG renders with
    the colored console renderer. Sweep entry points pass ``process`` so every
    line they emit carries the job name.

    Args:
        level: Log level override (defaults to LOG_LEVEL from config)
        process: Optional process name bound into every log line
    """
    level = (level or LOG_LEVEL).upper()

    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.dev.ConsoleRenderer(colors=True)
            if level == "DEBUG"
            else structlog.processors.JSONRenderer()
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if process:
        structlog.contextvars.bind_contextvars(process=process)
