"""
Structured logging for the reservation engine.

Services log event names with key/value context, e.g.
`logger.info("check_in_completed", reservation_id=42, rooms=[101])`.
While an operation runs its name and actor are bound into the structlog
context, so every event it emits can be grouped per operation.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Callable, Iterator, MutableMapping, Optional, cast

import structlog

from pms_core.config import LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Libraries whose INFO output drowns the operation events
QUIET_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "alembic", "uvicorn.access")


def _renderer(level: str) -> Processor:
    if level == "DEBUG":
        return cast(Processor, structlog.dev.ConsoleRenderer(colors=True))
    return cast(Processor, structlog.processors.JSONRenderer(sort_keys=True))


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog once per process.

    DEBUG renders readable console lines; every other level emits one JSON
    object per event for log aggregation.

    Args:
        level: Overrides LOG_LEVEL from the environment
    """
    level = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _renderer(level),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def operation_log_context(operation: str, actor_id: Optional[int]) -> Iterator[None]:
    """Bind `operation` and `actor_id` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(operation=operation, actor_id=actor_id):
        yield
