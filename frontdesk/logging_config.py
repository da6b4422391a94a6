"""
structlog setup shared by the API, the CLI and the tests.

JSON lines at INFO and above so the desk's events can be shipped to a log
store; a coloured console renderer when debugging locally.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping

import structlog

from frontdesk.config import DRY_RUN, LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Libraries whose INFO output drowns the desk's own events
_QUIET_LOGGERS = ("sqlalchemy.engine", "alembic", "httpx", "uvicorn.access")


def _tag_dry_run(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    if DRY_RUN:
        event_dict.setdefault("dry_run", True)
    return event_dict


def _renderer(level: str) -> Processor:
    if level == "DEBUG":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure stdlib logging and structlog for the whole process."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=level,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _tag_dry_run,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if level != "DEBUG":
        processors.append(structlog.processors.format_exc_info)
    else:
        processors.append(structlog.dev.set_exc_info)
    processors.append(_renderer(level))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
