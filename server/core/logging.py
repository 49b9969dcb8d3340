"""Structured logging configuration.

structlog renders over stdlib logging so uvicorn, SQLAlchemy and our own
loggers share one output. Request-scoped values (the MCP session id) are
carried through ``structlog.contextvars`` and merged into every event.
"""

import sys
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

from core.config import Settings

# Third-party loggers that only add noise at INFO
QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "watchfiles",
    "aiosqlite",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
)


def configure_logging(settings: Settings) -> None:
    """Configure structured logging based on settings."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    for handler in handlers:
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, format="%(message)s", force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
        processors.insert(0, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        ))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def session_context(session_id: Optional[str]) -> Iterator[None]:
    """Attach ``session_id`` to every log event emitted inside the block."""
    if not session_id:
        yield
        return
    with bound_contextvars(session_id=session_id):
        yield


def log_session_event(logger: structlog.BoundLogger, event: str,
                      session_id: str, **kwargs) -> None:
    """Binding, timer and store lifecycle events share one shape."""
    logger.info("Session lifecycle", lifecycle_event=event, session_id=session_id, **kwargs)


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        key: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Cache reads, writes and clears, at DEBUG."""
    fields = {"operation": operation, "cache_key": key, **kwargs}
    if hit is not None:
        fields["cache_hit"] = hit
    logger.debug("Cache operation", **fields)
