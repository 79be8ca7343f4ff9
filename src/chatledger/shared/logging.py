"""Structured logging configuration.

Every log line carries the context bound for the current request (for
example ``request_id``); the HTTP middleware clears and rebinds it per request.
"""

import logging
import re
import sys
from typing import Any, cast
from uuid import uuid4

import structlog

from chatledger.config import Settings, get_settings

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,128}")

# Chatty libraries that only log at WARNING and above
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine", "anthropic", "openai")


def resolve_log_level(settings: Settings) -> int:
    """LOG_LEVEL wins; otherwise DEBUG in debug mode and INFO elsewhere."""
    if settings.log_level:
        return cast(int, logging.getLevelName(settings.log_level))
    return logging.DEBUG if settings.app_debug else logging.INFO


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger."""
    settings = settings or get_settings()
    log_level = resolve_log_level(settings)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    else:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def new_request_context(incoming: str | None = None) -> str:
    """Start a fresh log context for one request and return its request id.

    A well-formed incoming id is kept so callers can correlate their own logs;
    anything else is replaced by a generated one.
    """
    request_id = incoming if incoming and _REQUEST_ID_PATTERN.fullmatch(incoming) else uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
