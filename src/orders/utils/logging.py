"""Logging for the orders service.

structlog renders through stdlib logging, so Protean's and uvicorn's records
share the same handlers. Every entry carries the service name plus whatever
order and actor context the current request or command has bound.
"""

import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum
from pathlib import Path

import structlog

SERVICE = "printworks-orders"

_DEFAULT_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def log_level() -> str:
    return os.getenv("LOG_LEVEL", _DEFAULT_LEVELS.get(environment(), "INFO")).upper()


def _handlers(level: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    # Containers log to stdout only; LOG_DIR opts into a rotating file as well
    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=path / "orders.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE)
    return event_dict


def plain_values(logger, method_name, event_dict):
    """Render status enums by value and amounts as decimal strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def configure_logging() -> None:
    level = log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = _handlers(level)
    logging.getLogger("protean").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service,
        plain_values,
        structlog.processors.StackInfoRenderer(),
    ]
    if environment() in ("production", "staging"):
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.RichTracebackFormatter(max_frames=2),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def order_context(order_number: str):
    """Tag every entry logged inside the block with the order it concerns."""
    with structlog.contextvars.bound_contextvars(order_number=order_number):
        yield


@contextmanager
def request_context(method: str, path: str, actor_id: str | None = None, actor_role: str | None = None):
    """Tag every entry logged while serving a request with the route and the acting user."""
    bound = {"method": method, "path": path}
    if actor_id:
        bound["actor_id"] = actor_id
    if actor_role:
        bound["actor_role"] = actor_role.upper()
    with structlog.contextvars.bound_contextvars(**bound):
        yield
