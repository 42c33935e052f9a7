"""
Structured logging setup.

Call ``configure_logging`` once at startup; components get bound loggers
through ``get_logger``.
"""

import logging
import sys
from typing import Any

import structlog

_CONFIGURED = False


def configure_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    """
    Configure stdlib logging and structlog for the application.

    Args:
        level: Default log level name (DEBUG, INFO, WARNING, ERROR)
        json_output: Render JSON lines if True, colored console output otherwise
    """
    global _CONFIGURED

    if _CONFIGURED:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stdout)

    # Silence noisy libraries
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True


def get_logger(component: str, **context: Any) -> Any:
    """Return a structlog logger bound to a component name."""
    return structlog.get_logger().bind(component=component, **context)
