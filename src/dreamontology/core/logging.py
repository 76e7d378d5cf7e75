import sys
import logging
from typing import Optional, TextIO

import structlog

from dreamontology.config import Settings, get_settings

# Chatty third-party loggers, held at WARNING unless LOG_LEVEL is DEBUG
NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "uvicorn.access", "mcp.server", "httpx")


def setup_logging(settings: Optional[Settings] = None, stream: Optional[TextIO] = None):
    """
    Configures structured logging for every entry point (CLI, ASGI app, MCP).

    - APP_ENV=production: one JSON object per line
    - anything else: colored console output

    Defaults to stderr: the MCP stdio transport owns stdout.
    """
    settings = settings or get_settings()
    level = settings.LOG_LEVEL.upper()

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level == "DEBUG" else logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.APP_ENV == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    """Logger bound to `name`; event names are snake_case, context as kwargs."""
    return structlog.get_logger(name)
