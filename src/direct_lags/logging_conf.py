"""
structlog rendering for direct_lags events.

The package only emits events; nothing is configured on import. Scripts and
notebooks call ``configure_logging`` once. Events raised while a table is
built carry its ``kind`` and ``horizon`` through structlog's context vars.
"""
import sys
import logging
from typing import IO, Optional

import structlog
from direct_lags.config import Settings, get_settings

LOGGER_NAME = "direct_lags"

def configure_logging(
    verbose: bool = False,
    settings: Optional[Settings] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Routes direct_lags events to `stream` (stderr by default).

    Only the package logger gets a handler, so the host application's own
    logging setup is left alone. Returns that logger.
    """
    settings = settings or get_settings()
    log_level = "DEBUG" if verbose else settings.log_level.upper()

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.environment == "production":
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(),
        ]

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.handlers[:] = [handler]
    package_logger.setLevel(log_level)
    package_logger.propagate = False

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return package_logger
