"""
Structured Logging

Every component logs through structlog so that sync events carry their
context (partition title, generation, error kind) as key/value pairs
instead of formatted strings.

Logging is configured once per process. Library code only calls
get_logger(); the embedding application decides level and renderer.
"""

import logging
from typing import Optional

import structlog

from ledger.config import get_settings


def configure_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure structlog with stdlib integration.

    Args:
        level: Root log level name. Defaults to AppSettings.log_level,
               or DEBUG when debug_mode is on.
        json_output: Render JSON lines (True) or console output (False).
                     Defaults to AppSettings.log_json.
    """
    if level is None or json_output is None:
        app = get_settings().app
        level = level or ("DEBUG" if app.debug_mode else app.log_level)
        json_output = app.log_json if json_output is None else json_output

    logging.basicConfig(format="%(message)s", level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to the given name."""
    return structlog.get_logger(name)
