"""
Structured Logging

Every module logs through structlog so that ledger events (wallet
reconciliation, rejected operations, storage failures) come out as
key/value records that can be filtered by wallet or transaction id.

configure_logging() is called once by the application factory.
Until then structlog's defaults apply, which is what the tests rely on.
"""

import logging
import sys
from typing import Optional

import structlog

from pocket_ledger.config import get_settings


def configure_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        level: Root log level name. Defaults to AppSettings.log_level
               (DEBUG when debug_mode is on).
        json_output: Render JSON lines instead of the console renderer.
                     Defaults to AppSettings.log_json.
    """
    app_settings = get_settings().app
    if level is None:
        level = "DEBUG" if app_settings.debug_mode else app_settings.log_level
    if json_output is None:
        json_output = app_settings.log_json

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

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
    """Get a structlog logger, optionally named after the calling module."""
    return structlog.get_logger(name)
