"""structlog configuration shared by the API and the CLI."""

import logging
from typing import TextIO

import structlog

from keystone.config import settings


def configure_logging(
    json_logs: bool | None = None,
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> None:
    """Configure structlog processors and the log level.

    Args:
        json_logs: Force JSON (True) or console (False) rendering.
            Defaults to JSON in production only.
        stream: Where log lines go; stdout when None. The audit CLI
            logs to stderr so stdout carries only the report.
        cache_loggers: Cache bound loggers on first use
    """
    if json_logs is None:
        json_logs = settings.is_production

    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if json_logs
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=cache_loggers,
    )
