"""Logging module with structured logging and request tracking."""

from keystone.core.logging.middleware import RequestLoggingMiddleware
from keystone.core.logging.setup import configure_logging


__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
]
