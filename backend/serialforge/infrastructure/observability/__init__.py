"""Observability utilities (logging)."""

from .structured_logging import configure_structlog, configure_logging

__all__ = [
    "configure_structlog",
    "configure_logging",
]
