"""Logging configuration helpers."""
from __future__ import annotations

import logging

import structlog

from serialforge.core.config import Settings


def configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.getLogger(__name__).info("structlog configured")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    package_logger = logging.getLogger("serialforge")
    package_logger.setLevel(settings.LOG_LEVEL)
    package_logger.propagate = True
    if settings.STRUCTURED_LOGGING_ENABLED:
        configure_structlog()
