"""
Logger Factory - Convenience wrapper for LoggingService.

License: MIT
"""

from typing import Optional

import structlog

from mothership_core.config import settings
from mothership_core.logging_service import LoggingService


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a module/component-specific logger.

    Raises:
        RuntimeError: If logging not configured yet (call configure_logging() first)
        ValueError: If name is empty or exceeds maximum length (200 chars)
    """
    return LoggingService.get_logger(name)


def configure_logging(level: Optional[str] = None, format: Optional[str] = None) -> None:
    """
    Configure structured logging, defaulting to settings.log_level / settings.log_format.

    This should be called ONCE at application startup before any logging.

    Example:
        ```python
        from mothership_core.utils import configure_logging, get_logger

        configure_logging()
        logger = get_logger(__name__)
        ```
    """
    LoggingService.configure_logging(
        level=level or settings.log_level,
        format=format or settings.log_format,
    )
