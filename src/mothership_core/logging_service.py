"""
LoggingService - Centralized structured logging for the Mothership sync store.

Configures structlog once per process and hands out cached, module-specific
loggers. Modules log snake_case events with keyword context; the renderer is
JSON (machine-readable) or console (development).

License: MIT
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor


@dataclass
class LoggingConfig:
    """
    Configuration for LoggingService.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "console")
        output_stream: Output destination (default: sys.stderr)
        sensitive_keys: Keys whose values are redacted by log_error
    """

    level: str = "INFO"
    format: str = "json"
    output_stream: Any = sys.stderr
    sensitive_keys: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.sensitive_keys:
            self.sensitive_keys = {"password", "redis_password", "secret", "token", "auth"}


class LoggingService:
    """
    Process-wide structlog setup.

    Example:
        LoggingService.configure_logging(level="INFO", format="json")
        logger = LoggingService.get_logger("mothership.cli")
        logger.info("config_committed", chunk_count=3)
    """

    _configured: bool = False
    _config: Optional[LoggingConfig] = None
    _loggers: dict[str, structlog.BoundLogger] = {}

    @classmethod
    def configure_logging(
        cls, level: str = "INFO", format: str = "json", config: Optional[LoggingConfig] = None
    ) -> None:
        """
        Configure structlog processors, level filter and output stream.

        Raises:
            ValueError: If level or format is invalid
            RuntimeError: If called after logging already configured
        """
        if cls._configured:
            raise RuntimeError("Logging already configured")

        if config is None:
            level_upper = level.upper()
            if level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                raise ValueError(
                    f"Invalid log level: {level}. "
                    "Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
                )

            format_lower = format.lower()
            if format_lower not in ["json", "console"]:
                raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

            config = LoggingConfig(level=level_upper, format=format_lower)

        cls._config = config

        structlog.configure(
            processors=cls._setup_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, config.level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=config.output_stream),
            cache_logger_on_first_use=True,
        )
        cls._configured = True

    @classmethod
    def reset(cls) -> None:
        """Forget the configuration so configure_logging() can run again."""
        cls._configured = False
        cls._config = None
        cls._loggers = {}
        structlog.reset_defaults()

    @classmethod
    def get_logger(cls, name: str) -> structlog.BoundLogger:
        """
        Get a cached module/component-specific logger.

        Raises:
            RuntimeError: If logging not configured yet
            ValueError: If name is empty or too long
        """
        if not cls._configured:
            raise RuntimeError("Logging not configured. Call configure_logging() first.")

        if not name:
            raise ValueError("Logger name cannot be empty")

        if len(name) > 200:
            raise ValueError("Logger name exceeds maximum length (200)")

        if name not in cls._loggers:
            cls._loggers[name] = structlog.get_logger(name)
        return cls._loggers[name]

    @classmethod
    def log_error(
        cls,
        error: Exception,
        context: Optional[dict[str, Any]] = None,
        logger_name: str = "mothership",
        include_stack_trace: bool = False,
    ) -> None:
        """
        Log an error with its type, message, error code and correlation ID.

        Example:
            result = await store.write(document)
            if result.error:
                LoggingService.log_error(result.error, context={"command": "write"})
        """
        logger = cls.get_logger(logger_name)

        log_context: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        for attr in ("error_code", "correlation_id", "phase"):
            value = getattr(error, attr, None)
            if value is not None:
                log_context[attr] = getattr(value, "value", value)

        if context:
            log_context.update(cls._sanitize_metadata(context))

        if include_stack_trace:
            log_context["stack_trace"] = traceback.format_exc()

        logger.error("error_occurred", **log_context)

    @classmethod
    def _sanitize_metadata(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Replace values of sensitive keys with "[REDACTED]", recursively."""
        if not isinstance(data, dict):
            return data

        sensitive = cls._config.sensitive_keys if cls._config else set()
        sanitized: Dict[str, Any] = {}
        for key, value in data.items():
            if key.lower() in sensitive:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = cls._sanitize_metadata(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    cls._sanitize_metadata(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value
        return sanitized

    @classmethod
    def _setup_processors(cls) -> list[Processor]:
        processors: list[Processor] = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if cls._config and cls._config.format == "console":
            processors.append(structlog.dev.ConsoleRenderer(colors=True))
        else:
            processors.append(structlog.processors.JSONRenderer())

        return processors
