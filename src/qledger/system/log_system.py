"""
Structured logging for qledger.

All modules obtain their logger through ``LoggerFactory.get_logger()`` and log
dotted event names with key/value context:

    >>> from qledger.system import LoggerFactory
    >>> logger = LoggerFactory.get_logger()
    >>> logger.info("portfolio.long_closed", symbol="AAPL", realised_pnl="50")

Until ``LoggerFactory.configure()`` is called, events are routed to the stdlib
``logging`` module without installing handlers, so an embedding application
keeps full control (only WARNING+ reaches stderr through logging's last-resort
handler). ``configure()`` installs console and optional rotating file handlers
on the root logger.
"""

import logging
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal, Optional

import structlog

_TIMESTAMP_FORMATS: dict[str, str] = {
    "iso": "iso",
    "compact": "%Y-%m-%d %H:%M:%S",
    "time": "%H:%M:%S",
}

DEFAULT_LOGGER_NAME = "qledger"


@dataclass
class LoggingConfig:
    """Runtime logging configuration consumed by LoggerFactory."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    timestamp_format: Literal["iso", "compact", "time"] = "compact"
    enable_file: bool = False
    file_path: Optional[Path] = None
    file_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3


class LoggerFactory:
    """
    Central access point for structlog loggers.

    Example:
        >>> LoggerFactory.configure(LoggingConfig(level="DEBUG", format="json"))
        >>> logger = LoggerFactory.get_logger("qledger.portfolio")
        >>> logger.debug("portfolio.lot_added", symbol="AAPL", quantity="10")
    """

    _config: Optional[LoggingConfig] = None
    _handlers: list[logging.Handler] = []

    @classmethod
    def configure(cls, config: Optional[LoggingConfig] = None) -> None:
        """
        Configure structlog and the stdlib root logger.

        Safe to call repeatedly: handlers installed by a previous call are
        removed before new ones are attached.

        Args:
            config: Logging configuration (defaults used when omitted)
        """
        config = config or LoggingConfig()
        shared = cls._shared_processors(config)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

        root = logging.getLogger()
        for handler in cls._handlers:
            root.removeHandler(handler)
            handler.close()
        cls._handlers = []

        console_level = getattr(logging, config.level)
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    cls._renderer(config.format),
                ],
                foreign_pre_chain=shared,
            )
        )
        cls._handlers.append(console_handler)

        effective_level = console_level
        if config.enable_file and config.file_path is not None:
            file_handler = cls._file_handler(config)
            cls._handlers.append(file_handler)
            effective_level = min(effective_level, file_handler.level)

        for handler in cls._handlers:
            root.addHandler(handler)
        root.setLevel(effective_level)

        cls._config = config

    @classmethod
    def get_logger(cls, name: Optional[str] = None) -> Any:
        """
        Get a structlog logger.

        Args:
            name: Logger name (defaults to "qledger")

        Returns:
            Bound structlog logger
        """
        if not structlog.is_configured():
            cls._configure_passthrough()
        return structlog.get_logger(name or DEFAULT_LOGGER_NAME)

    @classmethod
    def get_config(cls) -> LoggingConfig:
        """Return the active configuration (defaults if never configured)."""
        if cls._config is None:
            return LoggingConfig()
        return cls._config

    @classmethod
    def reset(cls) -> None:
        """Remove installed handlers and fall back to unconfigured routing."""
        root = logging.getLogger()
        for handler in cls._handlers:
            root.removeHandler(handler)
            handler.close()
        cls._handlers = []
        cls._config = None
        root.setLevel(logging.WARNING)
        structlog.reset_defaults()
        cls._configure_passthrough()

    @staticmethod
    def _shared_processors(config: LoggingConfig) -> list[Any]:
        fmt = _TIMESTAMP_FORMATS.get(config.timestamp_format, "iso")
        return [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt=fmt, utc=fmt == "iso"),
            structlog.processors.StackInfoRenderer(),
        ]

    @staticmethod
    def _renderer(fmt: str) -> Any:
        if fmt == "json":
            return structlog.processors.JSONRenderer()
        return structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.RichTracebackFormatter(),
        )

    @staticmethod
    def _file_handler(config: LoggingConfig) -> logging.Handler:
        path = Path(config.file_path)  # type: ignore[arg-type]
        path.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler
        if config.file_rotation:
            handler = RotatingFileHandler(
                path,
                maxBytes=config.max_file_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        else:
            handler = logging.FileHandler(path, encoding="utf-8")

        handler.setLevel(getattr(logging, config.file_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    structlog.processors.JSONRenderer(),
                ],
            )
        )
        return handler

    @classmethod
    def _configure_passthrough(cls) -> None:
        # Route to stdlib logging without touching handlers or levels
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *cls._shared_processors(LoggingConfig()),
                structlog.processors.format_exc_info,
                structlog.processors.KeyValueRenderer(key_order=["event"]),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )
