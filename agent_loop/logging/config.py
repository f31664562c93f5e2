"""Logging setup for agent_loop.

structlog renders every event, including records from the provider SDKs
that log through the stdlib ``logging`` module, so a run's ``trace_id`` and
``session_id`` appear on both kinds of lines.
"""
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import structlog

from .processors import add_logger_name, inject_context, truncate_long_values


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_int(self) -> int:
        return getattr(logging, self.value)


class LogFormat(str, Enum):
    """Output format for logs."""
    PLAIN = "plain"  # Console, for development
    JSON = "json"    # One JSON object per line


# HTTP and SDK loggers emit a line per request at INFO; runs make many requests.
DEFAULT_LIBRARY_LEVELS: dict[str, LogLevel] = {
    "httpx": LogLevel.WARNING,
    "httpcore": LogLevel.WARNING,
    "openai": LogLevel.WARNING,
    "anthropic": LogLevel.WARNING,
}


@dataclass
class LogConfig:
    """Configuration for agent_loop logging.

    Attributes:
        level: Level for agent_loop loggers and the handlers.
        format: PLAIN for the console, JSON for log shipping.
        log_file: Optional file receiving the same events, rotated by size.
        max_bytes: Size at which ``log_file`` rotates.
        backup_count: Rotated files kept.
        max_value_length: String fields longer than this are truncated.
            Prompts and tool outputs end up in events; this bounds line size.
        library_levels: Levels for third-party loggers (HTTP clients, SDKs).
    """
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.PLAIN
    log_file: Optional[Path] = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    max_value_length: int = 500
    library_levels: dict[str, LogLevel] = field(default_factory=lambda: dict(DEFAULT_LIBRARY_LEVELS))


_configured: bool = False


def _shared_processors(config: LogConfig) -> list:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        inject_context,
        add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        truncate_long_values(config.max_value_length),
    ]


def _renderer(config: LogConfig, colors: bool):
    if config.format == LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=colors,
        exception_formatter=structlog.dev.plain_traceback,
    )


def _formatter(config: LogConfig, processors: list, colors: bool) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config, colors),
        ],
    )


def _build_handlers(config: LogConfig, processors: list) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(config, processors, colors=sys.stderr.isatty()))
    handlers: list[logging.Handler] = [console]

    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        # Never colorize files
        file_handler.setFormatter(_formatter(config, processors, colors=False))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(config.level.to_int())
    return handlers


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure structlog and route all stdlib logging through it.

    Calling it again replaces the previous handlers; replaced handlers are
    closed, which releases any log file.

    Example:
        >>> configure_logging(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON,
        ...                             log_file=Path("logs/agent.jsonl")))
    """
    global _configured

    if config is None:
        config = LogConfig()

    processors = _shared_processors(config)

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level.to_int())
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(config, processors):
        root_logger.addHandler(handler)

    for name, level in config.library_levels.items():
        logging.getLogger(name).setLevel(level.to_int())

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configured = True


def is_configured() -> bool:
    return _configured


def ensure_configured() -> None:
    """Configure logging with defaults if nobody has done so yet."""
    if not _configured:
        configure_logging()
