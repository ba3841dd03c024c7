"""
Structured Logging for MediaVault.

All modules should import get_logger() from here rather than using Python's
logging directly:

    from mediavault.core.logging import get_logger
    logger = get_logger(__name__)

Logger Types
------------
**StructuredLogger**
    Base logger with context binding support. Key-value pairs attached with
    bind() appear in every subsequent message:

        logger = get_logger(__name__)
        logger.bind(image_id="abc123")
        logger.info("Thumbnail created")  # includes image_id

**JobLogger**
    Per-job logger used by the scheduler. Records when a job is claimed and
    logs its outcome together with the elapsed time:

        jlog = JobLogger(job)
        jlog.started()
        jlog.finished(error=None)

Loggers are cached by name, so multiple get_logger() calls return the same
instance.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Messages are rendered as ``message | key=value | key=value`` so that log
    lines stay greppable without a JSON pipeline.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._context: dict[str, Any] = {}
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            console_handler = RichHandler(
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            )
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Attach context fields to every subsequent message."""
        self._context.update(kwargs)
        return self

    def unbind(self, *keys: str) -> None:
        """Remove context fields."""
        for key in keys:
            self._context.pop(key, None)

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Format message with context and extra fields."""
        fields = {**self._context, **kwargs}
        if fields:
            field_str = " | ".join(f"{k}={v}" for k, v in fields.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers created before this call are reconfigured in place.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.config = config
        structured._setup_logger()


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class JobLogger:
    """
    Specialized logger for background job execution.

    Tracks the time between claim and settle for one job.
    """

    def __init__(self, job: Any) -> None:
        self.job = job
        self.logger = get_logger("mediavault.jobs")
        self._started: Optional[float] = None

    def _fields(self) -> dict[str, Any]:
        return {
            "job_id": self.job.id,
            "kind": self.job.kind.value,
            "resource_id": self.job.resource_id,
        }

    def started(self) -> None:
        """Mark the job as claimed."""
        self._started = time.monotonic()
        self.logger.info("Job started", **self._fields())

    def finished(self, error: Optional[str] = None) -> None:
        """Log job completion or failure with its duration."""
        duration = 0.0
        if self._started is not None:
            duration = time.monotonic() - self._started

        if error is None:
            self.logger.info(
                "Job complete", duration_sec=f"{duration:.2f}", **self._fields()
            )
        else:
            self.logger.error(
                "Job failed",
                duration_sec=f"{duration:.2f}",
                error=error,
                **self._fields(),
            )
