"""
Core Logger Module

Two concerns live here:

- The library's own logger (``get_logger``), configured once through
  ``logging.config.dictConfig``. By default it only propagates to whatever the
  host application configured.
- ``start_service_logging``, a bootstrap for services: console output plus
  daily-rotated ``<service>-info.log`` / ``<service>-error.log`` files written
  by background ``QueueListener`` threads. The returned handles must be kept
  alive (and stopped on shutdown) for the lifetime of the process.
"""

import logging
import logging.config
import queue
import sys
import threading
import time
from dataclasses import dataclass, field
from functools import lru_cache
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from servicekit.core.config import settings
from servicekit.core.exceptions import LogDirectoryError, LoggingException

_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "OFF": logging.CRITICAL + 1,
}

_ANSI_COLORS: Dict[int, str] = {
    logging.DEBUG: "\033[34m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_ANSI_RESET = "\033[0m"


def _get_setting(name: str, default: Any) -> Any:
    """Get a setting with a default fallback."""
    return getattr(settings, name, default)


def get_logging_config() -> Dict[str, Any]:
    """
    Generate the logging configuration for the ``servicekit`` logger.

    The root logger is left untouched so host applications keep control of
    their own sinks.

    Returns:
        Dict: Logging configuration dictionary
    """
    log_level = (_get_setting("log_level", "warning") or "warning").upper()

    handlers: Dict[str, Dict[str, Any]] = {
        "null": {"class": "logging.NullHandler"},
    }
    if _get_setting("log__console", False):
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "simple",
            "stream": sys.stderr,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            "servicekit": {
                "level": log_level,
                "handlers": list(handlers),
                "propagate": True,
            },
        },
    }


@lru_cache(maxsize=1)
def setup_logging() -> None:
    """
    Set up the ``servicekit`` logger.
    This function is idempotent and runs on the first ``get_logger`` call.
    """
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with automatic 'servicekit' prefix.

    Args:
        name: Logger name, typically __name__ of the calling module.
              Will be prefixed with 'servicekit.' if not already present.

    Returns:
        Logger: Configured logger instance with servicekit prefix

    Example:
        logger = get_logger(__name__)  # Returns 'servicekit.module_name'
        logger.info("This is an info message")
    """
    setup_logging()

    if not name.startswith("servicekit"):
        name = f"servicekit.{name}"

    return logging.getLogger(name)


class LogConfig(BaseModel):
    """Formatting and level options for ``start_service_logging``."""

    time_format: str = Field(
        default="%Y-%m-%d %H:%M:%S", description="strftime format for timestamps"
    )
    enable_ansi: bool = Field(default=True, description="Colorize console output")
    show_target: bool = Field(default=False, description="Include the logger name")
    show_thread_ids: bool = Field(default=False, description="Include the thread id")
    compact_format: bool = Field(
        default=True, description="Omit module and line number"
    )
    console_level: str = Field(default="INFO", description="Console log level")
    file_level: str = Field(default="INFO", description="Info file log level")

    model_config = ConfigDict(frozen=True)

    @field_validator("console_level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize and validate a level name."""
        normalized = v.upper().strip()
        if normalized not in _LEVELS:
            raise ValueError(f"level must be one of {sorted(_LEVELS)}, got '{v}'")
        return normalized

    def level_number(self, name: str) -> int:
        """Resolve ``console_level`` or ``file_level`` to a logging level number."""
        return _LEVELS[getattr(self, name)]

    def format_string(self) -> str:
        """Build the ``logging.Formatter`` format string for this config."""
        parts = ["%(asctime)s", "%(levelname)s"]
        if self.show_thread_ids:
            parts.append("[%(thread)d]")
        if self.show_target:
            parts.append("%(name)s:")
        if not self.compact_format:
            parts.append("%(module)s:%(lineno)d -")
        parts.append("%(message)s")
        return " ".join(parts)


class _UtcFormatter(logging.Formatter):
    converter = time.gmtime


class _ColorFormatter(_UtcFormatter):
    """Wraps the level name in ANSI color codes."""

    def format(self, record: logging.LogRecord) -> str:
        color = _ANSI_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        original = record.levelname
        record.levelname = f"{color}{original}{_ANSI_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


@dataclass
class LoggingHandles:
    """
    Live handles returned by ``start_service_logging``.

    Hold on to them for the process lifetime: records are written to the
    files by the listeners' background threads, and ``stop()`` flushes them.
    """

    info: QueueListener
    error: QueueListener
    installed: List[logging.Handler] = field(default_factory=list, repr=False)
    previous_level: int = field(default=logging.WARNING, repr=False)
    stopped: bool = field(default=False, repr=False)

    def stop(self) -> None:
        """Flush pending records, stop both listeners and detach the handlers."""
        if self.stopped:
            return
        self.stopped = True
        root = logging.getLogger()
        for handler in self.installed:
            root.removeHandler(handler)
        root.setLevel(self.previous_level)
        for listener in (self.info, self.error):
            listener.stop()
            for handler in listener.handlers:
                handler.close()

    def __enter__(self) -> "LoggingHandles":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()


_bootstrap_lock = threading.Lock()
_active_handles: Optional[LoggingHandles] = None


def _queue_listener(handler: logging.Handler) -> tuple[QueueHandler, QueueListener]:
    records: queue.Queue = queue.Queue(-1)
    queue_handler = QueueHandler(records)
    queue_handler.setLevel(handler.level)
    listener = QueueListener(records, handler, respect_handler_level=True)
    return queue_handler, listener


def _open_log_files(
    log_dir: Path, service_name: str, config: LogConfig, formatter: logging.Formatter
) -> tuple[TimedRotatingFileHandler, TimedRotatingFileHandler]:
    """Open the info and error files; nothing stays open if either one fails."""
    opened: List[logging.Handler] = []
    try:
        info_file = TimedRotatingFileHandler(
            log_dir / f"{service_name}-info.log", when="midnight", utc=True, encoding="utf-8"
        )
        opened.append(info_file)
        error_file = TimedRotatingFileHandler(
            log_dir / f"{service_name}-error.log", when="midnight", utc=True, encoding="utf-8"
        )
    except OSError as e:
        for handler in opened:
            handler.close()
        raise LoggingException.wrap(
            e, f"Failed to open log files for {service_name} in {log_dir}", path=str(log_dir)
        ) from e

    info_file.setLevel(config.level_number("file_level"))
    info_file.setFormatter(formatter)
    info_file.addFilter(lambda record: record.levelno == logging.INFO)

    error_file.setLevel(logging.ERROR)
    error_file.setFormatter(formatter)
    return info_file, error_file


def start_service_logging(
    service_name: str,
    path: Optional[str] = None,
    config: Optional[LogConfig] = None,
    base_dir: Optional[Union[str, Path]] = None,
) -> LoggingHandles:
    """
    Initialize console and file logging for a service.

    Args:
        service_name: Prefix of the log file names
        path: Optional subdirectory under the log directory
        config: Formatting and level options (defaults to ``LogConfig()``)
        base_dir: Log directory (defaults to ``settings.log__dir``)

    Returns:
        LoggingHandles: Started listeners for the info and error files

    Raises:
        LogDirectoryError: If the log directory cannot be created
        LoggingException: If a log file cannot be opened
    """
    global _active_handles

    config = config or LogConfig()
    root_dir = Path(base_dir if base_dir is not None else _get_setting("log__dir", "logs"))
    log_dir = root_dir / path if path else root_dir

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LogDirectoryError.wrap(
            e, f"Failed to create log directory: {log_dir}", path=str(log_dir)
        ) from e

    fmt = config.format_string()
    file_formatter = _UtcFormatter(fmt, datefmt=config.time_format)
    info_file, error_file = _open_log_files(log_dir, service_name, config, file_formatter)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(config.level_number("console_level"))
    use_color = config.enable_ansi and sys.stderr.isatty()
    console_formatter_cls = _ColorFormatter if use_color else _UtcFormatter
    console.setFormatter(console_formatter_cls(fmt, datefmt=config.time_format))

    info_queue_handler, info_listener = _queue_listener(info_file)
    error_queue_handler, error_listener = _queue_listener(error_file)

    handles = LoggingHandles(
        info=info_listener,
        error=error_listener,
        installed=[info_queue_handler, error_queue_handler, console],
    )

    with _bootstrap_lock:
        if _active_handles is not None:
            _active_handles.stop()

        root = logging.getLogger()
        handles.previous_level = root.level
        for handler in handles.installed:
            root.addHandler(handler)
        root.setLevel(min(handler.level for handler in handles.installed))

        info_listener.start()
        error_listener.start()
        _active_handles = handles

    get_logger(__name__).debug(
        "Service logging started for %s in %s", service_name, log_dir
    )
    return handles
