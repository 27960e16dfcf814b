"""
Logging Module - Centralized logging configuration
==================================================

Sets up the ``location_tracker`` logger tree:
- Colored console output
- Plain or JSON file log with a separate JSON error log
- Thread-local context (e.g. the masked recipient of a session)
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any
import json
import threading

ROOT_LOGGER_NAME = "location_tracker"
LOG_FILE_NAME = "location-tracker.log"
ERROR_LOG_FILE_NAME = "errors.log"


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Each record becomes one JSON object per line.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Session context from ContextFilter
        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that highlights the level name with ANSI colors."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        formatted = (
            f"{color}{self.BOLD}[{record.levelname}]{self.RESET} "
            f"{timestamp} | {record.name}:{record.lineno} | "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class ContextFilter(logging.Filter):
    """
    Logging filter that attaches thread-local context to records.

    The tracking service sets the session context when it starts;
    the location worker thread copies it so fixes and sends logged
    from that thread carry it too.
    """

    _context = threading.local()

    @classmethod
    def set_context(cls, **kwargs) -> None:
        if not hasattr(cls._context, "data"):
            cls._context.data = {}
        cls._context.data.update(kwargs)

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        return dict(getattr(cls._context, "data", {}))

    @classmethod
    def clear_context(cls) -> None:
        cls._context.data = {}

    def filter(self, record: logging.LogRecord) -> bool:
        data = getattr(self._context, "data", None)
        if data:
            record.context = data.copy()
        return True


class LoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that merges its bound extra fields into every call.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


_loggers: Dict[str, logging.Logger] = {}
_configured = False


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    json_format: bool = False,
    console_output: bool = True
) -> None:
    """
    Set up logging configuration for the application.

    Should be called once at startup; later calls are ignored.

    Args:
        log_dir: Directory for log files (optional)
        log_level: Minimum log level to capture
        json_format: Use JSON format for the main file log
        console_output: Also output to console

    Example:
        setup_logging(
            log_dir="~/.local/share/location-tracker/logs",
            log_level="DEBUG",
        )
    """
    global _configured

    if _configured:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    context_filter = ContextFilter()

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(ColoredFormatter())
        console_handler.addFilter(context_filter)
        root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path / LOG_FILE_NAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(context_filter)

        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
                )
            )
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(log_path / ERROR_LOG_FILE_NAME, encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.addFilter(context_filter)
        error_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(error_handler)

    _configured = True


def get_logger(name: str, **extra) -> LoggerAdapter:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name, prefixed with ``location_tracker.`` if needed
        **extra: Extra fields bound to every record from this adapter

    Returns:
        LoggerAdapter instance

    Example:
        logger = get_logger("services.sms")
        logger.info("SMS sent", extra={"length": 84})
    """
    prefix = f"{ROOT_LOGGER_NAME}."
    full_name = name if name.startswith(ROOT_LOGGER_NAME) else prefix + name

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)

    return LoggerAdapter(_loggers[full_name], extra)


def set_log_context(**kwargs) -> None:
    """
    Set thread-local logging context.

    Example:
        set_log_context(recipient="+15****4567")
    """
    ContextFilter.set_context(**kwargs)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current thread's logging context."""
    return ContextFilter.get_context()


def clear_log_context() -> None:
    """Clear thread-local logging context."""
    ContextFilter.clear_context()


def mask_phone(phone: Optional[str]) -> str:
    """
    Mask a phone number for log output.

    Keeps the first three and last four characters.
    """
    if phone and len(phone) > 4:
        return phone[:3] + "****" + phone[-4:]
    return "****"
