"""
Structured logging for hierarchy targeting.

Provides JSON-formatted logs with selector context and sensitive data
handling, plus a readable text format for development.

Features:
- JSON and text formatters for different environments
- Selector context tracking (selector_id, taxonomy, operation)
- Token redaction in messages and structured data
- Service metadata (name, version, environment)
- Rotating file handler support
"""

import json
import logging
import os
import re
import sys
import time
import traceback
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import UTC, datetime
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, TypeVar

# Context variables for selector tracking
_selector_id: ContextVar[str | None] = ContextVar("selector_id", default=None)
_taxonomy: ContextVar[str | None] = ContextVar("taxonomy", default=None)
_operation: ContextVar[str | None] = ContextVar("operation", default=None)

# Service metadata (set at startup)
_service_name: str = "hierarchy-targeting"
_service_version: str = "0.1.0"
_environment: str = "development"

REDACT_PATTERNS = [
    r"Bearer\s+[A-Za-z0-9._~+/\-]+=*",  # Authorization header values
    r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\b",  # Bare JWTs
]


# --- Configuration ---


class LogConfig:
    """
    Logging configuration from environment variables.

    For validated settings prefer LoggingConfig from config.py; this class
    backs setup_logging() when it is called without arguments.
    """

    def __init__(self):
        self.level = os.getenv("TARGETING_LOG_LEVEL", "INFO").upper()
        self.format = os.getenv("TARGETING_LOG_FORMAT", "json")  # json or text
        self.file_path = os.getenv("TARGETING_LOG_FILE")
        self.max_size_mb = int(os.getenv("TARGETING_LOG_MAX_SIZE_MB", "50"))
        self.retention_count = int(os.getenv("TARGETING_LOG_RETENTION_COUNT", "5"))

        self.service_name = os.getenv("TARGETING_SERVICE_NAME", "hierarchy-targeting")
        self.environment = os.getenv("TARGETING_ENVIRONMENT", "development")

        self.max_message_length = 1000
        self.max_data_length = 300


_config = LogConfig()


# --- Context Management ---


def set_selector_context(
    selector_id: str | None = None,
    taxonomy: str | None = None,
    operation: str | None = None,
) -> None:
    """
    Set the current selector context for logging.

    Args:
        selector_id: ID of the selector instance handling the event
        taxonomy: Active taxonomy kind
        operation: Transition or fetch being performed
    """
    if selector_id:
        _selector_id.set(selector_id)
    if taxonomy:
        _taxonomy.set(taxonomy)
    if operation:
        _operation.set(operation)


def clear_selector_context() -> None:
    """Clear the current selector context."""
    _selector_id.set(None)
    _taxonomy.set(None)
    _operation.set(None)


def get_selector_context() -> dict[str, str | None]:
    """Get the current selector context."""
    return {
        "selector_id": _selector_id.get(),
        "taxonomy": _taxonomy.get(),
        "operation": _operation.get(),
    }


def generate_selector_id() -> str:
    """Generate a unique selector ID."""
    return f"sel_{uuid.uuid4().hex[:12]}"


def set_service_metadata(name: str, version: str, environment: str) -> None:
    """Set service metadata for log records. Call once at startup."""
    global _service_name, _service_version, _environment
    _service_name = name
    _service_version = version
    _environment = environment


# --- Sensitive Data Handling ---


def sanitize_text(text: str, max_length: int | None = None) -> str:
    """
    Sanitize text for logging by truncating and redacting tokens.

    Args:
        text: The text to sanitize
        max_length: Maximum length (uses config default if None)

    Returns:
        Sanitized text safe for logging
    """
    if not text:
        return ""

    max_len = max_length or _config.max_data_length

    sanitized = text
    for pattern in REDACT_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized)

    if len(sanitized) > max_len:
        sanitized = sanitized[:max_len] + "..."

    return sanitized


def sanitize_dict(data: dict[str, Any], sensitive_keys: set | None = None) -> dict[str, Any]:
    """
    Sanitize a dictionary for logging.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Keys to fully redact (default: password, token, secret, auth)

    Returns:
        Sanitized dictionary safe for logging
    """
    if sensitive_keys is None:
        sensitive_keys = {"password", "token", "secret", "api_key", "auth"}

    result = {}
    for k, v in data.items():
        k_lower = k.lower()
        if any(sensitive in k_lower for sensitive in sensitive_keys):
            result[k] = "[REDACTED]"
        elif isinstance(v, str):
            result[k] = sanitize_text(v)
        elif isinstance(v, dict):
            result[k] = sanitize_dict(v, sensitive_keys)
        elif isinstance(v, list):
            result[k] = [sanitize_text(item) if isinstance(item, str) else item for item in v[:10]]
            if len(v) > 10:
                result[k].append(f"... and {len(v) - 10} more")
        else:
            result[k] = v

    return result


# --- Formatters ---


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON for structured logging.

    Each log line is a single JSON object with consistent field names.
    """

    def __init__(self, include_timestamp: bool = True, include_service_info: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_service_info = include_service_info

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": self._truncate_message(sanitize_text(record.getMessage(), 10_000)),
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(UTC).isoformat()

        if self.include_service_info:
            log_data["service"] = {
                "name": _service_name,
                "version": _service_version,
                "environment": _environment,
            }

        context = {k: v for k, v in get_selector_context().items() if v is not None}
        if context:
            log_data["context"] = context

        if hasattr(record, "data") and record.data:
            log_data["data"] = sanitize_dict(record.data)

        if record.exc_info:
            log_data["error"] = self._format_exception(record.exc_info)

        if record.levelno >= logging.WARNING:
            log_data["source"] = {
                "file": self._shorten_path(record.pathname),
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str, ensure_ascii=False)

    def _truncate_message(self, message: str) -> str:
        max_len = _config.max_message_length
        if len(message) > max_len:
            return message[:max_len] + "..."
        return message

    def _shorten_path(self, pathname: str) -> str:
        if "hierarchy_targeting" in pathname:
            return pathname[pathname.find("hierarchy_targeting") :]
        return pathname

    def _format_exception(self, exc_info) -> dict[str, Any]:
        exc_type, exc_value, exc_tb = exc_info

        error_data: dict[str, Any] = {
            "type": exc_type.__name__ if exc_type else "Unknown",
            "message": str(exc_value)[:500] if exc_value else "",
        }

        if exc_tb:
            error_data["stack"] = [
                {
                    "file": self._shorten_path(frame.filename),
                    "line": frame.lineno,
                    "function": frame.name,
                }
                for frame in traceback.extract_tb(exc_tb)[-5:]
            ]

        return error_data


class TextFormatter(logging.Formatter):
    """
    Formats log records as human-readable text for development.

    Uses colors for different log levels when outputting to a terminal.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")

        level = record.levelname
        if self.use_colors:
            level_str = f"{self.COLORS.get(level, '')}{level:8}{self.COLORS['RESET']}"
        else:
            level_str = f"{level:8}"

        base = f"{timestamp} [{level_str}] {record.name}: {sanitize_text(record.getMessage(), 10_000)}"

        context = get_selector_context()
        context_parts = []
        if context.get("selector_id"):
            context_parts.append(f"sel={context['selector_id'][-8:]}")
        if context.get("taxonomy"):
            context_parts.append(f"tax={context['taxonomy']}")
        if context.get("operation"):
            context_parts.append(f"op={context['operation']}")
        if context_parts:
            base = f"{base} ({', '.join(context_parts)})"

        if hasattr(record, "data") and record.data:
            data_items = [f"{k}={str(v)[:50]}" for k, v in list(sanitize_dict(record.data).items())[:5]]
            base = f"{base} | {' '.join(data_items)}"

        if record.exc_info:
            base = f"{base}\n{self.formatException(record.exc_info)}"

        return base


# --- Logger Wrapper ---


class StructuredLogger:
    """A logger wrapper that supports structured data logging."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, data: dict[str, Any] | None = None, **kwargs):
        extra = {"data": data} if data else {}
        self.logger.log(level, message, extra=extra, **kwargs)

    def debug(self, message: str, data: dict[str, Any] | None = None, **kwargs):
        self._log(logging.DEBUG, message, data, **kwargs)

    def info(self, message: str, data: dict[str, Any] | None = None, **kwargs):
        self._log(logging.INFO, message, data, **kwargs)

    def warning(self, message: str, data: dict[str, Any] | None = None, **kwargs):
        self._log(logging.WARNING, message, data, **kwargs)

    def error(self, message: str, data: dict[str, Any] | None = None, **kwargs):
        self._log(logging.ERROR, message, data, **kwargs)

    def exception(self, message: str, data: dict[str, Any] | None = None, **kwargs):
        self._log(logging.ERROR, message, data, exc_info=True, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return StructuredLogger(name)


# --- Setup Functions ---


def setup_logging(
    level: str | None = None,
    format: str | None = None,
    log_file: str | None = None,
    service_name: str | None = None,
    service_version: str | None = None,
    environment: str | None = None,
) -> None:
    """
    Configure logging for the package. Call this once at startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format (json or text)
        log_file: Optional file path for log output
        service_name: Service name for log records
        service_version: Service version for log records
        environment: Environment name (development, staging, production)
    """
    config = _config

    if level:
        config.level = level.upper()
    if format:
        config.format = format
    if log_file:
        config.file_path = log_file

    set_service_metadata(
        name=service_name or config.service_name,
        version=service_version or "0.1.0",
        environment=environment or config.environment,
    )

    root_logger = logging.getLogger("hierarchy_targeting")
    root_logger.setLevel(getattr(logging, config.level, logging.INFO))
    root_logger.handlers.clear()

    if config.format == "json":
        formatter = JSONFormatter()
    else:
        formatter = TextFormatter(use_colors=True)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File logs are always JSON
    if config.file_path:
        file_path = Path(config.file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path, maxBytes=config.max_size_mb * 1024 * 1024, backupCount=config.retention_count
        )
        file_handler.setFormatter(JSONFormatter(include_timestamp=True))
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def setup_logging_from_config() -> None:
    """Configure logging from LoggingConfig (Pydantic)."""
    from ..config import get_logging_config

    logging_config = get_logging_config()

    setup_logging(
        level=logging_config.log_level,
        format=logging_config.log_format,
        log_file=logging_config.log_file,
        service_name=logging_config.service_name,
        environment=logging_config.environment,
    )


# --- Decorators ---

F = TypeVar("F", bound=Callable[..., Any])


def log_operation(operation_name: str):
    """
    Decorator to log an async operation with timing.

    Usage:
        @log_operation("snapshot_load")
        async def load_snapshot():
            ...
    """

    def decorator(func: F) -> F:
        logger = get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            logger.debug(f"Starting: {operation_name}")

            try:
                result = await func(*args, **kwargs)
                latency_ms = int((time.time() - start_time) * 1000)
                logger.info(f"Completed: {operation_name}", data={"latency_ms": latency_ms})
                return result

            except Exception as e:
                latency_ms = int((time.time() - start_time) * 1000)
                logger.error(
                    f"Failed: {operation_name}",
                    data={"latency_ms": latency_ms, "error": str(e)[:200]},
                )
                raise

        return wrapper  # type: ignore

    return decorator
