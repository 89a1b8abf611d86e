"""
Observability module for hierarchy targeting.
"""

from .logging import (
    JSONFormatter,
    LogConfig,
    StructuredLogger,
    TextFormatter,
    clear_selector_context,
    generate_selector_id,
    get_logger,
    get_selector_context,
    log_operation,
    sanitize_dict,
    sanitize_text,
    set_selector_context,
    setup_logging,
    setup_logging_from_config,
)
from .metrics import get_metrics_text, get_sample_value, initialize_metrics, reset_metrics

__all__ = [
    # Logging
    "setup_logging",
    "setup_logging_from_config",
    "get_logger",
    "StructuredLogger",
    "JSONFormatter",
    "TextFormatter",
    "set_selector_context",
    "clear_selector_context",
    "get_selector_context",
    "generate_selector_id",
    "sanitize_text",
    "sanitize_dict",
    "log_operation",
    "LogConfig",
    # Metrics
    "initialize_metrics",
    "reset_metrics",
    "get_metrics_text",
    "get_sample_value",
]
