"""
Structured JSON logging shared by the publish and subscribe Lambdas.

Outputs one JSON object per line to stdout for CloudWatch Logs Insights:
- level / event_type / service / timestamp on every entry
- request_id from the Lambda context once set_lambda_context() is called
- error type, message and stack trace for ERROR entries

Set DEBUG=true to emit DEBUG entries (raw event dumps).
"""

import json
import logging
import sys
import time
import traceback
from enum import Enum
from typing import Any, Dict, Optional

LOGGER_NAME = "slack-bedrock-relay"

# Set by each handler at the start of an invocation
_lambda_context: Optional[Any] = None
_service: str = LOGGER_NAME


class LogLevel(Enum):
    """Standard log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class _StdoutHandler(logging.StreamHandler):
    """StreamHandler that uses current sys.stdout at emit time (for pytest capsys capture)."""

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    def emit(self, record: logging.LogRecord) -> None:
        self.stream = sys.stdout
        super().emit(record)


def _setup() -> None:
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = _StdoutHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)


_setup()


def get_logger() -> logging.Logger:
    """Return the configured relay logger."""
    return logging.getLogger(LOGGER_NAME)


def configure(service: str, debug: bool = False) -> None:
    """Set the service name stamped on entries and the effective level."""
    global _service
    _service = service
    get_logger().setLevel(logging.DEBUG if debug else logging.INFO)


def set_lambda_context(context: Optional[Any]) -> None:
    """Set Lambda context for request_id extraction."""
    global _lambda_context
    _lambda_context = context


def _get_request_id() -> Optional[str]:
    if _lambda_context is not None and hasattr(_lambda_context, "aws_request_id"):
        return _lambda_context.aws_request_id
    return None


def _build_log_entry(
    level: str,
    event_type: str,
    data: Dict[str, Any],
    error: Optional[Exception] = None,
    include_stack_trace: bool = False,
) -> Dict[str, Any]:
    # Reserved keys win over caller data
    log_entry: Dict[str, Any] = {
        **data,
        "level": level,
        "event_type": event_type,
        "service": _service,
        "timestamp": time.time(),
    }

    request_id = _get_request_id()
    if request_id:
        log_entry["request_id"] = request_id

    if error is not None:
        log_entry["error"] = {
            "type": type(error).__name__,
            "message": str(error),
        }
        if include_stack_trace:
            log_entry["error"]["stack_trace"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

    return log_entry


def log(
    level: str,
    event_type: str,
    data: Dict[str, Any],
    error: Optional[Exception] = None,
    include_stack_trace: bool = False,
) -> None:
    """
    Log structured event.

    Args:
        level: Log level (DEBUG, INFO, WARN, ERROR)
        event_type: Event type identifier (e.g., "event_published", "file_fetch_failed")
        data: Event-specific data dictionary
        error: Optional exception object
        include_stack_trace: Whether to attach the exception's stack trace
    """
    logger = get_logger()
    log_method = logger.warning if level == "WARN" else getattr(logger, level.lower(), logger.info)
    if level == "DEBUG" and not logger.isEnabledFor(logging.DEBUG):
        return

    log_entry = _build_log_entry(level, event_type, data, error, include_stack_trace)
    log_method(json.dumps(log_entry, default=str, ensure_ascii=False))


def log_debug(event_type: str, data: Dict[str, Any]) -> None:
    """Log DEBUG level event."""
    log(LogLevel.DEBUG.value, event_type, data)


def log_info(event_type: str, data: Dict[str, Any]) -> None:
    """Log INFO level event."""
    log(LogLevel.INFO.value, event_type, data)


def log_warn(event_type: str, data: Dict[str, Any], error: Optional[Exception] = None) -> None:
    """Log WARN level event."""
    log(LogLevel.WARN.value, event_type, data, error)


def log_error(
    event_type: str,
    data: Dict[str, Any],
    error: Optional[Exception] = None,
    include_stack_trace: bool = False,
) -> None:
    """Log ERROR level event."""
    log(LogLevel.ERROR.value, event_type, data, error, include_stack_trace)


def log_exception(event_type: str, data: Dict[str, Any], error: Exception) -> None:
    """Log an exception at ERROR level with its stack trace."""
    log_error(event_type, data, error, include_stack_trace=True)
