import dataclasses
import enum
import json
import logging
import os
import traceback
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
import queue
import sys
from typing import Any, Dict, Optional, Tuple, List
from logging import Handler

from .config import Settings


_REDACT_KEYS: set[str] = set()

_logger: Optional[logging.Logger] = None
_log_listener: Optional[QueueListener] = None

_MAX_DATA_STRING_CHARS = 5000


def json_dumps_compact(obj: Any) -> str:
    """Compact JSON serialization with minimal separators."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def is_json_serializable(obj: Any) -> bool:
    try:
        json.dumps(obj)
        return True
    except (TypeError, ValueError):
        return False


def _sanitize_for_json(obj: Any) -> Any:
    """Recursively sanitize an object for JSON serialization.

    Converts non-serializable types (bytes, dataclasses, enums, etc.) into
    JSON-compatible structures while redacting sensitive fields:
    - Bytes: Decoded as UTF-8 with replacement characters
    - Dataclasses: Converted to dictionaries
    - Dictionaries: Redacts keys listed in _REDACT_KEYS and removes null values
    - Lists/sets/tuples: Recursively sanitizes each element, dropping nulls
    - Non-serializable objects: Converted via repr()

    Args:
        obj (Any): Input object to sanitize.

    Returns:
        Any: JSON-serializable structure with sensitive data redacted and null values removed.
    """
    if isinstance(obj, bytes):
        return obj.decode("utf-8", "replace")
    if isinstance(obj, enum.Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _sanitize_for_json(dataclasses.asdict(obj))
    if isinstance(obj, dict):
        redacted = {}
        for k, v in obj.items():
            if isinstance(k, str) and k.lower() in _REDACT_KEYS:
                redacted[k] = "***REDACTED***"
            else:
                sanitized_value = _sanitize_for_json(v)
                if sanitized_value is not None:
                    redacted[k] = sanitized_value
        return redacted
    if isinstance(obj, (list, tuple, set)):
        return [_sanitize_for_json(x) for x in obj if x is not None]
    if is_json_serializable(obj):
        return obj
    return repr(obj)


class LogEvent(enum.Enum):
    """Enumeration of structured log events emitted throughout RPCProxy.

    Each value marks a distinct milestone or error category in the request
    pipeline, the upstream transport or the process lifecycle. These constants
    are used in ``LogRecord.event`` for consistent analytics and monitoring.
    """

    PROXY_READY = "proxy_ready"
    LIFECYCLE = "lifecycle"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILURE = "request_failure"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CACHE_EVENT = "cache_event"
    UPSTREAM_REQUEST = "upstream_request"
    UPSTREAM_ERROR = "upstream_error"
    HTTP_CLIENT = "http_client"
    WORKER_POOL = "worker_pool"


@dataclasses.dataclass
class LogError:
    """Structured representation of an exception attached to a log entry.

    Attributes:
        name: Exception class name.
        message: Human-readable description.
        stack_trace: Full traceback string (may be ``None`` when suppressed).
        args: JSON-safe serialization of ``Exception.args``.
    """

    name: str
    message: str
    stack_trace: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None


@dataclasses.dataclass
class LogRecord:
    """Primary payload transported via the logging system.

    Attributes:
        event: Identifier from :class:`LogEvent` or custom tag.
        message: Short human-readable summary.
        request_id: Correlator generated per HTTP request.
        data: Arbitrary contextual dictionary (sanitized/truncated).
        error: Optional :class:`LogError` with exception details.
    """

    event: str
    message: str
    request_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[LogError] = None


class JSONFormatter(logging.Formatter):
    """Formatter that outputs log records as compact JSON lines.

    Used for file logging or machine-ingestible stdout. It injects timestamp,
    level and logger name, serializes attached :class:`LogRecord`, truncates
    oversized strings, and redacts configured sensitive fields.
    """

    include_stack = True

    def format(self, record: logging.LogRecord) -> str:
        header: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        log_payload = getattr(record, "log_record", None)
        if isinstance(log_payload, LogRecord):
            detail = _sanitize_for_json(dataclasses.asdict(log_payload))
            if isinstance(detail.get("data"), dict):
                for key, value in detail["data"].items():
                    if isinstance(value, str) and len(value) > _MAX_DATA_STRING_CHARS:
                        detail["data"][key] = (
                            value[:_MAX_DATA_STRING_CHARS] + "...[truncated]"
                        )
            if not self.include_stack and isinstance(detail.get("error"), dict):
                detail["error"].pop("stack_trace", None)
            header["detail"] = detail
        else:
            header["message"] = record.getMessage()
            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                error_detail: Dict[str, Any] = {
                    "name": exc_type.__name__ if exc_type else "UnknownError",
                    "message": str(exc_value),
                    "args": exc_value.args
                    if exc_value and hasattr(exc_value, "args")
                    else [],
                }
                if self.include_stack:
                    error_detail["stack_trace"] = "".join(
                        traceback.format_exception(exc_type, exc_value, exc_tb)
                    )
                header["error"] = _sanitize_for_json(error_detail)
        return json_dumps_compact(_sanitize_for_json(header))


class ConsoleJSONFormatter(JSONFormatter):
    """Variant of :class:`JSONFormatter` tuned for interactive consoles.

    Removes stack traces for brevity while preserving JSON structure.
    """

    include_stack = False


def init_logging(settings: Settings) -> logging.Logger:
    global _logger
    global _log_listener
    global _REDACT_KEYS

    # Re-initialisation (tests, reloads) must not leak the previous listener thread
    shutdown_logging()

    log_queue: queue.Queue = queue.Queue(-1)
    queue_handler = QueueHandler(log_queue)

    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setFormatter(
        ConsoleJSONFormatter() if settings.log_pretty_console else JSONFormatter()
    )

    handlers: List[Handler] = [console_handler]

    if settings.log_file_path:
        try:
            log_dir = os.path.dirname(settings.log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(
                settings.log_file_path, mode="a", encoding="utf-8"
            )
            file_handler.setFormatter(JSONFormatter())
            handlers.append(file_handler)
        except OSError as e:
            logging.getLogger(settings.app_name).warning(
                "Failed to configure file logging: %s", e
            )

    if settings.error_log_file_path:
        try:
            err_dir = os.path.dirname(settings.error_log_file_path)
            if err_dir:
                os.makedirs(err_dir, exist_ok=True)
            err_handler = logging.FileHandler(
                settings.error_log_file_path, mode="a", encoding="utf-8"
            )
            err_handler.setLevel(logging.ERROR)
            err_handler.setFormatter(JSONFormatter())
            handlers.append(err_handler)
        except OSError as e:
            logging.getLogger(settings.app_name).warning(
                "Failed to configure error file logging: %s", e
            )

    _log_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _log_listener.start()

    for logger_name in [
        "",
        settings.app_name,
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
    ]:
        logger = logging.getLogger(logger_name)
        logger.handlers = [queue_handler]
        logger.propagate = logger_name == ""
        logger.setLevel(
            logging.WARNING
            if logger_name == ""
            else settings.log_level.upper()
            if logger_name == settings.app_name
            else "INFO"
        )
    _logger = logging.getLogger(settings.app_name)
    _REDACT_KEYS = {k.lower() for k in settings.redact_log_fields}
    return _logger


def shutdown_logging() -> None:
    """Safely shutdown logging system, flushing all messages."""
    global _log_listener
    if _log_listener:
        _log_listener.stop()
        _log_listener = None


def _log(level: int, record: LogRecord, exc: Optional[BaseException] = None) -> None:
    """Internal helper to log structured messages with exception handling.

    Processes the exception (if provided) into the LogRecord's error field
    and emits the log entry at the specified level.

    Args:
        level: The logging level (e.g., logging.DEBUG, logging.ERROR)
        record: The structured log record containing event details
        exc: Optional exception to include in error details
    """
    if exc:
        sanitized = _sanitize_for_json(exc.args)
        sanitized_args = (
            tuple(sanitized) if isinstance(sanitized, (list, tuple)) else (sanitized,)
        )
        cause = exc.__cause__
        record.error = LogError(
            name=type(exc).__name__,
            message=str(exc) if cause is None else f"{exc} (caused by {cause!r})",
            stack_trace="".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
            args=sanitized_args,
        )
        if not record.message:
            record.message = str(exc) or "An unspecified error occurred"

    if _logger:
        _logger.log(level=level, msg=record.message, extra={"log_record": record})


def debug(record: LogRecord) -> None:
    _log(logging.DEBUG, record)


def info(record: LogRecord) -> None:
    _log(logging.INFO, record)


def warning(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _log(logging.WARNING, record, exc=exc)


def error(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _log(logging.ERROR, record, exc=exc)
