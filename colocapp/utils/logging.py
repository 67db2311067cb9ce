"""Structured logging helpers: operation ids, timing and masking of personal data."""

import hashlib
import inspect
import logging
import re
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

from colocapp.utils.logging_config import LoggingConfig, get_logger


_operation_id_var: ContextVar[Optional[str]] = ContextVar("operation_id", default=None)

_EMAIL_RE = re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE)
_PHONE_RE = re.compile(r'\+?\d[\d\s().-]{7,}\d')
_BEARER_RE = re.compile(r'(?i)bearer\s+[A-Za-z0-9._~+/=-]+')
_SECRET_RE = re.compile(r'(?i)(api[_-]?key|token|secret|password|key)([\s:=]+)([A-Za-z0-9._-]{12,})')


def generate_operation_id(prefix: str = "op") -> str:
    """Generate a short id used to correlate log lines of one user action."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def get_operation_id() -> Optional[str]:
    return _operation_id_var.get()


@contextmanager
def operation_context(operation_id: Optional[str] = None, prefix: str = "op"):
    """Bind an operation id for every log line emitted inside the block."""
    if operation_id is None:
        operation_id = generate_operation_id(prefix)
    token = _operation_id_var.set(operation_id)
    try:
        yield operation_id
    finally:
        _operation_id_var.reset(token)


def mask_sensitive_data(text: Optional[str]) -> Optional[str]:
    """Mask emails, phone numbers and credentials in free text."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text
    text = _EMAIL_RE.sub('[REDACTED_EMAIL]', text)
    text = _BEARER_RE.sub('Bearer [REDACTED]', text)
    text = _SECRET_RE.sub(r'\1\2[REDACTED]', text)
    text = _PHONE_RE.sub('[REDACTED_PHONE]', text)
    return text


def mask_user_id(user_id: Optional[str]) -> Optional[str]:
    """Shorten long user ids to a stable, non-reversible form."""
    if not LoggingConfig.LOG_MASK_SENSITIVE or not user_id:
        return user_id
    if len(user_id) > 12:
        hashed = hashlib.sha256(user_id.encode()).hexdigest()[:8]
        return f"{user_id[:4]}...{hashed}"
    return user_id


class StructuredLogger:
    """Logger wrapper turning keyword arguments into structured fields.

    ``bind`` returns a child carrying fixed fields (e.g. a pipeline id) on
    every record it emits.
    """

    def __init__(self, logger: logging.Logger, **bound: Any):
        self.logger = logger
        self.bound = bound

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self.logger, **{**self.bound, **fields})

    def _get_extra(self, **kwargs: Any) -> Dict[str, Any]:
        extra: Dict[str, Any] = {"timestamp": datetime.now(timezone.utc).isoformat(), **self.bound}
        operation_id = get_operation_id()
        if operation_id:
            extra["operation_id"] = operation_id
        extra.update(kwargs)
        return extra

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra=self._get_extra(**kwargs), exc_info=exc_info)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


def get_structured_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(get_logger(name))


@contextmanager
def log_timing(operation_name: str, logger: Optional[StructuredLogger] = None, **context: Any):
    """Log the duration of the wrapped block, warning when it is slow."""
    if logger is None:
        logger = get_structured_logger(__name__)

    start_time = time.perf_counter()
    logger.debug(f"Starting {operation_name}", operation=operation_name, **context)
    try:
        yield
    finally:
        elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.debug(
            f"Completed {operation_name}",
            operation=operation_name,
            processing_time_ms=elapsed_ms,
            **context
        )
        if elapsed_ms > LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                f"Slow operation detected: {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                threshold_ms=LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS,
                **context
            )


def timed(operation_name: Optional[str] = None, logger: Optional[StructuredLogger] = None):
    """Decorator variant of log_timing for sync and async callables."""
    def decorator(func: Callable) -> Callable:
        op_name = operation_name or f"{func.__module__}.{func.__qualname__}"
        log = logger or get_structured_logger(func.__module__)

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_timing(op_name, logger=log):
                    return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with log_timing(op_name, logger=log):
                return func(*args, **kwargs)
        return sync_wrapper

    return decorator


def setup_logging() -> logging.Logger:
    """Configure logging once at application start."""
    LoggingConfig.setup_logging()
    return get_logger("colocapp")
