"""
Structured Logging for cli-relay.

This module provides:
- Structured JSON logging with consistent fields
- Job transition and webhook delivery records
- Context correlation (job id, command) for everything logged inside a job
- Timing helpers
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    trace_id: str | None = None
    job_id: str | None = None
    command: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            trace_id=kwargs.get("trace_id", self.trace_id),
            job_id=kwargs.get("job_id", self.job_id),
            command=kwargs.get("command", self.command),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class JobLog:
    """Log record for a job status transition."""

    job_id: str
    command: str
    status: str
    previous_status: str | None = None

    timestamp: str = field(default_factory=_utcnow_iso)

    exit_code: int | None = None
    error: str | None = None
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class WebhookLog:
    """Log record for a single webhook delivery attempt."""

    job_id: str
    url: str
    status: str
    attempt: int
    max_attempts: int

    timestamp: str = field(default_factory=_utcnow_iso)

    success: bool = True
    http_status: int | None = None
    error: str | None = None
    duration_ms: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured JSON output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("cli_relay")

        with logger.job_context(job.job_id, job.command):
            logger.log_job(JobLog(...))
        ```
    """

    def __init__(
        self,
        name: str = "cli_relay",
        level: str = "INFO",
        json_output: bool = True,
        log_file: str | Path | None = None,
    ):
        self.name = name
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        # Each asyncio task sees its own copy, so concurrent jobs don't mix fields.
        self._context_var: ContextVar[LogContext] = ContextVar(f"{name}_log_context", default=LogContext())

        if not self._logger.handlers:
            handler: logging.Handler
            if log_file:
                handler = logging.FileHandler(log_file)
            else:
                handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return self._context_var.get()

    @contextmanager
    def trace_context(
        self,
        trace_id: str | None = None,
        **kwargs,
    ) -> Iterator[str]:
        """
        Context manager for trace correlation.

        Args:
            trace_id: Trace ID (auto-generated if not provided)
            **kwargs: Additional context fields

        Yields:
            The trace ID
        """
        trace_id = trace_id or generate_trace_id()
        token = self._context_var.set(self.context.with_update(trace_id=trace_id, **kwargs))

        try:
            yield trace_id
        finally:
            self._context_var.reset(token)

    @contextmanager
    def job_context(self, job_id: str, command: str, operation: str = "dispatch") -> Iterator[str]:
        """Correlate everything logged inside the block with one job."""
        with self.trace_context(job_id=job_id, command=command, operation=operation) as trace_id:
            yield trace_id

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method."""
        record_data = {
            "message": message,
            **self.context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}".rstrip())

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_job(self, job_log: JobLog) -> None:
        """Log a job status transition."""
        level = logging.WARNING if job_log.status == "failed" else logging.INFO
        message = f"Job {job_log.job_id} {job_log.previous_status or 'new'} -> {job_log.status}"
        self._log(level, message, event_type="job_transition", data=job_log.to_dict())

    def log_webhook(self, webhook_log: WebhookLog) -> None:
        """Log a webhook delivery attempt."""
        level = logging.INFO if webhook_log.success else logging.WARNING
        if webhook_log.success:
            message = f"Webhook delivered for job {webhook_log.job_id}"
        else:
            message = (
                f"Webhook delivery attempt {webhook_log.attempt}/{webhook_log.max_attempts} "
                f"failed for job {webhook_log.job_id}"
            )
        self._log(level, message, event_type="webhook", data=webhook_log.to_dict())

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        **kwargs,
    ) -> None:
        """Log an error with context."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }

        if hasattr(error, "code") and hasattr(error.code, "value"):
            error_data["error_code"] = str(error.code.value)
        if hasattr(error, "retryable"):
            error_data["retryable"] = error.retryable
        if hasattr(error, "context") and hasattr(error.context, "to_dict"):
            error_data["error_context"] = error.context.to_dict()

        self._log(
            logging.ERROR,
            message or f"Error: {error}",
            event_type="error",
            data=error_data,
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
        }

        # Parse JSON message if present
        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"trace_{uuid.uuid4().hex[:16]}"


def redact_secret(secret: str | None) -> str:
    """Redact a secret for safe logging."""
    if not secret:
        return "<not set>"
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}...{secret[-4:]}"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... ({len(text)} chars total)"


# =============================================================================
# Timing Utilities
# =============================================================================


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = "cli_relay") -> StructuredLogger:
    """Get or create a structured logger."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        _default_logger = StructuredLogger(name)
    return _default_logger


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    log_file: str | Path | None = None,
    name: str = "cli_relay",
) -> StructuredLogger:
    """Configure the default logger, replacing any handlers it already has."""
    global _default_logger
    underlying = logging.getLogger(name)
    for handler in list(underlying.handlers):
        underlying.removeHandler(handler)
        handler.close()
    configured = StructuredLogger(
        name,
        level=level,
        json_output=json_output,
        log_file=log_file,
    )
    if _default_logger is not None and _default_logger.name == name:
        # Modules hold on to the instance from import time.
        _default_logger.json_output = json_output
        return _default_logger
    _default_logger = configured
    return _default_logger


__all__ = [
    # Context
    "LogContext",
    # Log records
    "JobLog",
    "WebhookLog",
    # Logger
    "StructuredLogger",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Timing
    "Timer",
    "timed",
    # Utilities
    "generate_trace_id",
    "redact_secret",
    "truncate_for_log",
    # Global
    "get_logger",
    "configure_logging",
]
