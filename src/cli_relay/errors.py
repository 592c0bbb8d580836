"""
Error taxonomy for cli-relay.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Retryable vs non-retryable classification
- Structured context for debugging

Only request-shape errors (validation, not-found, state) ever reach the
caller of the job manager. Execution failures are recorded on the job itself
and webhook failures are logged and dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for cli-relay."""

    # Validation errors (2xxx)
    VALIDATION_ERROR = "ERR_2000"
    COMMAND_NOT_ALLOWED = "ERR_2001"
    MISSING_ARGUMENT = "ERR_2002"
    INVALID_REQUEST = "ERR_2003"

    # Lookup errors (3xxx)
    JOB_NOT_FOUND = "ERR_3001"

    # State errors (4xxx)
    JOB_STATE_ERROR = "ERR_4000"
    JOB_ALREADY_COMPLETE = "ERR_4001"
    INVALID_TRANSITION = "ERR_4002"

    # Execution errors (5xxx)
    EXECUTION_ERROR = "ERR_5000"
    EXECUTION_TIMEOUT = "ERR_5001"
    DISPATCHER_CLOSED = "ERR_5002"

    # Webhook errors (6xxx)
    WEBHOOK_DELIVERY_ERROR = "ERR_6000"

    # Configuration errors (7xxx)
    CONFIG_ERROR = "ERR_7000"
    INVALID_CONFIG = "ERR_7001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    job_id: str | None = None
    command: str | None = None
    attempt: int = 1
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "command": self.command,
            "attempt": self.attempt,
            "operation": self.operation,
            **self.extra,
        }


class CLIRelayError(Exception):
    """
    Base exception for all cli-relay errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        retryable: Whether the operation can be retried
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.job_id:
            parts.append(f"(job_id={self.context.job_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(CLIRelayError):
    """Base class for request validation errors. No job is created."""

    code = ErrorCode.VALIDATION_ERROR
    retryable = False


class CommandNotAllowedError(ValidationError):
    """The requested command is not on the allow-list."""

    code = ErrorCode.COMMAND_NOT_ALLOWED

    def __init__(self, command: str, **kwargs):
        super().__init__(
            f"command not allowed: {command}",
            context=ErrorContext(command=command, operation="validate"),
            **kwargs,
        )
        self.command = command


class MissingArgumentError(ValidationError):
    """A required positional argument is missing or blank."""

    code = ErrorCode.MISSING_ARGUMENT

    def __init__(self, command: str, argument: str, **kwargs):
        super().__init__(
            f"command '{command}' requires argument '{argument}'",
            context=ErrorContext(command=command, operation="validate"),
            **kwargs,
        )
        self.command = command
        self.argument = argument


class InvalidRequestError(ValidationError):
    """The job request is malformed (bad ttl, non-string args, ...)."""

    code = ErrorCode.INVALID_REQUEST


# =============================================================================
# Lookup / State Errors
# =============================================================================


class JobNotFoundError(CLIRelayError):
    """No job with the given id exists (never created, or evicted)."""

    code = ErrorCode.JOB_NOT_FOUND

    def __init__(self, job_id: str, **kwargs):
        super().__init__(
            f"job not found: {job_id}",
            context=ErrorContext(job_id=job_id),
            **kwargs,
        )
        self.job_id = job_id


class JobStateError(CLIRelayError):
    """Base class for state machine violations."""

    code = ErrorCode.JOB_STATE_ERROR


class JobAlreadyCompleteError(JobStateError):
    """The job is already in a terminal state; nothing was changed."""

    code = ErrorCode.JOB_ALREADY_COMPLETE

    def __init__(self, job_id: str, status: str, **kwargs):
        super().__init__(
            f"job already completed: {job_id} ({status})",
            context=ErrorContext(job_id=job_id, extra={"status": status}),
            **kwargs,
        )
        self.job_id = job_id
        self.status = status


class InvalidTransitionError(JobStateError):
    """The requested status change is not an edge of the state machine."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, job_id: str, current: str, requested: str, **kwargs):
        super().__init__(
            f"invalid transition: {current} -> {requested}",
            context=ErrorContext(
                job_id=job_id,
                extra={"current": current, "requested": requested},
            ),
            **kwargs,
        )
        self.current = current
        self.requested = requested


# =============================================================================
# Execution Errors
# =============================================================================


class ExecutionError(CLIRelayError):
    """Base class for failures while running a job's command."""

    code = ErrorCode.EXECUTION_ERROR


class ExecutionTimeoutError(ExecutionError):
    """The command exceeded its per-job deadline."""

    code = ErrorCode.EXECUTION_TIMEOUT

    def __init__(
        self,
        message: str = "execution timed out",
        *,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class DispatcherClosedError(ExecutionError):
    """The dispatcher is shutting down and accepts no further work."""

    code = ErrorCode.DISPATCHER_CLOSED

    def __init__(self, message: str = "dispatcher is closed", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Webhook Errors
# =============================================================================


class WebhookDeliveryError(CLIRelayError):
    """A single webhook attempt failed. Internal to the retry loop."""

    code = ErrorCode.WEBHOOK_DELIVERY_ERROR
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.http_status = http_status


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(CLIRelayError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError):
    """Configuration failed schema or value validation."""

    code = ErrorCode.INVALID_CONFIG


# =============================================================================
# Utilities
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is retryable.

    Args:
        error: Exception to check

    Returns:
        True if the error is retryable
    """
    if isinstance(error, CLIRelayError):
        return error.retryable

    import asyncio

    retryable_types = (
        asyncio.TimeoutError,
        ConnectionError,
        TimeoutError,
    )
    return isinstance(error, retryable_types)


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "CLIRelayError",
    # Validation errors
    "ValidationError",
    "CommandNotAllowedError",
    "MissingArgumentError",
    "InvalidRequestError",
    # Lookup / state errors
    "JobNotFoundError",
    "JobStateError",
    "JobAlreadyCompleteError",
    "InvalidTransitionError",
    # Execution errors
    "ExecutionError",
    "ExecutionTimeoutError",
    "DispatcherClosedError",
    # Webhook errors
    "WebhookDeliveryError",
    # Config errors
    "ConfigError",
    "InvalidConfigError",
    # Utilities
    "is_retryable",
]
