"""
cli-relay: run a command-line tool as asynchronous, pollable jobs.

A JobManager accepts validated command requests, runs them under a fixed
concurrency ceiling, lets callers poll or cancel them, notifies signed
webhooks on every status change and evicts old records in the background.
"""

from .cancellation import CancellationToken, CancelledError
from .config import Settings, load_env
from .errors import (
    CLIRelayError,
    CommandNotAllowedError,
    ErrorCode,
    InvalidRequestError,
    JobAlreadyCompleteError,
    JobNotFoundError,
    MissingArgumentError,
    ValidationError,
)
from .executor import CLIExecutor, ExecuteResult, Executor, FunctionExecutor
from .jobs import JobManager, JobRecord, JobRequest, JobStatus
from .logging import configure_logging, get_logger
from .webhooks import JobStatusUpdate, WebhookSender

__version__ = "0.1.0"

__all__ = [
    "JobManager",
    "JobRecord",
    "JobRequest",
    "JobStatus",
    "Executor",
    "ExecuteResult",
    "CLIExecutor",
    "FunctionExecutor",
    "CancellationToken",
    "CancelledError",
    "WebhookSender",
    "JobStatusUpdate",
    "Settings",
    "load_env",
    "configure_logging",
    "get_logger",
    "ErrorCode",
    "CLIRelayError",
    "ValidationError",
    "CommandNotAllowedError",
    "MissingArgumentError",
    "InvalidRequestError",
    "JobNotFoundError",
    "JobAlreadyCompleteError",
]
