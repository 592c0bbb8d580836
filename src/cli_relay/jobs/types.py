"""
Job types for cli-relay.

This module defines the JobStatus enum, the JobRecord dataclass and the
JobRequest accepted from callers. Together they form the job lifecycle state
machine.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..config.base import DurationLike
from ..errors import InvalidTransitionError, JobAlreadyCompleteError


class JobStatus(str, Enum):
    """Job lifecycle states.

    State transitions:
    - PENDING -> RUNNING (dispatcher acquired a slot)
    - RUNNING -> COMPLETED (exit code 0)
    - RUNNING -> FAILED (non-zero exit, executor error, timeout)
    - PENDING | RUNNING -> CANCELLED (cancel request or shutdown)
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in {
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.CANCELLED,
        }

    @property
    def is_active(self) -> bool:
        """Check if the job is still active."""
        return self in {JobStatus.PENDING, JobStatus.RUNNING}


VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.CANCELLED,
    },
    # Terminal states have no valid transitions
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}


def _isoformat(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class JobRecord:
    """Record of one asynchronous command execution.

    Records are owned by the job store. Everything handed out of the store is
    a copy, so mutating a returned record never affects the stored one.
    """
    command: str
    args: list[str] = field(default_factory=list)

    # Identity
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # Status
    status: JobStatus = JobStatus.PENDING

    # Timestamps (epoch seconds)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    started_at: float | None = None
    completed_at: float | None = None

    # Results, set on the terminal transition only
    output: str | None = None
    error: str | None = None
    exit_code: int | None = None

    # Caller data
    metadata: dict[str, Any] = field(default_factory=dict)
    webhook_url: str | None = None

    # Seconds after created_at at which the record may be evicted
    ttl: float = 24 * 3600.0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_expired(self, now: float | None = None) -> bool:
        return self.expires_at <= (time.time() if now is None else now)

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if transition to new_status is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def transition_to(
        self,
        new_status: JobStatus,
        *,
        output: str | None = None,
        error: str | None = None,
        exit_code: int | None = None,
        now: float | None = None,
    ) -> JobRecord:
        """Create a new JobRecord with updated status.

        Result fields are only applied on a terminal transition.

        Raises:
            JobAlreadyCompleteError: If the job is already terminal
            InvalidTransitionError: If the edge is not part of the state machine
        """
        if self.is_terminal:
            raise JobAlreadyCompleteError(self.job_id, self.status.value)
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError(self.job_id, self.status.value, new_status.value)

        now = time.time() if now is None else now
        updates: dict[str, Any] = {
            "status": new_status,
            "updated_at": now,
        }

        if new_status == JobStatus.RUNNING and self.started_at is None:
            updates["started_at"] = now

        if new_status.is_terminal:
            updates["completed_at"] = now
            updates["output"] = output
            updates["error"] = error
            updates["exit_code"] = exit_code

        return replace(self.copy(), **updates)

    def copy(self) -> JobRecord:
        """Detached copy; caller-supplied metadata is deep-copied."""
        return replace(
            self,
            args=list(self.args),
            metadata=copy.deepcopy(self.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "job_id": self.job_id,
            "command": self.command,
            "args": list(self.args),
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "output": self.output,
            "error": self.error,
            "exit_code": self.exit_code,
            "metadata": copy.deepcopy(self.metadata),
            "webhook_url": self.webhook_url,
            "ttl": self.ttl,
        }

    def to_response(self) -> dict[str, Any]:
        """Shape returned to API callers: no args, webhook URL or ttl; empty fields dropped."""
        response: dict[str, Any] = {
            "id": self.job_id,
            "command": self.command,
            "status": self.status.value,
            "created_at": _isoformat(self.created_at),
        }
        if self.started_at is not None:
            response["started_at"] = _isoformat(self.started_at)
        if self.completed_at is not None:
            response["completed_at"] = _isoformat(self.completed_at)
        if self.output:
            response["output"] = self.output
        if self.error:
            response["error"] = self.error
        if self.exit_code is not None:
            response["exit_code"] = self.exit_code
        if self.metadata:
            response["metadata"] = copy.deepcopy(self.metadata)
        return response

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobRecord:
        """Deserialize from dictionary."""
        now = time.time()
        return cls(
            job_id=data.get("job_id", str(uuid.uuid4())),
            command=data["command"],
            args=list(data.get("args") or []),
            status=JobStatus(data.get("status", "pending")),
            created_at=data.get("created_at", now),
            updated_at=data.get("updated_at", now),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            output=data.get("output"),
            error=data.get("error"),
            exit_code=data.get("exit_code"),
            metadata=dict(data.get("metadata") or {}),
            webhook_url=data.get("webhook_url"),
            ttl=data.get("ttl", 24 * 3600.0),
        )


@dataclass
class JobRequest:
    """A caller's request to run a command asynchronously."""
    command: str
    args: list[str] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    webhook_url: str | None = None

    # None uses the configured default; strings like "90s" are accepted
    ttl: DurationLike | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobRequest:
        """Build a request from a decoded JSON body."""
        return cls(
            command=data.get("command", ""),
            args=list(data.get("args") or []),
            metadata=data.get("metadata"),
            webhook_url=data.get("webhook_url") or None,
            ttl=data.get("ttl"),
        )


__all__ = [
    "JobStatus",
    "JobRecord",
    "JobRequest",
    "VALID_TRANSITIONS",
]
