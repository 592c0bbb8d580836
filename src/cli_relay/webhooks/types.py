"""
Webhook payload and delivery result types.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..jobs.types import JobRecord


@dataclass(frozen=True)
class JobStatusUpdate:
    """Body POSTed to a job's webhook URL on each status transition.

    Wire format: ``{job_id, status, completed_at?, output?, error?,
    exit_code?, metadata?}``. Empty optional fields are left out.
    """
    job_id: str
    status: str
    completed_at: float | None = None
    output: str | None = None
    error: str | None = None
    exit_code: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_job(cls, job: JobRecord) -> JobStatusUpdate:
        return cls(
            job_id=job.job_id,
            status=job.status.value,
            completed_at=job.completed_at,
            output=job.output,
            error=job.error,
            exit_code=job.exit_code,
            metadata=copy.deepcopy(job.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "job_id": self.job_id,
            "status": self.status,
        }
        if self.completed_at is not None:
            data["completed_at"] = datetime.fromtimestamp(self.completed_at, tz=timezone.utc).isoformat()
        if self.output:
            data["output"] = self.output
        if self.error:
            data["error"] = self.error
        if self.exit_code is not None:
            data["exit_code"] = self.exit_code
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    def to_json(self) -> str:
        """Compact JSON; this exact string is what gets signed and sent."""
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one ``deliver`` call across all its attempts."""
    url: str
    job_id: str
    success: bool
    attempts: int
    http_status: int | None = None
    error: str | None = None


__all__ = ["JobStatusUpdate", "DeliveryResult"]
