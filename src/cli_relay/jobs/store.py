"""
Job store implementations.

This module provides the JobStore interface and the in-memory table that
owns every JobRecord for the lifetime of the process.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from ..concurrency import ReadWriteLock
from ..errors import JobNotFoundError
from .types import JobRecord, JobStatus

# Receives a snapshot of every record, returns the ids to delete.
EvictionPolicy = Callable[[list[JobRecord]], Iterable[str]]


class JobStore(ABC):
    """Abstract interface for job storage.

    Implementations must be safe for concurrent access and must never hand
    out references to the records they own.
    """

    @abstractmethod
    async def insert(self, job: JobRecord) -> JobRecord:
        """Insert a new job record.

        Raises:
            ValueError: If job_id already exists
        """
        ...

    @abstractmethod
    async def get(self, job_id: str) -> JobRecord:
        """Get a job by ID.

        Raises:
            JobNotFoundError: If no such job exists
        """
        ...

    @abstractmethod
    async def list(
        self,
        status: JobStatus | None = None,
        limit: int | None = None,
    ) -> list[JobRecord]:
        """List jobs, optionally filtered by exact status and capped.

        A ``limit`` of zero or less means no cap.

        Ordering is unspecified; callers that need an order must sort.
        """
        ...

    @abstractmethod
    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        output: str | None = None,
        error: str | None = None,
        exit_code: int | None = None,
    ) -> JobRecord:
        """Apply a status transition atomically.

        Raises:
            JobNotFoundError: If no such job exists
            JobAlreadyCompleteError: If the job is terminal (record unchanged)
            InvalidTransitionError: If the edge is not allowed
        """
        ...

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Delete a job by ID. Returns True if deleted."""
        ...

    @abstractmethod
    async def count(self, status: JobStatus | None = None) -> int:
        """Count jobs, optionally only those with the given status."""
        ...

    @abstractmethod
    async def evict(self, select: EvictionPolicy) -> list[str]:
        """Delete the records chosen by ``select`` in one exclusive step.

        Returns:
            The ids that were removed.
        """
        ...


class InMemoryJobStore(JobStore):
    """In-memory job store implementation.

    Guarded by a reader/writer lock: lookups and listings proceed in
    parallel, every mutation (insert, transition, eviction) is exclusive.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobRecord] = {}
        self._lock = ReadWriteLock()

    async def insert(self, job: JobRecord) -> JobRecord:
        async with self._lock.write():
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already exists")
            self._jobs[job.job_id] = job.copy()
            return job.copy()

    async def get(self, job_id: str) -> JobRecord:
        async with self._lock.read():
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return job.copy()

    async def list(
        self,
        status: JobStatus | None = None,
        limit: int | None = None,
    ) -> list[JobRecord]:
        async with self._lock.read():
            jobs: list[JobRecord] = []
            for job in self._jobs.values():
                if status is not None and job.status != status:
                    continue
                jobs.append(job.copy())
                if limit is not None and limit > 0 and len(jobs) >= limit:
                    break
            return jobs

    async def update_status(
        self,
        job_id: str,
        status: JobStatus,
        *,
        output: str | None = None,
        error: str | None = None,
        exit_code: int | None = None,
    ) -> JobRecord:
        async with self._lock.write():
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            updated = job.transition_to(
                status,
                output=output,
                error=error,
                exit_code=exit_code,
            )
            self._jobs[job_id] = updated
            return updated.copy()

    async def delete(self, job_id: str) -> bool:
        async with self._lock.write():
            return self._jobs.pop(job_id, None) is not None

    async def count(self, status: JobStatus | None = None) -> int:
        async with self._lock.read():
            if status is None:
                return len(self._jobs)
            return sum(1 for j in self._jobs.values() if j.status == status)

    async def evict(self, select: EvictionPolicy) -> list[str]:
        async with self._lock.write():
            # The policy sees the live records only through copies.
            snapshot = [job.copy() for job in self._jobs.values()]
            removed = []
            for job_id in select(snapshot):
                if self._jobs.pop(job_id, None) is not None:
                    removed.append(job_id)
            return removed


__all__ = [
    "JobStore",
    "InMemoryJobStore",
    "EvictionPolicy",
]
