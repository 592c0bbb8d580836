"""
Cancellation registry for in-flight jobs.
"""

from __future__ import annotations

from collections.abc import Callable

from ..cancellation import CancellationToken
from ..concurrency import ReadWriteLock


class CancellationRegistry:
    """Maps job ids to the revoke handle of their running execution.

    Only the handle (``token.cancel``) is retained; the registry knows
    nothing about how the executor reacts to it.
    """

    def __init__(self) -> None:
        self._handles: dict[str, Callable[..., None]] = {}
        self._lock = ReadWriteLock()

    async def register(self, job_id: str) -> CancellationToken:
        """Create the token for a job's execution and record its handle.

        Raises:
            ValueError: If the job already has a registered execution
        """
        token = CancellationToken()
        async with self._lock.write():
            if job_id in self._handles:
                raise ValueError(f"Job {job_id} is already registered")
            self._handles[job_id] = token.cancel
        return token

    async def cancel(self, job_id: str, reason: str | None = None) -> bool:
        """Revoke a job's execution.

        Returns:
            True if a running execution was found and signalled.
        """
        async with self._lock.write():
            handle = self._handles.pop(job_id, None)
        if handle is None:
            return False
        handle(reason)
        return True

    async def unregister(self, job_id: str) -> None:
        async with self._lock.write():
            self._handles.pop(job_id, None)

    async def cancel_all(self, reason: str | None = None) -> list[str]:
        """Revoke every registered execution; returns the affected job ids."""
        async with self._lock.write():
            handles = dict(self._handles)
            self._handles.clear()
        for handle in handles.values():
            handle(reason)
        return list(handles)

    async def is_registered(self, job_id: str) -> bool:
        async with self._lock.read():
            return job_id in self._handles

    async def job_ids(self) -> list[str]:
        async with self._lock.read():
            return list(self._handles)

    def __len__(self) -> int:
        return len(self._handles)


__all__ = ["CancellationRegistry"]
