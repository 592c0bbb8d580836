"""
Concurrency-bounded dispatcher.

The dispatcher owns the system-wide execution ceiling: a counting semaphore
of ``max_concurrent`` slots, acquired before a job's command runs and
released unconditionally afterwards. Slot acquisition is not FIFO; two jobs
submitted in sequence may start in either order.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from ..cancellation import CancellationToken
from ..errors import DispatcherClosedError, ExecutionTimeoutError
from ..executor import ExecuteResult, Executor


class Dispatcher:
    """Runs executor calls under a fixed concurrency ceiling and deadline."""

    def __init__(
        self,
        executor: Executor,
        max_concurrent: int,
        timeout: float | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._executor = executor
        self._max_concurrent = max_concurrent
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._closed = asyncio.Event()
        self._active = 0
        self._peak = 0

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def timeout(self) -> float | None:
        return self._timeout

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest number of slots ever held at once."""
        return self._peak

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one execution slot for the duration of the block.

        Raises:
            DispatcherClosedError: If the dispatcher closes before a slot
                frees up; nothing is acquired in that case.
        """
        if self.closed:
            raise DispatcherClosedError()

        acquire = asyncio.ensure_future(self._semaphore.acquire())
        closing = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({acquire, closing}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            self._abandon(acquire)
            raise
        finally:
            closing.cancel()

        if self.closed:
            self._abandon(acquire)
            raise DispatcherClosedError()

        self._active += 1
        self._peak = max(self._peak, self._active)
        try:
            yield
        finally:
            self._active -= 1
            self._semaphore.release()

    def _abandon(self, acquire: asyncio.Future) -> None:
        if not acquire.done():
            acquire.cancel()
        elif not acquire.cancelled() and acquire.exception() is None:
            self._semaphore.release()

    async def execute(
        self,
        command: str,
        args: Sequence[str],
        token: CancellationToken,
    ) -> ExecuteResult:
        """Call the executor, bounded by the per-job deadline.

        Must be called while holding a slot.

        Raises:
            ExecutionTimeoutError: If the deadline passed; the executor call
                has been cancelled by then.
        """
        if self._timeout is None:
            return await self._executor.execute(command, args, token)
        try:
            return await asyncio.wait_for(
                self._executor.execute(command, args, token),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExecutionTimeoutError(
                f"execution timed out after {self._timeout:g}s",
                timeout=self._timeout,
                cause=e,
            ) from e

    def close(self) -> None:
        """Stop handing out slots; waiters abandon with DispatcherClosedError."""
        self._closed.set()


__all__ = ["Dispatcher"]
