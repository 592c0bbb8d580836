"""
Time and size based eviction of job records.
"""

from __future__ import annotations

import asyncio
import time

from ..logging import get_logger
from .store import JobStore
from .types import JobRecord

logger = get_logger()


class EvictionLoop:
    """Periodically removes expired records and caps the history size.

    Each sweep, under the store's write lock:
    1. every job whose ``created_at + ttl`` has passed is removed;
    2. if more than ``max_history_size`` records remain, the oldest by
       ``created_at`` are removed until the cap is met.

    Pending and running jobs are skipped by both rules unless
    ``evict_active`` is set; their records are picked up by a later sweep
    once they reach a terminal state.
    """

    def __init__(
        self,
        store: JobStore,
        interval: float,
        max_history_size: int,
        *,
        evict_active: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._store = store
        self._interval = interval
        self._max_history_size = max_history_size
        self._evict_active = evict_active
        self._stopped = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def select(self, jobs: list[JobRecord], now: float) -> list[str]:
        """Pick the ids one sweep removes from a snapshot of the table."""
        evictable = [j for j in jobs if self._evict_active or j.is_terminal]

        expired = {j.job_id for j in evictable if j.is_expired(now)}
        remaining = len(jobs) - len(expired)

        overflow: list[str] = []
        if remaining > self._max_history_size:
            excess = remaining - self._max_history_size
            # sorted() is stable, so equal created_at keeps insertion order.
            survivors = sorted(
                (j for j in evictable if j.job_id not in expired),
                key=lambda j: j.created_at,
            )
            overflow = [j.job_id for j in survivors[:excess]]

        return [*expired, *overflow]

    async def sweep(self, now: float | None = None) -> list[str]:
        """Run one eviction pass; returns the removed job ids."""
        now = time.time() if now is None else now
        removed = await self._store.evict(lambda jobs: self.select(jobs, now))
        if removed:
            logger.info(f"Cleaned up {len(removed)} expired/excess jobs", removed=len(removed))
        return removed

    def start(self) -> None:
        """Start ticking every ``interval`` seconds on the running loop."""
        if self.running:
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="cli-relay-eviction")

    async def stop(self) -> None:
        """Stop ticking and wait for an in-progress sweep to finish."""
        self._stopped.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                return
            try:
                await self.sweep()
            except Exception as exc:
                logger.log_error(exc, "Eviction sweep failed")


__all__ = ["EvictionLoop"]
