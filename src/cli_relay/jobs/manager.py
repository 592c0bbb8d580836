"""
Job manager for lifecycle operations.

This module provides the JobManager that owns the job store, dispatcher,
cancellation registry, eviction loop and webhook sender, and drives each job
from submission to its terminal state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from ..cancellation import CancelledError
from ..config import Settings, parse_duration
from ..errors import (
    DispatcherClosedError,
    ExecutionError,
    ExecutionTimeoutError,
    InvalidRequestError,
    JobAlreadyCompleteError,
    JobNotFoundError,
)
from ..executor import Executor
from ..logging import JobLog, get_logger, timed
from ..webhooks import JobStatusUpdate, WebhookSender
from .dispatcher import Dispatcher
from .eviction import EvictionLoop
from .registry import CancellationRegistry
from .store import InMemoryJobStore, JobStore
from .types import JobRecord, JobRequest, JobStatus
from .validator import CommandSpec, CommandValidator

logger = get_logger()

SHUTDOWN_BEFORE_START = "manager shut down before job started"
SHUTDOWN_REASON = "manager shutting down"
CANCEL_REASON = "cancelled by request"


class JobManager:
    """Manages job lifecycle operations.

    The JobManager is responsible for:
    - Validating and recording job requests
    - Running each job as its own task under the dispatcher's ceiling
    - Cancellation of pending and running jobs
    - Webhook notifications on start and on every terminal transition
    - Periodic eviction of old records

    Only request-shape problems are raised to callers of ``create_job``;
    everything that goes wrong at execution time ends up in the job record.
    """

    def __init__(
        self,
        settings: Settings,
        executor: Executor,
        *,
        store: JobStore | None = None,
        validator: CommandValidator | None = None,
        webhook_sender: WebhookSender | None = None,
    ):
        self._settings = settings
        self._store = store or InMemoryJobStore()
        self._validator = validator or CommandValidator(settings.executor.allowed_commands)
        self._registry = CancellationRegistry()
        self._dispatcher = Dispatcher(
            executor,
            max_concurrent=settings.jobs.max_concurrent,
            timeout=settings.executor.timeout,
        )
        self._eviction = EvictionLoop(
            self._store,
            interval=settings.jobs.cleanup_interval,
            max_history_size=settings.jobs.max_history_size,
            evict_active=settings.jobs.evict_active,
        )
        self._webhooks = webhook_sender or WebhookSender(settings.webhooks)
        self._tasks: set[asyncio.Task[None]] = set()
        self._shutting_down = False

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def registry(self) -> CancellationRegistry:
        return self._registry

    @property
    def eviction(self) -> EvictionLoop:
        return self._eviction

    @property
    def webhooks(self) -> WebhookSender:
        return self._webhooks

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the background eviction loop."""
        self._eviction.start()
        logger.info(
            "Job manager started",
            max_concurrent=self._dispatcher.max_concurrent,
            cleanup_interval=self._settings.jobs.cleanup_interval,
        )

    async def shutdown(self, drain_timeout: float | None = 5.0) -> None:
        """Stop accepting work and bring every job to a terminal state.

        Jobs still waiting for a slot are cancelled without running; running
        jobs have their tokens revoked and are recorded as cancelled at once.
        Job tasks get ``drain_timeout`` seconds to unwind before they are
        cancelled, and in-flight webhooks get the same again.
        """
        if self._shutting_down:
            return
        self._shutting_down = True

        self._dispatcher.close()
        cancelled = await self._registry.cancel_all(SHUTDOWN_REASON)
        for job_id in cancelled:
            try:
                previous = (await self._store.get(job_id)).status
            except JobNotFoundError:
                continue
            await self._finish(job_id, previous, JobStatus.CANCELLED, error=SHUTDOWN_REASON)
        if cancelled:
            logger.info(f"Cancelled {len(cancelled)} running jobs on shutdown")

        await self._eviction.stop()

        if self._tasks:
            _, stragglers = await asyncio.wait(list(self._tasks), timeout=drain_timeout)
            if stragglers:
                logger.warning(f"Cancelling {len(stragglers)} job tasks still running after drain")
                for task in stragglers:
                    task.cancel()
                await asyncio.wait(stragglers, timeout=drain_timeout)

        await self._webhooks.close(drain_timeout)
        logger.info("Job manager stopped")

    async def __aenter__(self) -> JobManager:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    # =========================================================================
    # Public API
    # =========================================================================

    async def create_job(self, request: JobRequest) -> JobRecord:
        """Validate a request, record it as pending and schedule it.

        Returns:
            The new job record, status ``pending``.

        Raises:
            CommandNotAllowedError: Command is not on the allow-list
            MissingArgumentError: A required argument is absent
            InvalidRequestError: Malformed args or ttl
            DispatcherClosedError: The manager is shutting down
        """
        if self._shutting_down:
            raise DispatcherClosedError("job manager is shutting down")

        if not all(isinstance(arg, str) for arg in request.args):
            raise InvalidRequestError("args must be a list of strings")
        self._validator.validate_request(request.command, request.args)

        ttl = self._settings.jobs.default_ttl
        if request.ttl is not None:
            try:
                ttl = parse_duration(request.ttl)
            except ValueError as e:
                raise InvalidRequestError(f"invalid ttl: {e}", cause=e) from e

        job = JobRecord(
            command=request.command,
            args=list(request.args),
            metadata=dict(request.metadata or {}),
            webhook_url=request.webhook_url or None,
            ttl=ttl,
        )
        job = await self._store.insert(job)
        logger.log_job(JobLog(job_id=job.job_id, command=job.command, status=job.status.value))

        task = asyncio.create_task(self._run_job(job), name=f"job-{job.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def get_job(self, job_id: str) -> JobRecord:
        """Get a job by ID.

        Raises:
            JobNotFoundError: Unknown or evicted job
        """
        return await self._store.get(job_id)

    async def list_jobs(
        self,
        status: JobStatus | str | None = None,
        limit: int | None = None,
    ) -> list[JobRecord]:
        """List jobs, optionally filtered by status; order is unspecified."""
        if isinstance(status, str) and not isinstance(status, JobStatus):
            try:
                status = JobStatus(status)
            except ValueError as e:
                raise InvalidRequestError(f"unknown job status: {status}", cause=e) from e
        return await self._store.list(status=status, limit=limit)

    async def cancel_job(self, job_id: str) -> JobRecord:
        """Cancel a pending or running job.

        The record is marked cancelled first, then the running execution (if
        any) is revoked. A pending job never reaches the executor.

        Raises:
            JobNotFoundError: Unknown job
            JobAlreadyCompleteError: The job already finished; its record is
                left untouched
        """
        job = await self._store.get(job_id)
        previous = job.status
        job = await self._store.update_status(job_id, JobStatus.CANCELLED)

        found = await self._registry.cancel(job_id, CANCEL_REASON)
        if not found:
            logger.debug("No running execution to revoke", job_id=job_id)

        self._log_transition(job, previous)
        self._notify(job)
        return job

    async def wait_for(self, job_id: str, timeout: float | None = None, interval: float = 0.05) -> JobRecord:
        """Poll until the job reaches a terminal state.

        Raises:
            JobNotFoundError: Unknown or evicted job
            asyncio.TimeoutError: The job did not finish in time
        """
        async def _poll() -> JobRecord:
            while True:
                job = await self._store.get(job_id)
                if job.is_terminal:
                    return job
                await asyncio.sleep(interval)

        return await asyncio.wait_for(_poll(), timeout=timeout)

    def list_commands(self) -> list[CommandSpec]:
        return self._validator.list_commands()

    def describe_command(self, command: str) -> CommandSpec | None:
        return self._validator.describe(command)

    async def stats(self) -> dict[str, Any]:
        """Point-in-time counters for diagnostics."""
        by_status = {s.value: await self._store.count(s) for s in JobStatus}
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "active_slots": self._dispatcher.active,
            "peak_slots": self._dispatcher.peak,
            "max_concurrent": self._dispatcher.max_concurrent,
            "registered": len(self._registry),
            "pending_webhooks": self._webhooks.pending,
        }

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def _run_job(self, job: JobRecord) -> None:
        with logger.job_context(job.job_id, job.command):
            try:
                async with self._dispatcher.slot():
                    await self._execute(job.job_id, job.command, job.args)
            except DispatcherClosedError:
                await self._finish(
                    job.job_id,
                    JobStatus.PENDING,
                    JobStatus.CANCELLED,
                    error=SHUTDOWN_BEFORE_START,
                )
            except Exception as exc:
                logger.log_error(exc, f"Dispatch of job {job.job_id} failed")

    async def _execute(self, job_id: str, command: str, args: Sequence[str]) -> None:
        token = await self._registry.register(job_id)
        try:
            try:
                running = await self._store.update_status(job_id, JobStatus.RUNNING)
            except (JobAlreadyCompleteError, JobNotFoundError):
                logger.debug("Job left pending before dispatch; skipping", job_id=job_id)
                return
            self._log_transition(running, JobStatus.PENDING)
            self._notify(running)

            status = JobStatus.COMPLETED
            output = error = None
            exit_code: int | None = None
            with timed() as timer:
                try:
                    result = await self._dispatcher.execute(command, args, token)
                except CancelledError as e:
                    status, error = JobStatus.CANCELLED, str(e)
                except ExecutionTimeoutError as e:
                    status, error, exit_code = JobStatus.FAILED, e.message, -1
                except ExecutionError as e:
                    status, error, exit_code = JobStatus.FAILED, e.message, 1
                except asyncio.CancelledError:
                    task = asyncio.current_task()
                    if task is not None and task.cancelling():
                        await self._finish(
                            job_id,
                            JobStatus.RUNNING,
                            JobStatus.CANCELLED,
                            error=token.reason or SHUTDOWN_REASON,
                        )
                        raise
                    logger.warning("Executor raised asyncio.CancelledError", job_id=job_id)
                    status, error, exit_code = JobStatus.FAILED, "executor error: execution was cancelled", 1
                except Exception as e:
                    logger.log_error(e, f"Executor raised for job {job_id}")
                    status, error, exit_code = JobStatus.FAILED, f"executor error: {e}", 1
                else:
                    output = result.output or None
                    error = result.error or None
                    exit_code = result.exit_code
                    if not result.succeeded:
                        status = JobStatus.FAILED

            if token.is_cancelled:
                status = JobStatus.CANCELLED
                error = error or token.reason
                exit_code = None

            await self._finish(
                job_id,
                JobStatus.RUNNING,
                status,
                output=output,
                error=error,
                exit_code=exit_code,
                duration_ms=timer.elapsed_ms,
            )
        finally:
            await self._registry.unregister(job_id)

    async def _finish(
        self,
        job_id: str,
        previous: JobStatus,
        status: JobStatus,
        *,
        output: str | None = None,
        error: str | None = None,
        exit_code: int | None = None,
        duration_ms: float | None = None,
    ) -> None:
        try:
            job = await self._store.update_status(
                job_id,
                status,
                output=output,
                error=error,
                exit_code=exit_code,
            )
        except (JobAlreadyCompleteError, JobNotFoundError):
            # Cancelled or evicted in the meantime; that transition already notified.
            return
        self._log_transition(job, previous, duration_ms=duration_ms)
        self._notify(job)

    def _log_transition(
        self,
        job: JobRecord,
        previous: JobStatus,
        duration_ms: float | None = None,
    ) -> None:
        logger.log_job(JobLog(
            job_id=job.job_id,
            command=job.command,
            status=job.status.value,
            previous_status=previous.value,
            exit_code=job.exit_code,
            error=job.error,
            duration_ms=duration_ms,
        ))

    def _notify(self, job: JobRecord) -> None:
        if not job.webhook_url:
            return
        self._webhooks.send(job.webhook_url, JobStatusUpdate.from_job(job))


__all__ = ["JobManager"]
