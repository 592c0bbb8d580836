"""Tests for the in-memory job store."""

from __future__ import annotations

import asyncio

import pytest

from cli_relay.errors import InvalidTransitionError, JobAlreadyCompleteError, JobNotFoundError
from cli_relay.jobs import InMemoryJobStore, JobRecord, JobStatus


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


class TestInMemoryJobStore:

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        job = JobRecord(command="tell", args=["hi"])

        await store.insert(job)
        fetched = await store.get(job.job_id)

        assert fetched == job
        assert fetched is not job

    @pytest.mark.asyncio
    async def test_duplicate_insert_rejected(self, store):
        job = JobRecord(command="plans")
        await store.insert(job)

        with pytest.raises(ValueError):
            await store.insert(job)

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        with pytest.raises(JobNotFoundError):
            await store.get("nope")

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, store):
        job = await store.insert(JobRecord(command="tell", metadata={"k": "v"}))

        fetched = await store.get(job.job_id)
        fetched.metadata["k"] = "changed"
        fetched.status = JobStatus.FAILED

        again = await store.get(job.job_id)
        assert again.metadata == {"k": "v"}
        assert again.status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_list_filter_and_limit(self, store):
        for _ in range(3):
            await store.insert(JobRecord(command="plans"))
        running = await store.insert(JobRecord(command="tell"))
        await store.update_status(running.job_id, JobStatus.RUNNING)

        assert len(await store.list()) == 4
        assert len(await store.list(limit=2)) == 2
        assert len(await store.list(limit=0)) == 4
        assert len(await store.list(limit=-1)) == 4
        only_running = await store.list(status=JobStatus.RUNNING)
        assert [j.job_id for j in only_running] == [running.job_id]

    @pytest.mark.asyncio
    async def test_update_status(self, store):
        job = await store.insert(JobRecord(command="plans"))

        await store.update_status(job.job_id, JobStatus.RUNNING)
        done = await store.update_status(job.job_id, JobStatus.COMPLETED, output="ok", exit_code=0)

        assert done.status == JobStatus.COMPLETED
        assert (await store.get(job.job_id)).output == "ok"

    @pytest.mark.asyncio
    async def test_terminal_record_unchanged_on_update(self, store):
        job = await store.insert(JobRecord(command="plans"))
        await store.update_status(job.job_id, JobStatus.RUNNING)
        done = await store.update_status(job.job_id, JobStatus.FAILED, error="boom", exit_code=1)

        with pytest.raises(JobAlreadyCompleteError):
            await store.update_status(job.job_id, JobStatus.CANCELLED)

        assert await store.get(job.job_id) == done

    @pytest.mark.asyncio
    async def test_invalid_transition(self, store):
        job = await store.insert(JobRecord(command="plans"))

        with pytest.raises(InvalidTransitionError):
            await store.update_status(job.job_id, JobStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        with pytest.raises(JobNotFoundError):
            await store.update_status("nope", JobStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_delete_and_count(self, store):
        a = await store.insert(JobRecord(command="plans"))
        await store.insert(JobRecord(command="plans"))

        assert await store.count() == 2
        assert await store.count(JobStatus.PENDING) == 2
        assert await store.delete(a.job_id) is True
        assert await store.delete(a.job_id) is False
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_evict_uses_policy(self, store):
        keep = await store.insert(JobRecord(command="plans"))
        drop = await store.insert(JobRecord(command="tell"))

        removed = await store.evict(lambda jobs: [j.job_id for j in jobs if j.command == "tell"] + ["ghost"])

        assert removed == [drop.job_id]
        assert await store.count() == 1
        assert (await store.get(keep.job_id)).command == "plans"

    @pytest.mark.asyncio
    async def test_concurrent_updates_only_one_terminal(self, store):
        job = await store.insert(JobRecord(command="plans"))
        await store.update_status(job.job_id, JobStatus.RUNNING)

        async def attempt(status):
            try:
                await store.update_status(job.job_id, status)
                return status
            except JobAlreadyCompleteError:
                return None

        results = await asyncio.gather(
            attempt(JobStatus.COMPLETED),
            attempt(JobStatus.CANCELLED),
            attempt(JobStatus.FAILED),
        )

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert (await store.get(job.job_id)).status == winners[0]
