"""Tests for TTL and history-size eviction."""

from __future__ import annotations

import asyncio
import time

import pytest

from cli_relay.errors import JobNotFoundError
from cli_relay.jobs import EvictionLoop, InMemoryJobStore, JobRecord, JobStatus


async def _insert(store, *, created_at, ttl=3600.0, status=JobStatus.COMPLETED, command="plans"):
    job = await store.insert(JobRecord(command=command, created_at=created_at, ttl=ttl))
    if status != JobStatus.PENDING:
        if status == JobStatus.CANCELLED:
            await store.update_status(job.job_id, JobStatus.CANCELLED)
        else:
            await store.update_status(job.job_id, JobStatus.RUNNING)
            if status != JobStatus.RUNNING:
                await store.update_status(job.job_id, status)
    return job


class TestEvictionSelect:

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            EvictionLoop(InMemoryJobStore(), interval=0, max_history_size=10)

    @pytest.mark.asyncio
    async def test_expired_jobs_removed(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=100)
        old = await _insert(store, created_at=1000.0, ttl=10.0)
        fresh = await _insert(store, created_at=1000.0, ttl=1000.0)

        removed = await loop.sweep(now=1011.0)

        assert removed == [old.job_id]
        with pytest.raises(JobNotFoundError):
            await store.get(old.job_id)
        await store.get(fresh.job_id)

    @pytest.mark.asyncio
    async def test_overflow_removes_oldest_first(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=2)
        jobs = [await _insert(store, created_at=100.0 + i) for i in range(5)]

        removed = await loop.sweep(now=200.0)

        assert removed == [jobs[0].job_id, jobs[1].job_id, jobs[2].job_id]
        remaining = {j.job_id for j in await store.list()}
        assert remaining == {jobs[3].job_id, jobs[4].job_id}

    @pytest.mark.asyncio
    async def test_expiry_counts_toward_cap(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=2)
        expired = await _insert(store, created_at=300.0, ttl=1.0)
        a = await _insert(store, created_at=100.0)
        b = await _insert(store, created_at=200.0)

        removed = await loop.sweep(now=400.0)

        assert removed == [expired.job_id]
        assert await store.count() == 2
        await store.get(a.job_id)
        await store.get(b.job_id)

    @pytest.mark.asyncio
    async def test_active_jobs_are_kept(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=1)
        pending = await _insert(store, created_at=1.0, ttl=1.0, status=JobStatus.PENDING)
        running = await _insert(store, created_at=2.0, ttl=1.0, status=JobStatus.RUNNING)
        done = await _insert(store, created_at=3.0, ttl=1.0, status=JobStatus.FAILED)

        removed = await loop.sweep(now=100.0)

        assert removed == [done.job_id]
        await store.get(pending.job_id)
        await store.get(running.job_id)

    @pytest.mark.asyncio
    async def test_evict_active(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=10, evict_active=True)
        running = await _insert(store, created_at=1.0, ttl=1.0, status=JobStatus.RUNNING)

        removed = await loop.sweep(now=100.0)

        assert removed == [running.job_id]

    @pytest.mark.asyncio
    async def test_nothing_to_do(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=60, max_history_size=10)
        await _insert(store, created_at=time.time())

        assert await loop.sweep() == []


class TestEvictionLoop:

    @pytest.mark.asyncio
    async def test_loop_sweeps_periodically(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=0.02, max_history_size=100)
        job = await _insert(store, created_at=time.time() - 10, ttl=1.0)

        loop.start()
        assert loop.running
        try:
            for _ in range(100):
                if await store.count() == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await loop.stop()

        assert not loop.running
        with pytest.raises(JobNotFoundError):
            await store.get(job.job_id)

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        loop = EvictionLoop(InMemoryJobStore(), interval=1, max_history_size=1)

        await loop.stop()

        assert not loop.running

    @pytest.mark.asyncio
    async def test_failed_sweep_does_not_stop_loop(self):
        store = InMemoryJobStore()
        loop = EvictionLoop(store, interval=0.01, max_history_size=100)
        calls = 0
        original = store.evict

        async def flaky(select):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return await original(select)

        store.evict = flaky
        loop.start()
        try:
            for _ in range(100):
                if calls >= 2:
                    break
                await asyncio.sleep(0.01)
        finally:
            await loop.stop()

        assert calls >= 2
