"""
Shared test fixtures for cli-relay tests.

This module provides:
- A scriptable in-process executor that records calls and can be gated
- Settings factories with short intervals
- A local aiohttp webhook receiver
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from cli_relay.cancellation import CancellationToken, CancelledError
from cli_relay.config import ExecutorConfig, JobsConfig, LoggingConfig, Settings, WebhooksConfig
from cli_relay.executor import ExecuteResult, Executor

# =============================================================================
# Executors
# =============================================================================


class RecordingExecutor(Executor):
    """Executor whose runs block on a gate until released.

    Every call is recorded. ``gated=False`` makes calls return immediately.
    Results can be scripted per command via ``results``.
    """

    def __init__(self, gated: bool = True):
        self.gated = gated
        self.gate = asyncio.Event()
        self.calls: list[tuple[str, list[str]]] = []
        self.started = asyncio.Event()
        self.running = 0
        self.peak = 0
        self.results: dict[str, ExecuteResult | BaseException] = {}
        self.ignore_cancel = False

    def release(self) -> None:
        self.gate.set()

    async def execute(self, command: str, args, token: CancellationToken) -> ExecuteResult:
        self.calls.append((command, list(args)))
        self.running += 1
        self.peak = max(self.peak, self.running)
        self.started.set()
        try:
            if self.gated:
                waiters = {asyncio.ensure_future(self.gate.wait())}
                if not self.ignore_cancel:
                    waiters.add(asyncio.ensure_future(token.wait()))
                try:
                    await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    for w in waiters:
                        w.cancel()
                if token.is_cancelled and not self.ignore_cancel:
                    raise CancelledError(token.reason or "cancelled")
            outcome = self.results.get(command, ExecuteResult(output=f"ran {command}"))
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.running -= 1


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor(gated=False)


@pytest.fixture
def gated_executor() -> RecordingExecutor:
    return RecordingExecutor(gated=True)


# =============================================================================
# Settings
# =============================================================================


def make_settings(
    *,
    max_concurrent: int = 2,
    default_ttl: float = 3600.0,
    cleanup_interval: float = 3600.0,
    max_history_size: int = 1000,
    evict_active: bool = False,
    timeout: float = 5.0,
    webhooks_enabled: bool = False,
    secret: str = "",
    max_retries: int = 3,
    retry_backoff: float = 0.01,
) -> Settings:
    """Settings tuned for fast tests."""
    return Settings(
        jobs=JobsConfig(
            max_concurrent=max_concurrent,
            default_ttl=default_ttl,
            cleanup_interval=cleanup_interval,
            max_history_size=max_history_size,
            evict_active=evict_active,
        ),
        executor=ExecutorConfig(timeout=timeout),
        webhooks=WebhooksConfig(
            enabled=webhooks_enabled,
            secret=secret,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
            timeout=2.0,
        ),
        logging=LoggingConfig(),
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    return make_settings


# =============================================================================
# Webhook receiver
# =============================================================================


@dataclass
class WebhookReceiver:
    """Records every POST; answers with scripted status codes, then 200."""

    statuses: list[int] = field(default_factory=list)
    requests: list[dict[str, Any]] = field(default_factory=list)
    server: TestServer | None = None

    @property
    def url(self) -> str:
        assert self.server is not None
        return str(self.server.make_url("/hook"))

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.text()
        status = self.statuses.pop(0) if self.statuses else 200
        self.requests.append({
            "body": body,
            "headers": request.headers.copy(),
            "time": asyncio.get_running_loop().time(),
            "response_status": status,
        })
        return web.Response(status=status, text="ok")

    async def wait_for_requests(self, count: int, timeout: float = 5.0) -> None:
        async def _poll():
            while len(self.requests) < count:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
async def webhook_receiver() -> AsyncIterator[WebhookReceiver]:
    receiver = WebhookReceiver()
    app = web.Application()
    app.router.add_post("/hook", receiver.handle)
    server = TestServer(app)
    await server.start_server()
    receiver.server = server
    try:
        yield receiver
    finally:
        await server.close()
