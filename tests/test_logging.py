"""
Tests for the structured logging module.
"""

import asyncio
import json
import logging

import pytest

from cli_relay.errors import JobNotFoundError
from cli_relay.logging import (
    JobLog,
    LogContext,
    StructuredLogger,
    Timer,
    WebhookLog,
    configure_logging,
    generate_trace_id,
    get_logger,
    redact_secret,
    timed,
    truncate_for_log,
)


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    """A StructuredLogger writing JSON into a list."""
    name = "cli_relay_test_capture"
    underlying = logging.getLogger(name)
    handler = _ListHandler()
    underlying.handlers = [handler]
    underlying.propagate = False
    logger = StructuredLogger(name, level="DEBUG", json_output=True)
    yield logger, handler
    underlying.handlers = []


def _payload(record: logging.LogRecord) -> dict:
    return json.loads(record.getMessage())


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_drops_none_and_merges_extra(self):
        ctx = LogContext(trace_id="t1", job_id="j1", extra={"custom": "value"})

        d = ctx.to_dict()

        assert d == {"trace_id": "t1", "job_id": "j1", "custom": "value"}

    def test_with_update(self):
        ctx = LogContext(trace_id="t1", command="tell")
        updated = ctx.with_update(job_id="j1", extra={"new": "value"})

        assert updated.trace_id == "t1"
        assert updated.command == "tell"
        assert updated.job_id == "j1"
        assert updated.extra == {"new": "value"}
        assert ctx.job_id is None


class TestLogRecords:
    """Test log record classes."""

    def test_job_log(self):
        log = JobLog(job_id="j1", command="tell", status="running", previous_status="pending")

        d = log.to_dict()

        assert d["job_id"] == "j1"
        assert d["previous_status"] == "pending"
        assert "timestamp" in d
        assert "exit_code" not in d

    def test_webhook_log(self):
        log = WebhookLog(
            job_id="j1",
            url="http://example.test/hook",
            status="completed",
            attempt=2,
            max_attempts=4,
            success=False,
            http_status=500,
        )

        d = log.to_dict()

        assert d["attempt"] == 2
        assert d["http_status"] == 500
        assert d["success"] is False


class TestStructuredLogger:
    """Test StructuredLogger output."""

    def test_info_includes_kwargs(self, captured):
        logger, handler = captured

        logger.info("hello", removed=3)

        data = _payload(handler.records[-1])
        assert data["message"] == "hello"
        assert data["removed"] == 3

    def test_job_context_is_attached_and_reset(self, captured):
        logger, handler = captured

        with logger.job_context("j1", "tell") as trace_id:
            logger.info("inside")
        logger.info("outside")

        inside, outside = (_payload(r) for r in handler.records[-2:])
        assert inside["job_id"] == "j1"
        assert inside["command"] == "tell"
        assert inside["operation"] == "dispatch"
        assert inside["trace_id"] == trace_id
        assert "job_id" not in outside

    def test_trace_context_nests_and_restores(self, captured):
        logger, handler = captured

        with logger.trace_context("outer-trace", operation="shutdown") as outer:
            with logger.job_context("j2", "plans") as inner:
                logger.info("nested")
            logger.info("outer")

        nested, after = (_payload(r) for r in handler.records[-2:])
        assert outer == "outer-trace"
        assert nested["trace_id"] == inner != outer
        assert after["trace_id"] == "outer-trace"
        assert nested["job_id"] == "j2"
        assert nested["operation"] == "dispatch"
        assert after["operation"] == "shutdown"
        assert "job_id" not in after
        assert logger.context.trace_id is None

    @pytest.mark.asyncio
    async def test_context_is_per_task(self, captured):
        logger, handler = captured

        async def work(job_id):
            with logger.job_context(job_id, "tell"):
                await asyncio.sleep(0.01)
                logger.info("done")

        await asyncio.gather(work("a"), work("b"))

        job_ids = sorted(_payload(r)["job_id"] for r in handler.records[-2:])
        assert job_ids == ["a", "b"]

    def test_log_job_level(self, captured):
        logger, handler = captured

        logger.log_job(JobLog(job_id="j1", command="tell", status="completed", previous_status="running"))
        logger.log_job(JobLog(job_id="j1", command="tell", status="failed", previous_status="running"))

        ok, failed = handler.records[-2:]
        assert ok.levelno == logging.INFO
        assert failed.levelno == logging.WARNING
        assert _payload(ok)["event_type"] == "job_transition"
        assert _payload(ok)["message"] == "Job j1 running -> completed"

    def test_log_webhook_failure_message(self, captured):
        logger, handler = captured

        logger.log_webhook(WebhookLog(
            job_id="j1", url="u", status="running", attempt=1, max_attempts=4, success=False,
        ))

        record = handler.records[-1]
        assert record.levelno == logging.WARNING
        assert "attempt 1/4 failed" in _payload(record)["message"]

    def test_log_error_includes_code(self, captured):
        logger, handler = captured

        logger.log_error(JobNotFoundError("j1"), "lookup failed")

        data = _payload(handler.records[-1])
        assert data["error_type"] == "JobNotFoundError"
        assert data["error_code"] == "ERR_3001"
        assert data["retryable"] is False
        assert data["error_context"]["job_id"] == "j1"

    def test_text_output(self):
        name = "cli_relay_test_text"
        handler = _ListHandler()
        logging.getLogger(name).handlers = [handler]
        logger = StructuredLogger(name, json_output=False)

        logger.info("hello", job_id="j1")

        assert handler.records[-1].getMessage() == "hello job_id=j1"
        logging.getLogger(name).handlers = []


class TestGetLogger:

    def test_get_logger_is_cached(self):
        assert get_logger() is get_logger()

    def test_configure_logging_keeps_default_instance(self):
        before = get_logger()
        after = configure_logging(level="DEBUG", json_output=False)
        try:
            assert after is before
            assert before.json_output is False
            assert len(logging.getLogger("cli_relay").handlers) == 1
        finally:
            configure_logging(level="INFO", json_output=True)


class TestUtilities:
    """Test utility functions."""

    def test_generate_trace_id(self):
        a, b = generate_trace_id(), generate_trace_id()
        assert a.startswith("trace_")
        assert a != b

    def test_redact_secret(self):
        assert redact_secret(None) == "<not set>"
        assert redact_secret("") == "<not set>"
        assert redact_secret("short") == "***"
        assert redact_secret("supersecretvalue") == "supe...alue"

    def test_truncate_for_log(self):
        assert truncate_for_log("short") == "short"
        long = "x" * 300
        truncated = truncate_for_log(long, max_length=10)
        assert truncated.startswith("x" * 10)
        assert "300 chars total" in truncated

    def test_timer(self):
        timer = Timer()
        elapsed = timer.stop()
        assert elapsed >= 0
        assert timer.elapsed_ms == elapsed

    def test_timed(self):
        with timed() as timer:
            pass
        assert timer.end_time is not None
