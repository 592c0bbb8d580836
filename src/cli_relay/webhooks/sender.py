"""
Signed webhook delivery with bounded retries.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import time

import aiohttp

from ..config import WebhooksConfig
from ..errors import ErrorContext, WebhookDeliveryError
from ..logging import WebhookLog, get_logger, timed
from .types import DeliveryResult, JobStatusUpdate

logger = get_logger()

TIMESTAMP_HEADER = "X-Webhook-Timestamp"
SIGNATURE_HEADER = "X-Webhook-Signature"


def compute_signature(secret: str, timestamp: int, body: str | bytes) -> str:
    """HMAC-SHA256 over ``"{timestamp}.{body}"``, formatted as ``sha256=<hex>``."""
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    message = f"{timestamp}.{body}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookSender:
    """Delivers JobStatusUpdates to caller-supplied URLs.

    Features:
    - Fire-and-forget ``send``: one background task per notification
    - Up to ``max_retries + 1`` attempts with linear backoff
      (``retry_backoff * attempt``)
    - HMAC signature header when a secret is configured

    Failures are logged and dropped; nothing here ever touches job state.
    """

    def __init__(
        self,
        config: WebhooksConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._tasks: set[asyncio.Task[DeliveryResult]] = set()
        self._closed = False

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def pending(self) -> int:
        """Deliveries still in flight."""
        return len(self._tasks)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def sign(self, body: str | bytes, timestamp: int) -> str | None:
        """Signature header value, or None when no secret is configured."""
        if not self.config.secret:
            return None
        return compute_signature(self.config.secret, timestamp, body)

    def verify_signature(self, body: str | bytes, timestamp: int, signature: str) -> bool:
        """Constant-time check of a signature header; always true without a secret."""
        expected = self.sign(body, timestamp)
        if expected is None:
            return True
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    def send(self, url: str, update: JobStatusUpdate) -> asyncio.Task[DeliveryResult] | None:
        """Schedule delivery in the background and return immediately.

        Returns:
            The delivery task, or None if webhooks are disabled or the sender
            is closed.
        """
        if not self.enabled:
            return None
        if self._closed:
            logger.warning("Webhook sender closed; dropping update", job_id=update.job_id, url=url)
            return None
        task = asyncio.create_task(self.deliver(url, update), name=f"webhook-{update.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def deliver(self, url: str, update: JobStatusUpdate) -> DeliveryResult:
        """Deliver one update, retrying per policy. Never raises on failure."""
        body = update.to_json()
        max_attempts = self.config.max_retries + 1
        last_error: str | None = None
        last_status: int | None = None

        for attempt in range(1, max_attempts + 1):
            with timed() as timer:
                try:
                    last_status = await self._post(url, body, update, attempt)
                    last_error = None
                except WebhookDeliveryError as e:
                    last_status = e.http_status
                    last_error = e.message

            logger.log_webhook(WebhookLog(
                job_id=update.job_id,
                url=url,
                status=update.status,
                attempt=attempt,
                max_attempts=max_attempts,
                success=last_error is None,
                http_status=last_status,
                error=last_error,
                duration_ms=timer.elapsed_ms,
            ))

            if last_error is None:
                return DeliveryResult(
                    url=url,
                    job_id=update.job_id,
                    success=True,
                    attempts=attempt,
                    http_status=last_status,
                )

            if attempt < max_attempts:
                await asyncio.sleep(self.config.retry_backoff * attempt)

        logger.warning(
            f"Webhook delivery failed permanently for job {update.job_id} after {max_attempts} attempts",
            url=url,
            error=last_error,
        )
        return DeliveryResult(
            url=url,
            job_id=update.job_id,
            success=False,
            attempts=max_attempts,
            http_status=last_status,
            error=last_error,
        )

    async def _post(self, url: str, body: str, update: JobStatusUpdate, attempt: int) -> int:
        """One POST; returns the HTTP status or raises WebhookDeliveryError."""
        session = await self._get_session()

        timestamp = int(time.time())
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
            TIMESTAMP_HEADER: str(timestamp),
        }
        signature = self.sign(body, timestamp)
        if signature:
            headers[SIGNATURE_HEADER] = signature

        context = ErrorContext(job_id=update.job_id, attempt=attempt, operation="webhook")
        try:
            async with session.post(
                url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            ) as response:
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise WebhookDeliveryError(
                f"failed to send webhook request: {e!r}",
                context=context,
                cause=e,
            ) from e

        if status < 200 or status >= 300:
            raise WebhookDeliveryError(
                f"webhook endpoint returned status {status}",
                http_status=status,
                context=context,
            )
        return status

    async def close(self, drain_timeout: float | None = 5.0) -> None:
        """Wait for in-flight deliveries, cancel stragglers, close the session."""
        self._closed = True
        if self._tasks:
            tasks = set(self._tasks)
            _, pending = await asyncio.wait(tasks, timeout=drain_timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Dropped {len(pending)} undelivered webhooks on shutdown")

        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


__all__ = [
    "WebhookSender",
    "compute_signature",
    "TIMESTAMP_HEADER",
    "SIGNATURE_HEADER",
]
