"""Cancellation tokens for cooperative job interruption.

A CancellationToken is handed to the executor for every job run. The
cancellation registry keeps only the token's ``cancel`` handle, so revoking a
job never requires knowing how the executor is implemented.

Key design:
- Token uses asyncio.Event internally for async-friendly waiting
- Cooperative cancellation: executors check the token at natural breakpoints
  or register ``on_cancel`` callbacks (e.g. to terminate a subprocess)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from .logging import get_logger


class CancelledError(Exception):
    """Raised by executors that observe a cancelled token.

    Kept distinct from asyncio.CancelledError so that a job cancelled through
    its token is never confused with the surrounding task being torn down.
    """
    pass


@dataclass
class CancellationToken:
    """Mutable token for cooperative cancellation.

    Usage:
        token = CancellationToken()

        # In a long-running executor:
        for chunk in stream:
            token.raise_if_cancelled()
            process(chunk)

        # To cancel:
        token.cancel()
    """

    _event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _callbacks: list[Callable[[], Any]] = field(default_factory=list, init=False)
    _noop: bool = field(default=False, init=False, repr=False)
    reason: str | None = field(default=None, init=False)

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        if self._noop:
            return False
        return self._event.is_set()

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation (idempotent).

        Triggers all registered callbacks on the first call only.
        """
        if self._noop:
            return
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            for cb in self._callbacks:
                self._invoke(cb)

    async def wait(self) -> None:
        """Block until cancel() is called."""
        if self._noop:
            # Never resolves: this token never cancels.
            await asyncio.Future()
            return
        await self._event.wait()

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """Register callback for cancellation.

        Callback is invoked immediately if already cancelled.

        Args:
            callback: Zero-argument callable to invoke on cancellation.
        """
        self._callbacks.append(callback)
        if self._noop:
            return
        if self._event.is_set():
            self._invoke(callback)

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if cancelled.

        Raises:
            CancelledError: If cancellation was requested.
        """
        if self._noop:
            return
        if self._event.is_set():
            raise CancelledError(self.reason or "Operation was cancelled")

    @staticmethod
    def _invoke(callback: Callable[[], Any]) -> None:
        # A failing callback must not prevent the remaining ones from running.
        try:
            callback()
        except Exception as exc:
            get_logger().log_error(exc, "cancellation callback failed")

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a no-op token (never cancels)."""
        return _get_never_cancel()


# Created lazily so importing this module never needs an event loop.
_NEVER_CANCEL: CancellationToken | None = None


def _get_never_cancel() -> CancellationToken:
    """Get or create the singleton no-op token."""
    global _NEVER_CANCEL
    if _NEVER_CANCEL is None:
        token = CancellationToken()
        token._noop = True
        _NEVER_CANCEL = token
    return _NEVER_CANCEL


__all__ = ["CancellationToken", "CancelledError"]
