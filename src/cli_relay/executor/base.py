"""
Executor capability consumed by the dispatcher.

The job core only needs ``execute(command, args, token)``; what actually runs
(a CLI subprocess, an in-process function) is up to the implementation. All
executors must honor the cancellation token promptly.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from ..cancellation import CancellationToken, CancelledError
from ..concurrency import run_sync


@dataclass(frozen=True)
class ExecuteResult:
    """What one command run produced."""
    output: str = ""
    error: str = ""
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


class Executor(ABC):
    """Runs one command to completion or until its token is cancelled."""

    @abstractmethod
    async def execute(
        self,
        command: str,
        args: Sequence[str],
        token: CancellationToken,
    ) -> ExecuteResult:
        """Run ``command`` with ``args``.

        Raises:
            CancelledError: If the token was cancelled before completion
        """
        ...


FunctionResult = Union[ExecuteResult, tuple, str, None]
ExecuteFunction = Callable[[str, list, CancellationToken], Union[FunctionResult, Awaitable[FunctionResult]]]


class FunctionExecutor(Executor):
    """Executor backed by a direct in-process call.

    ``func(command, args, token)`` may be sync (run in the shared thread pool)
    or async. It may return an ExecuteResult, an ``(output, error, exit_code)``
    tuple, a plain output string, or None.

    The call is raced against the token: once cancelled, ``execute`` raises
    CancelledError right away. An async function is cancelled with it; a sync
    one keeps running in its thread until it returns.
    """

    def __init__(self, func: ExecuteFunction) -> None:
        self._func = func

    async def execute(
        self,
        command: str,
        args: Sequence[str],
        token: CancellationToken,
    ) -> ExecuteResult:
        token.raise_if_cancelled()

        call = asyncio.ensure_future(self._call(command, list(args), token))
        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not call.done():
                call.cancel()
                await asyncio.gather(call, return_exceptions=True)

        if call in done:
            return _coerce_result(call.result())
        raise CancelledError(token.reason or "execution cancelled")

    async def _call(self, command: str, args: list, token: CancellationToken) -> Any:
        if inspect.iscoroutinefunction(self._func):
            return await self._func(command, args, token)
        result = await run_sync(self._func, command, args, token)
        if inspect.isawaitable(result):
            return await result
        return result


def _coerce_result(result: Any) -> ExecuteResult:
    if isinstance(result, ExecuteResult):
        return result
    if result is None:
        return ExecuteResult()
    if isinstance(result, str):
        return ExecuteResult(output=result)
    if isinstance(result, tuple) and len(result) == 3:
        output, error, exit_code = result
        return ExecuteResult(output=output or "", error=error or "", exit_code=int(exit_code))
    raise TypeError(f"Unsupported executor result: {type(result).__name__}")


__all__ = [
    "ExecuteResult",
    "Executor",
    "FunctionExecutor",
]
