"""Subprocess-based executor for the proxied CLI."""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path

from ..cancellation import CancellationToken, CancelledError
from ..config import ExecutorConfig
from ..errors import ErrorContext, ExecutionError
from ..logging import get_logger, truncate_for_log
from .base import ExecuteResult, Executor

logger = get_logger()


class CLIExecutor(Executor):
    """Run ``<binary> <command> <args...>`` as a child process.

    The process runs in ``working_dir`` with ``environment`` merged over the
    current environment. Interactive confirmations are answered with
    ``stdin_input``. When ``output_file_env`` is set, a temp file path is
    exported under that name and its contents, if any, replace stdout as the
    job output. Cancelling the token terminates the process, escalating to
    kill after ``kill_grace`` seconds.
    """

    def __init__(
        self,
        binary: str,
        *,
        working_dir: str | Path = ".",
        environment: Mapping[str, str] | None = None,
        output_file_env: str | None = None,
        stdin_input: bytes | None = b"n\n",
        kill_grace: float = 5.0,
    ) -> None:
        self.binary = binary
        self.working_dir = Path(working_dir)
        self.environment = dict(environment or {})
        self.output_file_env = output_file_env
        self.stdin_input = stdin_input
        self.kill_grace = kill_grace

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> CLIExecutor:
        return cls(
            config.binary,
            working_dir=config.working_dir,
            environment=config.environment,
            output_file_env=config.output_file_env,
        )

    async def execute(
        self,
        command: str,
        args: Sequence[str],
        token: CancellationToken,
    ) -> ExecuteResult:
        token.raise_if_cancelled()

        output_path: str | None = None
        env = os.environ.copy()
        env.update(self.environment)
        if self.output_file_env:
            fd, output_path = tempfile.mkstemp(prefix="cli-relay-output-")
            os.close(fd)
            env[self.output_file_env] = output_path

        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    self.binary,
                    command,
                    *args,
                    cwd=str(self.working_dir),
                    env=env,
                    stdin=asyncio.subprocess.PIPE if self.stdin_input is not None else asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as e:
                raise ExecutionError(
                    f"cannot start {self.binary}: {e}",
                    context=ErrorContext(command=command, operation="spawn"),
                    cause=e,
                ) from e

            logger.debug("Process started", pid=proc.pid, binary=self.binary)
            communicate = asyncio.ensure_future(proc.communicate(input=self.stdin_input))
            waiter = asyncio.ensure_future(token.wait())
            try:
                done, _ = await asyncio.wait({communicate, waiter}, return_when=asyncio.FIRST_COMPLETED)
            except asyncio.CancelledError:
                # Deadline or shutdown: the child must not outlive the job.
                await self._terminate(proc)
                raise
            finally:
                waiter.cancel()
                if not communicate.done():
                    communicate.cancel()

            if communicate not in done:
                await self._terminate(proc)
                await asyncio.gather(communicate, return_exceptions=True)
                raise CancelledError(token.reason or "execution cancelled")

            stdout, stderr = communicate.result()
            output = stdout.decode("utf-8", errors="replace")
            error = stderr.decode("utf-8", errors="replace")

            if output_path:
                file_output = Path(output_path).read_text(encoding="utf-8", errors="replace")
                if file_output:
                    output = file_output

            exit_code = proc.returncode if proc.returncode is not None else 1
            logger.debug(
                "Process exited",
                pid=proc.pid,
                exit_code=exit_code,
                stderr=truncate_for_log(error),
            )
            return ExecuteResult(output=output, error=error, exit_code=exit_code)
        finally:
            if output_path:
                with contextlib.suppress(FileNotFoundError):
                    os.remove(output_path)

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()


__all__ = ["CLIExecutor"]
