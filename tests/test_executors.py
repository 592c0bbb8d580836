"""Tests for the subprocess and in-process executors."""

from __future__ import annotations

import asyncio
import sys
import time

import pytest

from cli_relay.cancellation import CancellationToken, CancelledError
from cli_relay.config import ExecutorConfig
from cli_relay.errors import ExecutionError
from cli_relay.executor import CLIExecutor, ExecuteResult, FunctionExecutor


def _python(**kwargs) -> CLIExecutor:
    """Runs ``python -c <script>``: the command is ``-c``, the script its only arg."""
    return CLIExecutor(sys.executable, **kwargs)


class TestCLIExecutor:

    @pytest.mark.asyncio
    async def test_captures_streams_and_exit_code(self):
        script = "import sys; print('hello'); print('oops', file=sys.stderr); sys.exit(3)"

        result = await _python().execute("-c", [script], CancellationToken())

        assert result.output.strip() == "hello"
        assert result.error.strip() == "oops"
        assert result.exit_code == 3
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_answers_prompts_on_stdin(self):
        script = "print('answer=' + input().strip())"

        result = await _python().execute("-c", [script], CancellationToken())

        assert result.output.strip() == "answer=n"
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_environment_and_working_dir(self, tmp_path):
        script = "import os; print(os.environ['RELAY_TEST'], os.getcwd())"

        result = await _python(working_dir=tmp_path, environment={"RELAY_TEST": "yes"}).execute(
            "-c", [script], CancellationToken()
        )

        value, cwd = result.output.split()
        assert value == "yes"
        assert cwd == str(tmp_path.resolve()) or cwd == str(tmp_path)

    @pytest.mark.asyncio
    async def test_output_file_replaces_stdout(self):
        script = (
            "import os\n"
            "print('noise')\n"
            "open(os.environ['RELAY_OUTPUT'], 'w').write('clean result')\n"
        )

        result = await _python(output_file_env="RELAY_OUTPUT").execute("-c", [script], CancellationToken())

        assert result.output == "clean result"

    @pytest.mark.asyncio
    async def test_empty_output_file_keeps_stdout(self):
        result = await _python(output_file_env="RELAY_OUTPUT").execute(
            "-c", ["print('stdout wins')"], CancellationToken()
        )

        assert result.output.strip() == "stdout wins"

    @pytest.mark.asyncio
    async def test_cancellation_terminates_process(self):
        token = CancellationToken()
        executor = _python(kill_grace=1.0)

        async def cancel_soon():
            await asyncio.sleep(0.2)
            token.cancel("stop it")

        canceller = asyncio.create_task(cancel_soon())
        started = time.monotonic()
        with pytest.raises(CancelledError, match="stop it"):
            await executor.execute("-c", ["import time; time.sleep(30)"], token)
        await canceller

        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_already_cancelled_token(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            await _python().execute("-c", ["print('never')"], token)

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        executor = CLIExecutor("/nonexistent/cli-relay-binary")

        with pytest.raises(ExecutionError, match="cannot start"):
            await executor.execute("plans", [], CancellationToken())

    def test_from_config(self, tmp_path):
        config = ExecutorConfig(
            binary="mytool",
            working_dir=tmp_path,
            environment={"A": "1"},
            output_file_env="OUT",
        )

        executor = CLIExecutor.from_config(config)

        assert executor.binary == "mytool"
        assert executor.working_dir == tmp_path
        assert executor.environment == {"A": "1"}
        assert executor.output_file_env == "OUT"


class TestFunctionExecutor:

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def run(command, args, token):
            return ExecuteResult(output=f"{command}:{','.join(args)}")

        result = await FunctionExecutor(run).execute("tell", ["a", "b"], CancellationToken())

        assert result.output == "tell:a,b"

    @pytest.mark.asyncio
    async def test_sync_function_and_tuple_result(self):
        def run(command, args, token):
            return ("out", "err", 2)

        result = await FunctionExecutor(run).execute("plans", [], CancellationToken())

        assert result == ExecuteResult(output="out", error="err", exit_code=2)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ExecuteResult()),
            ("text", ExecuteResult(output="text")),
        ],
    )
    async def test_result_coercion(self, value, expected):
        async def run(command, args, token):
            return value

        assert await FunctionExecutor(run).execute("plans", [], CancellationToken()) == expected

    @pytest.mark.asyncio
    async def test_unsupported_result(self):
        async def run(command, args, token):
            return 42

        with pytest.raises(TypeError):
            await FunctionExecutor(run).execute("plans", [], CancellationToken())

    @pytest.mark.asyncio
    async def test_cancel_interrupts_async_function(self):
        token = CancellationToken()
        finished = []

        async def run(command, args, token):
            await asyncio.sleep(30)
            finished.append(True)

        async def cancel_soon():
            await asyncio.sleep(0.02)
            token.cancel("enough")

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(CancelledError, match="enough"):
            await FunctionExecutor(run).execute("plans", [], token)
        await canceller

        assert finished == []

    @pytest.mark.asyncio
    async def test_function_errors_propagate(self):
        def run(command, args, token):
            raise RuntimeError("kaboom")

        with pytest.raises(RuntimeError, match="kaboom"):
            await FunctionExecutor(run).execute("plans", [], CancellationToken())
