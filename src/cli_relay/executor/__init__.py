"""
Command executors.

- Executor: the capability the dispatcher calls
- CLIExecutor: runs the proxied CLI as a subprocess
- FunctionExecutor: direct in-process call (sync or async)
"""

from .base import ExecuteResult, Executor, FunctionExecutor
from .cli import CLIExecutor

__all__ = [
    "ExecuteResult",
    "Executor",
    "FunctionExecutor",
    "CLIExecutor",
]
