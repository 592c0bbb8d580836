"""
Job system for cli-relay.

This module provides the job lifecycle management:
- JobRecord: In-memory job state
- JobStore: Storage interface with the in-memory implementation
- CommandValidator: Allow-list and argument checks
- Dispatcher: Concurrency ceiling and per-job deadline
- CancellationRegistry: Revoke handles for running jobs
- EvictionLoop: TTL and history-size cleanup
- JobManager: Lifecycle operations (create, get, list, cancel)
"""

from .types import (
    JobStatus,
    JobRecord,
    JobRequest,
    VALID_TRANSITIONS,
)
from .store import (
    JobStore,
    InMemoryJobStore,
    EvictionPolicy,
)
from .validator import (
    CommandValidator,
    CommandSpec,
    CommandArg,
    CommandFlag,
    CommandExample,
    DEFAULT_ALLOWED_COMMANDS,
)
from .registry import CancellationRegistry
from .dispatcher import Dispatcher
from .eviction import EvictionLoop
from .manager import JobManager

__all__ = [
    "JobStatus",
    "JobRecord",
    "JobRequest",
    "VALID_TRANSITIONS",
    "JobStore",
    "InMemoryJobStore",
    "EvictionPolicy",
    "CommandValidator",
    "CommandSpec",
    "CommandArg",
    "CommandFlag",
    "CommandExample",
    "DEFAULT_ALLOWED_COMMANDS",
    "CancellationRegistry",
    "Dispatcher",
    "EvictionLoop",
    "JobManager",
]
