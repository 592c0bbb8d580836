"""
Job orchestration and executor configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .base import parse_duration


@dataclass
class JobsConfig:
    """Configuration for job dispatch and eviction.

    Durations are stored in seconds; strings such as "24h" are accepted and
    normalized on construction.
    """

    # Dispatch
    max_concurrent: int = 5

    # Eviction
    default_ttl: float = 24 * 3600.0
    cleanup_interval: float = 3600.0
    max_history_size: int = 1000
    evict_active: bool = False  # True also evicts pending/running jobs

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.default_ttl = parse_duration(self.default_ttl)
        self.cleanup_interval = parse_duration(self.cleanup_interval)
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if self.cleanup_interval <= 0:
            raise ValueError("cleanup_interval must be positive")
        if self.max_history_size < 0:
            raise ValueError("max_history_size cannot be negative")


@dataclass
class ExecutorConfig:
    """Configuration for the command executor."""

    binary: str = "plandex"
    working_dir: Path = Path(".")
    timeout: float = 600.0
    environment: dict[str, str] = field(default_factory=dict)

    # Env var that receives a temp file path; the CLI writes its output there.
    output_file_env: str | None = None

    # None keeps the built-in allow-list.
    allowed_commands: list[str] | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.timeout = parse_duration(self.timeout)
        if isinstance(self.working_dir, str):
            self.working_dir = Path(self.working_dir)
        if not self.binary:
            raise ValueError("binary cannot be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.allowed_commands is not None and not self.allowed_commands:
            raise ValueError("allowed_commands cannot be an empty list")


__all__ = ["JobsConfig", "ExecutorConfig"]
