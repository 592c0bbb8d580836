"""
Configuration system for cli-relay.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- JSON/YAML/TOML file loading
- Duration strings ("30s", "24h")
"""

from .base import DurationLike, LogFormat, LogLevel, format_duration, parse_duration
from .jobs import ExecutorConfig, JobsConfig
from .logging import LoggingConfig
from .settings import Settings, load_env
from .webhooks import WebhooksConfig

__all__ = [
    # Types
    "LogLevel",
    "LogFormat",
    "DurationLike",
    "parse_duration",
    "format_duration",
    # Section configs
    "JobsConfig",
    "ExecutorConfig",
    "WebhooksConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    "load_env",
]
