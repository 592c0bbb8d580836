"""
Settings master configuration.
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from ..logging import StructuredLogger, configure_logging, redact_secret
from .jobs import ExecutorConfig, JobsConfig
from .logging import LoggingConfig
from .webhooks import WebhooksConfig

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class Settings:
    """
    Master configuration for cli-relay.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically. One Settings instance is handed to the JobManager;
    nothing reads configuration from module globals.
    """

    jobs: JobsConfig = field(default_factory=JobsConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    webhooks: WebhooksConfig = field(default_factory=WebhooksConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "CLI_RELAY_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            CLI_RELAY_MAX_CONCURRENT=2
            CLI_RELAY_DEFAULT_TTL=1h
            CLI_RELAY_WEBHOOKS_ENABLED=true
            CLI_RELAY_WEBHOOKS_SECRET=...
        """
        settings = cls()

        def env(name: str) -> str | None:
            return os.getenv(f"{prefix}{name}")

        try:
            # Job settings
            jobs: dict[str, Any] = {}
            if value := env("MAX_CONCURRENT"):
                jobs["max_concurrent"] = int(value)
            if value := env("DEFAULT_TTL"):
                jobs["default_ttl"] = value
            if value := env("CLEANUP_INTERVAL"):
                jobs["cleanup_interval"] = value
            if value := env("MAX_HISTORY_SIZE"):
                jobs["max_history_size"] = int(value)
            if value := env("EVICT_ACTIVE"):
                jobs["evict_active"] = value.lower() in _TRUE_VALUES
            if jobs:
                settings.jobs = replace(settings.jobs, **jobs)

            # Executor settings
            executor: dict[str, Any] = {}
            if value := env("BINARY"):
                executor["binary"] = value
            if value := env("WORKING_DIR"):
                executor["working_dir"] = Path(value)
            if value := env("EXECUTOR_TIMEOUT"):
                executor["timeout"] = value
            if value := env("OUTPUT_FILE_ENV"):
                executor["output_file_env"] = value
            if value := env("ALLOWED_COMMANDS"):
                executor["allowed_commands"] = [c.strip() for c in value.split(",") if c.strip()]
            if executor:
                settings.executor = replace(settings.executor, **executor)

            # Webhook settings
            webhooks: dict[str, Any] = {}
            if value := env("WEBHOOKS_ENABLED"):
                webhooks["enabled"] = value.lower() in _TRUE_VALUES
            if value := env("WEBHOOKS_SECRET"):
                webhooks["secret"] = value
            if value := env("WEBHOOKS_MAX_RETRIES"):
                webhooks["max_retries"] = int(value)
            if value := env("WEBHOOKS_RETRY_BACKOFF"):
                webhooks["retry_backoff"] = value
            if value := env("WEBHOOKS_TIMEOUT"):
                webhooks["timeout"] = value
            if webhooks:
                settings.webhooks = replace(settings.webhooks, **webhooks)

            # Logging settings
            logging_: dict[str, Any] = {}
            if value := env("LOG_LEVEL"):
                logging_["level"] = value.upper()
            if value := env("LOG_FORMAT"):
                logging_["format"] = value.lower()
            if value := env("LOG_FILE"):
                logging_["log_file"] = Path(value)
            if logging_:
                settings.logging = replace(settings.logging, **logging_)
        except ValueError as e:
            raise InvalidConfigError(f"Invalid environment configuration: {e}", cause=e) from e

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a JSON, YAML or TOML file.

        Args:
            path: Path to configuration file (.json, .yaml, .yml or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix == ".json":
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        elif suffix in (".yaml", ".yml"):
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise InvalidConfigError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def default(cls) -> Settings:
        """Create default configuration."""
        return cls()

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema before
        any section is built; each section then runs its own value checks.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        settings = cls()
        try:
            if "jobs" in data:
                settings.jobs = JobsConfig(**data["jobs"])
            if "executor" in data:
                settings.executor = ExecutorConfig(**data["executor"])
            if "webhooks" in data:
                settings.webhooks = WebhooksConfig(**data["webhooks"])
            if "logging" in data:
                settings.logging = LoggingConfig(**data["logging"])
        except ValueError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e}", cause=e) from e

        return settings

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        """Convert settings to dictionary, masking the webhook secret by default."""

        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {f.name: convert(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert(v) for v in obj]
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        data = convert(self)
        if redact and self.webhooks.secret:
            data["webhooks"]["secret"] = redact_secret(self.webhooks.secret)
        return data

    def apply_logging(self) -> StructuredLogger:
        """Configure the package logger from the logging section."""
        return configure_logging(
            level=self.logging.level,
            json_output=self.logging.format == "json",
            log_file=self.logging.log_file,
        )


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "load_env"]
