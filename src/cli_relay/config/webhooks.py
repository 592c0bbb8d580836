"""
Webhook delivery configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from .base import parse_duration


@dataclass
class WebhooksConfig:
    """Configuration for webhook notifications."""

    enabled: bool = False
    secret: str = ""

    # Retry policy: max_retries + 1 attempts, linear backoff
    max_retries: int = 3
    retry_backoff: float = 30.0

    # Per-request HTTP timeout
    timeout: float = 30.0
    user_agent: str = "cli-relay/1.0"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.retry_backoff = parse_duration(self.retry_backoff)
        self.timeout = parse_duration(self.timeout)
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


__all__ = ["WebhooksConfig"]
