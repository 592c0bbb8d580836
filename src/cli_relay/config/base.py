"""
Base types for configuration.
"""

from __future__ import annotations

import re
from typing import Literal, Union

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

DurationLike = Union[int, float, str]

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: DurationLike) -> float:
    """
    Convert a duration to seconds.

    Numbers are taken as seconds. Strings use the compact duration syntax, a
    sequence of decimal numbers with unit suffixes: "30s", "1h30m", "1.5h",
    "250ms". A bare numeric string is also read as seconds.

    Raises:
        ValueError: If the value cannot be parsed or is negative
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Invalid duration: empty string")
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    raise ValueError(f"Invalid duration: {value!r}") from None
                seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
                pos = match.end()
            if pos != len(text) or pos == 0:
                raise ValueError(f"Invalid duration: {value!r}") from None
    else:
        raise ValueError(f"Invalid duration: {value!r}")

    if seconds < 0:
        raise ValueError(f"Duration cannot be negative: {value!r}")
    return seconds


def format_duration(seconds: float) -> str:
    """Render seconds in the same syntax parse_duration accepts."""
    if seconds == 0:
        return "0s"
    remaining = seconds
    parts = []
    for unit, size in (("h", 3600.0), ("m", 60.0)):
        whole = int(remaining // size)
        if whole:
            parts.append(f"{whole}{unit}")
            remaining -= whole * size
    if remaining or not parts:
        parts.append(f"{remaining:g}s")
    return "".join(parts)


__all__ = ["LogLevel", "LogFormat", "DurationLike", "parse_duration", "format_duration"]
