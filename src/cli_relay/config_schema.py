"""
JSON schemas for configuration validation.
"""

# Seconds as a number, or a unit-suffixed duration string ("30s", "1h30m").
DURATION_SCHEMA = {
    "anyOf": [
        {"type": "number", "minimum": 0},
        {"type": "string", "pattern": r"^(\d+(\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)?((\d+(\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h))*$"},
    ]
}

JOBS_SCHEMA = {
    "type": "object",
    "properties": {
        "max_concurrent": {"type": "integer", "minimum": 1},
        "default_ttl": DURATION_SCHEMA,
        "cleanup_interval": DURATION_SCHEMA,
        "max_history_size": {"type": "integer", "minimum": 0},
        "evict_active": {"type": "boolean"},
    },
    "additionalProperties": False,
}

EXECUTOR_SCHEMA = {
    "type": "object",
    "properties": {
        "binary": {"type": "string", "minLength": 1},
        "working_dir": {"type": "string"},
        "timeout": DURATION_SCHEMA,
        "environment": {
            "type": "object",
            "additionalProperties": {"type": "string"},
        },
        "output_file_env": {"type": ["string", "null"]},
        "allowed_commands": {
            "type": ["array", "null"],
            "items": {"type": "string", "minLength": 1},
            "minItems": 1,
        },
    },
    "additionalProperties": False,
}

WEBHOOKS_SCHEMA = {
    "type": "object",
    "properties": {
        "enabled": {"type": "boolean"},
        "secret": {"type": "string"},
        "max_retries": {"type": "integer", "minimum": 0},
        "retry_backoff": DURATION_SCHEMA,
        "timeout": DURATION_SCHEMA,
        "user_agent": {"type": "string"},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_file": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "jobs": JOBS_SCHEMA,
        "executor": EXECUTOR_SCHEMA,
        "webhooks": WEBHOOKS_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    # Sections owned by the HTTP layer (server, auth, security) pass through.
    "additionalProperties": True,
}
