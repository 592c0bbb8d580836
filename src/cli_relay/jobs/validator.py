"""
Command allow-list and request validation.

Every job request passes through the CommandValidator before a JobRecord is
created, so a rejected command never leaves a partial job behind.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from ..errors import CommandNotAllowedError, MissingArgumentError

# CLI verbs the relay is willing to proxy.
DEFAULT_ALLOWED_COMMANDS: tuple[str, ...] = (
    "new", "tell", "chat", "continue", "load", "ls", "plans", "cd",
    "apply", "build", "log", "convo", "diff", "current", "config",
    "models", "set-config", "set-model", "branches", "checkout",
    "archive", "unarchive", "usage", "version", "debug", "stop",
    "rewind", "reject", "clear", "summary", "delete-plan",
)


@dataclass(frozen=True)
class CommandArg:
    name: str
    description: str
    required: bool = False
    type: str = "string"


@dataclass(frozen=True)
class CommandFlag:
    name: str
    description: str
    type: str = "string"
    short: str | None = None
    default: Any = None


@dataclass(frozen=True)
class CommandExample:
    description: str
    request: str
    response: str


@dataclass(frozen=True)
class CommandSpec:
    """Documentation and argument contract for one proxied command."""
    name: str
    description: str = ""
    args: tuple[CommandArg, ...] = field(default_factory=tuple)
    flags: tuple[CommandFlag, ...] = field(default_factory=tuple)
    examples: tuple[CommandExample, ...] = field(default_factory=tuple)

    @property
    def required_args(self) -> tuple[CommandArg, ...]:
        return tuple(a for a in self.args if a.required)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["args"] = [asdict(a) for a in self.args]
        data["flags"] = [{k: v for k, v in asdict(f).items() if v is not None} for f in self.flags]
        data["examples"] = [asdict(e) for e in self.examples]
        return data


DEFAULT_COMMAND_SPECS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name="new",
        description="Start a new plan",
        args=(CommandArg("name", "Name of the new plan"),),
        flags=(CommandFlag("context-dir", "Base directory to auto-load context from", default="."),),
        examples=(CommandExample(
            "Create a new plan",
            '{"command": "new", "args": ["my-plan"]}',
            '{"id": "123", "command": "new", "status": "completed"}',
        ),),
    ),
    CommandSpec(
        name="tell",
        description="Send a prompt for the current plan",
        args=(CommandArg("prompt", "The prompt to send", required=True),),
        examples=(CommandExample(
            "Send a prompt",
            '{"command": "tell", "args": ["Add a login form to the homepage"]}',
            '{"id": "124", "command": "tell", "status": "running"}',
        ),),
    ),
    CommandSpec(
        name="load",
        description="Load context from various inputs",
        args=(CommandArg("files", "Files or URLs to load", required=True),),
        flags=(
            CommandFlag("recursive", "Search directories recursively", type="boolean", short="r", default=False),
            CommandFlag("note", "Add a note to the context", short="n"),
        ),
        examples=(CommandExample(
            "Load a file",
            '{"command": "load", "args": ["src/main.js"]}',
            '{"id": "125", "command": "load", "status": "completed"}',
        ),),
    ),
    CommandSpec(
        name="plans",
        description="List plans",
        flags=(CommandFlag("archived", "List archived plans", type="boolean", short="a", default=False),),
        examples=(CommandExample(
            "List all plans",
            '{"command": "plans"}',
            '{"id": "126", "command": "plans", "status": "completed"}',
        ),),
    ),
    CommandSpec(
        name="apply",
        description="Apply pending plan changes",
        examples=(CommandExample(
            "Apply changes",
            '{"command": "apply"}',
            '{"id": "127", "command": "apply", "status": "running"}',
        ),),
    ),
    CommandSpec(
        name="config",
        description="Show plan configuration",
        examples=(CommandExample(
            "Show config",
            '{"command": "config"}',
            '{"id": "128", "command": "config", "status": "completed"}',
        ),),
    ),
)


class CommandValidator:
    """Fixed allow-list of command names plus per-command argument contracts."""

    def __init__(
        self,
        allowed: Iterable[str] | None = None,
        specs: Iterable[CommandSpec] | None = None,
    ) -> None:
        self._allowed = frozenset(allowed if allowed is not None else DEFAULT_ALLOWED_COMMANDS)
        spec_list = DEFAULT_COMMAND_SPECS if specs is None else tuple(specs)
        self._specs = {s.name: s for s in spec_list if s.name in self._allowed}

    @property
    def allowed(self) -> frozenset[str]:
        return self._allowed

    def is_allowed(self, command: str) -> bool:
        return command in self._allowed

    def validate(self, command: str) -> None:
        """Raise CommandNotAllowedError unless command is on the allow-list."""
        if command not in self._allowed:
            raise CommandNotAllowedError(command)

    def validate_request(self, command: str, args: Iterable[str]) -> None:
        """Allow-list check plus required positional arguments.

        Raises:
            CommandNotAllowedError: Unknown command
            MissingArgumentError: A required argument is absent or blank
        """
        self.validate(command)
        spec = self._specs.get(command)
        if spec is None:
            return
        args = list(args)
        for position, arg in enumerate(spec.args):
            if not arg.required:
                continue
            if position >= len(args) or not str(args[position]).strip():
                raise MissingArgumentError(command, arg.name)

    def describe(self, command: str) -> CommandSpec | None:
        """Documentation for an allowed command; bare entry if undocumented."""
        if command not in self._allowed:
            return None
        return self._specs.get(command) or CommandSpec(name=command)

    def list_commands(self) -> list[CommandSpec]:
        """Documented commands, in declaration order."""
        return list(self._specs.values())


__all__ = [
    "DEFAULT_ALLOWED_COMMANDS",
    "DEFAULT_COMMAND_SPECS",
    "CommandArg",
    "CommandFlag",
    "CommandExample",
    "CommandSpec",
    "CommandValidator",
]
