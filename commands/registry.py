"""
Command Registry
----------------
Immutable catalog of operational commands with typed parameter schemas.
Lookup, category grouping, search and parameter validation.

No I/O. No logging. No mutation after construction.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union


# Values a caller may submit for a parameter. None means "absent".
ParameterValue = Union[str, int, float, bool]


class ParameterKind(str, Enum):
    """Supported parameter kinds."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"


@dataclass(frozen=True)
class CommandParameter:
    """Definition of a command parameter."""
    id: str
    name: str
    kind: ParameterKind
    required: bool = False
    default: Optional[ParameterValue] = None
    options: Tuple[str, ...] = ()
    description: str = ""
    placeholder: str = ""

    def __post_init__(self):
        if self.kind == ParameterKind.SELECT and not self.options:
            raise ValueError(f"Select parameter '{self.id}' has no options")
        if self.kind != ParameterKind.SELECT and self.options:
            raise ValueError(f"Parameter '{self.id}' has options but is not a select")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value,
            "required": self.required,
            "description": self.description,
        }
        if self.default is not None:
            data["default"] = self.default
        if self.options:
            data["options"] = list(self.options)
        if self.placeholder:
            data["placeholder"] = self.placeholder
        return data


@dataclass(frozen=True)
class Command:
    """Definition of a command from the catalog."""
    id: str
    name: str
    description: str
    category: str
    parameters: Tuple[CommandParameter, ...] = ()
    dangerous: bool = False
    icon: Optional[str] = None
    timeout_ms: Optional[int] = None
    requires_confirmation: bool = False

    def __post_init__(self):
        seen = set()
        for param in self.parameters:
            if param.id in seen:
                raise ValueError(f"Command '{self.id}' has duplicate parameter id '{param.id}'")
            seen.add(param.id)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": [p.to_dict() for p in self.parameters],
            "dangerous": self.dangerous,
            "requires_confirmation": self.requires_confirmation,
        }
        if self.icon:
            data["icon"] = self.icon
        if self.timeout_ms is not None:
            data["timeout_ms"] = self.timeout_ms
        return data

    def __repr__(self) -> str:
        return f"Command(id={self.id}, name={self.name})"


@dataclass(frozen=True)
class CategoryInfo:
    """Display metadata for a command category."""
    label: str
    description: str
    icon: str


class KnownCategory(Enum):
    """Categories with dedicated display metadata."""
    SYSTEM = ("system", "System administration and diagnostics", "⚙️")
    NETWORK = ("network", "Network operations and diagnostics", "🌐")
    PROCESSES = ("processes", "Process management and monitoring", "⚡")
    STORAGE = ("storage", "Disk and storage operations", "💾")
    DEVELOPMENT = ("development", "Development and version control tools", "🔀")
    CONTAINERS = ("containers", "Docker and container management", "🐳")
    ENVIRONMENT = ("environment", "Environment configuration and variables", "🌍")
    PERFORMANCE = ("performance", "Performance monitoring and benchmarking", "⚡")

    def __init__(self, key: str, description: str, icon: str):
        self.key = key
        self.description = description
        self.icon = icon

    @classmethod
    def lookup(cls, category: str) -> Optional["KnownCategory"]:
        for known in cls:
            if known.key == category:
                return known
        return None


FALLBACK_DESCRIPTION = "Commands"
FALLBACK_ICON = "📦"


def format_category_label(category: str) -> str:
    """Title-case the underscore separated words of a category key."""
    return " ".join(word[:1].upper() + word[1:] for word in category.split("_"))


def describe_category(category: str) -> CategoryInfo:
    """
    Resolve display metadata for a category.
    Unknown categories get the generic fallback, never an error.
    """
    label = format_category_label(category)
    known = KnownCategory.lookup(category)
    if known is None:
        return CategoryInfo(label=label, description=FALLBACK_DESCRIPTION, icon=FALLBACK_ICON)
    return CategoryInfo(label=label, description=known.description, icon=known.icon)


@dataclass(frozen=True)
class CommandGroup:
    """Commands sharing a category, sorted by name. Derived, never stored."""
    category: str
    label: str
    description: str
    icon: str
    commands: Tuple[Command, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "commands": [c.to_dict() for c in self.commands],
        }


@dataclass
class ValidationResult:
    """Outcome of validating submitted parameter values."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _is_number(value: Any) -> bool:
    # bool is an int subclass but is not a number here
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_option_string(value: Any) -> str:
    """String form of a submitted value, following JSON conventions."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CommandRegistry:
    """
    Read-only registry of command definitions.

    Built once from a sequence of commands and never mutated afterwards,
    so concurrent reads need no locking. A duplicate id replaces the
    earlier entry (last write wins).
    """

    def __init__(self, commands: Iterable[Command] = ()):
        self._commands: Dict[str, Command] = {}
        for cmd in commands:
            self._commands[cmd.id] = cmd

    def get_command(self, command_id: str) -> Optional[Command]:
        """Get a command by ID, or None if it does not exist."""
        return self._commands.get(command_id)

    def get_all_commands(self) -> List[Command]:
        """All commands in catalog order."""
        return list(self._commands.values())

    def get_commands_by_category(self) -> List[CommandGroup]:
        """Group commands by category, in order of first appearance."""
        buckets: Dict[str, List[Command]] = {}
        for cmd in self._commands.values():
            buckets.setdefault(cmd.category, []).append(cmd)

        groups = []
        for category, commands in buckets.items():
            info = describe_category(category)
            groups.append(CommandGroup(
                category=category,
                label=info.label,
                description=info.description,
                icon=info.icon,
                commands=tuple(sorted(commands, key=lambda c: c.name)),
            ))
        return groups

    def search_commands(self, query: str) -> List[Command]:
        """
        Case-insensitive substring match on name, description or category.
        Pure filter: what an empty query means is up to the caller.
        """
        needle = query.lower()
        return [
            cmd for cmd in self._commands.values()
            if needle in cmd.name.lower()
            or needle in cmd.description.lower()
            or needle in cmd.category.lower()
        ]

    def get_dangerous_commands(self) -> List[Command]:
        """Commands flagged as dangerous."""
        return [cmd for cmd in self._commands.values() if cmd.dangerous]

    def validate_parameters(
        self,
        command: Command,
        values: Mapping[str, Optional[ParameterValue]]
    ) -> ValidationResult:
        """
        Validate submitted values against a command's parameters.
        Every violation is collected, in parameter declaration order.
        """
        errors: List[str] = []

        for param in command.parameters:
            value = values.get(param.id)

            if param.required and (value is None or value == ""):
                errors.append(f'Parameter "{param.name}" is required')
                continue

            if value is None:
                continue

            if param.kind == ParameterKind.NUMBER and not _is_number(value):
                errors.append(f'Parameter "{param.name}" must be a number')
            elif param.kind == ParameterKind.BOOLEAN and not isinstance(value, bool):
                errors.append(f'Parameter "{param.name}" must be a boolean')
            elif param.kind == ParameterKind.SELECT and _as_option_string(value) not in param.options:
                errors.append(
                    f'Parameter "{param.name}" must be one of: {", ".join(param.options)}'
                )

        return ValidationResult(valid=not errors, errors=errors)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, command_id: str) -> bool:
        return command_id in self._commands
