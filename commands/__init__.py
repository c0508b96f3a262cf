# Commands module - Command catalog, lookup and parameter validation
# This module does NOT dispatch commands, only describes and validates them
# No network I/O, no logging inside the registry

from .registry import (
    CommandRegistry, Command, CommandParameter, CommandGroup,
    ParameterKind, ParameterValue, ValidationResult,
    CategoryInfo, KnownCategory, describe_category,
)
from .catalog import load_catalog, parse_catalog, default_catalog_path

__all__ = [
    "CommandRegistry", "Command", "CommandParameter", "CommandGroup",
    "ParameterKind", "ParameterValue", "ValidationResult",
    "CategoryInfo", "KnownCategory", "describe_category",
    "load_catalog", "parse_catalog", "default_catalog_path",
]
