# Core module - Error taxonomy and command dispatch
# The dispatcher is the ONLY path from a validated command to Discord

from .errors import (
    ErrorHandler, ControllerError, ErrorCategory, ControllerException,
    CommandNotFound, ValidationFailed, ConfigurationError, CatalogError,
    PermissionDenied, DispatchFailed, DiscordUnreachable, DiscordTimeout,
)

__all__ = [
    "ErrorHandler", "ControllerError", "ErrorCategory", "ControllerException",
    "CommandNotFound", "ValidationFailed", "ConfigurationError", "CatalogError",
    "PermissionDenied", "DispatchFailed", "DiscordUnreachable", "DiscordTimeout",
]
