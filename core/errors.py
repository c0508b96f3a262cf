"""
Error Handling Module
---------------------
Typed errors with classification and user-facing messages.
Nothing here is retried: every failure is deterministic or left to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, List, Optional
import logging
import traceback


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    NOT_FOUND = auto()            # Unknown command or history entry
    VALIDATION_ERROR = auto()     # Submitted parameters rejected
    CONFIGURATION_ERROR = auto()  # Malformed catalog or missing settings
    AUTH_ERROR = auto()           # Missing or unknown credentials
    PERMISSION_ERROR = auto()     # Authenticated but not allowed
    RATE_LIMITED = auto()         # Too many requests from one client
    DISPATCH_FAILURE = auto()     # Discord rejected or failed the call
    NETWORK_ERROR = auto()        # Network/API error
    TIMEOUT_ERROR = auto()        # Operation timed out
    SYSTEM_ERROR = auto()         # Internal system error


@dataclass
class ControllerError:
    """
    Structured error with metadata.

    Used for consistent error handling and reporting.
    """
    category: ErrorCategory
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.now)
    stack_trace: Optional[str] = None
    recoverable: bool = True

    @classmethod
    def from_exception(
        cls,
        exception: Exception,
        category: ErrorCategory,
        details: Optional[Dict] = None
    ) -> "ControllerError":
        """Create error from an exception."""
        return cls(
            category=category,
            message=str(exception),
            details=details,
            stack_trace=traceback.format_exc(),
            recoverable=category not in {
                ErrorCategory.SYSTEM_ERROR,
                ErrorCategory.CONFIGURATION_ERROR,
            }
        )

    def __repr__(self) -> str:
        return f"ControllerError({self.category.name}: {self.message})"


class ControllerException(Exception):
    """Base exception carrying a ControllerError record."""

    category = ErrorCategory.SYSTEM_ERROR

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.error = ControllerError(
            category=self.category,
            message=message,
            details=details or None,
            recoverable=self.category not in {
                ErrorCategory.SYSTEM_ERROR,
                ErrorCategory.CONFIGURATION_ERROR,
            }
        )


class CommandNotFound(ControllerException):
    category = ErrorCategory.NOT_FOUND

    def __init__(self, command_id: str):
        super().__init__("Command not found", command_id=command_id)
        self.command_id = command_id


class ValidationFailed(ControllerException):
    """One or more parameter constraints violated. Carries every message."""

    category = ErrorCategory.VALIDATION_ERROR

    def __init__(self, errors, **details):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors), **details)


class ConfigurationError(ControllerException):
    """Unrecoverable start-up failure."""
    category = ErrorCategory.CONFIGURATION_ERROR


class CatalogError(ConfigurationError):
    """Malformed command catalog."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message, source=source)
        self.source = source


class PermissionDenied(ControllerException):
    category = ErrorCategory.PERMISSION_ERROR


class DispatchFailed(ControllerException):
    category = ErrorCategory.DISPATCH_FAILURE


class DiscordUnreachable(DispatchFailed):
    """Discord could not be contacted at all."""
    category = ErrorCategory.NETWORK_ERROR


class DiscordTimeout(DispatchFailed):
    category = ErrorCategory.TIMEOUT_ERROR


class ErrorHandler:
    """
    Central error handler with logging and user messages.
    """

    def __init__(self, max_history: int = 100):
        self._logger = logging.getLogger("controller.errors")
        self._error_history: List[ControllerError] = []
        self._max_history = max_history

    def handle(self, error: ControllerError) -> str:
        """
        Handle an error and return user-friendly message.
        """
        self._log_error(error)

        self._error_history.append(error)
        if len(self._error_history) > self._max_history:
            self._error_history.pop(0)

        return self._get_user_message(error)

    def _log_error(self, error: ControllerError) -> None:
        """Log error with appropriate level."""
        level_map = {
            ErrorCategory.NOT_FOUND: logging.INFO,
            ErrorCategory.VALIDATION_ERROR: logging.INFO,
            ErrorCategory.AUTH_ERROR: logging.WARNING,
            ErrorCategory.PERMISSION_ERROR: logging.WARNING,
            ErrorCategory.RATE_LIMITED: logging.WARNING,
            ErrorCategory.DISPATCH_FAILURE: logging.ERROR,
            ErrorCategory.NETWORK_ERROR: logging.ERROR,
            ErrorCategory.TIMEOUT_ERROR: logging.ERROR,
            ErrorCategory.CONFIGURATION_ERROR: logging.CRITICAL,
            ErrorCategory.SYSTEM_ERROR: logging.CRITICAL,
        }

        level = level_map.get(error.category, logging.ERROR)

        self._logger.log(
            level,
            f"{error.category.name}: {error.message}",
            extra={"details": error.details}
        )

        if error.stack_trace and level >= logging.ERROR:
            self._logger.debug(f"Stack trace:\n{error.stack_trace}")

    def _get_user_message(self, error: ControllerError) -> str:
        """Generate user-friendly error message."""
        messages = {
            ErrorCategory.NOT_FOUND: error.message,
            ErrorCategory.VALIDATION_ERROR: error.message,
            ErrorCategory.CONFIGURATION_ERROR: "Server configuration error",
            ErrorCategory.AUTH_ERROR: "Unauthorized: Please log in",
            ErrorCategory.PERMISSION_ERROR: error.message,
            ErrorCategory.RATE_LIMITED: "Too many requests, please try again later",
            ErrorCategory.DISPATCH_FAILURE: error.message,
            ErrorCategory.NETWORK_ERROR: "Could not reach Discord. Please try again.",
            ErrorCategory.TIMEOUT_ERROR: "Discord took too long to respond. Please try again.",
            ErrorCategory.SYSTEM_ERROR: "Internal server error",
        }

        return messages.get(error.category, "An error occurred.")

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        stats = {}
        for error in self._error_history:
            key = error.category.name
            stats[key] = stats.get(key, 0) + 1
        return stats

    def clear_history(self) -> None:
        """Clear error history."""
        self._error_history.clear()
