# Infrastructure module - Configuration, logging, auth and history storage
# FastAPI service bus lives in infra.service_bus, the runner in infra.server

from .config import (
    ConfigManager, SecretManager, ControllerSettings,
    validate_environment, get_environment_status, parse_api_tokens
)
from .logging import (
    get_logger, configure_logging, RequestContext,
    get_request_id, generate_request_id
)
from .history import HistoryStore, HistoryEntry, HistoryStats, ExecutionStatus
from .auth import TokenAuthenticator, Principal, AuthError

__all__ = [
    # Config
    "ConfigManager",
    "SecretManager",
    "ControllerSettings",
    "validate_environment",
    "get_environment_status",
    "parse_api_tokens",
    # Logging
    "get_logger",
    "configure_logging",
    "RequestContext",
    "get_request_id",
    "generate_request_id",
    # History
    "HistoryStore",
    "HistoryEntry",
    "HistoryStats",
    "ExecutionStatus",
    # Auth
    "TokenAuthenticator",
    "Principal",
    "AuthError",
]
