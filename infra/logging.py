"""
Controller Centralized Logging
------------------------------
Structured logging with request_id propagation for request traceability.

Design:
- Every HTTP request or CLI invocation gets a unique request_id
- request_id propagates through: Service bus -> Dispatcher -> Discord client
- Console output through Rich, file output as JSON lines
- Severity discipline: INFO=state, WARNING=recoverable, ERROR=abort

Usage:
    from infra.logging import get_logger, RequestContext

    logger = get_logger("core.dispatcher")

    with RequestContext() as request_id:
        logger.info("Dispatching command")
"""

import contextvars
import json
import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.logging import RichHandler

ROOT_LOGGER = "controller"
LOG_FILE = "controller.log"

_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    """Generate a unique request ID for log correlation."""
    return f"rid_{uuid.uuid4().hex[:12]}"


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return _request_id_var.get()


class RequestContext:
    """
    Binds a request id for the duration of a block.

    Usage:
        with RequestContext(request.headers.get("x-request-id")) as request_id:
            ...
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id or generate_request_id()
        self._reset_token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._reset_token = _request_id_var.set(self.request_id)
        return self.request_id

    def __exit__(self, *exc) -> None:
        if self._reset_token is not None:
            _request_id_var.reset(self._reset_token)
            self._reset_token = None


class RequestIdFilter(logging.Filter):
    """Stamps request_id on records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the controller's extra fields."""

    EXTRA_FIELDS = ("command_id", "user", "status_code", "details", "client")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        entry.update({
            key: getattr(record, key)
            for key in self.EXTRA_FIELDS
            if hasattr(record, key)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def json_file_handler(
    log_dir: Path,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3
) -> logging.Handler:
    """Size-rotated JSON-lines handler writing <log_dir>/controller.log."""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JSONFormatter())
    return handler


_configured = False


def configure_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True,
    file: bool = True,
) -> None:
    """
    Attach handlers to the controller logger. Only the first call has effect.

    Args:
        level: Console level; the file handler always records DEBUG
        log_dir: Directory for controller.log (default ./logs)
        console: Rich console output
        file: JSON-lines file output
    """
    global _configured

    if _configured:
        return

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if file else level)

    request_filter = RequestIdFilter()
    handlers = []

    if console:
        rich_handler = RichHandler(rich_tracebacks=True, show_path=False)
        rich_handler.setLevel(level)
        handlers.append(rich_handler)

    if file:
        file_handler = json_file_handler(Path(log_dir or "logs"))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(request_filter)
        logger.addHandler(handler)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger under the controller namespace ('controller.' is prepended if missing)."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
