"""
Command Dispatcher
------------------
Relays validated commands to Discord and reads the bot's replies.

Flow: lookup -> validate -> format embed -> webhook -> history.
Fire-and-forget: a successful send says nothing about remote execution.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import logging
import re
import secrets
import string
import time

from api.client import APIResponse, APIStatus, DiscordClient
from commands.registry import Command, CommandRegistry, ParameterValue
from infra.history import ExecutionStatus, HistoryEntry, HistoryStore
from .errors import (
    CommandNotFound, DiscordTimeout, DiscordUnreachable, DispatchFailed,
    PermissionDenied, ValidationFailed,
)


EMBED_COLOR = 0x00FF41
MAX_FIELD_LENGTH = 1024
MAX_POLL_LIMIT = 100
DEFAULT_POLL_LIMIT = 10

_BASE36 = string.digits + string.ascii_lowercase
_CHANNEL_ID = re.compile(r"^\d+$")


def generate_request_id() -> str:
    """req_<epoch ms>_<9 base36 chars>"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def _field_value(value: ParameterValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_command_embed(
    command: Command,
    request_id: str,
    parameters: Mapping[str, Optional[ParameterValue]],
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Build the Discord webhook payload announcing a command."""
    fields = [
        {"name": key, "value": _field_value(value)[:MAX_FIELD_LENGTH], "inline": True}
        for key, value in parameters.items()
        if value is not None
    ]

    embed: Dict[str, Any] = {
        "title": f"🎮 Command Executed: {command.name}",
        "description": f"Request ID: `{request_id}`",
        "color": EMBED_COLOR,
        "footer": {"text": (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S %Z")},
    }
    if fields:
        embed["fields"] = fields

    return {"embeds": [embed]}


_FAILURE_BY_STATUS = {
    APIStatus.NETWORK_ERROR: DiscordUnreachable,
    APIStatus.TIMEOUT: DiscordTimeout,
}


def _dispatch_error(response: APIResponse, message: str, **details) -> DispatchFailed:
    """Exception matching how a Discord call failed."""
    error_type = _FAILURE_BY_STATUS.get(response.status, DispatchFailed)
    return error_type(message, status_code=response.status_code, **details)


def clamp_limit(limit: Any, default: int, maximum: int) -> int:
    """Coerce a user supplied limit into 1..maximum."""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = default
    if value == 0:
        value = default
    return min(max(1, value), maximum)


@dataclass
class DispatchResult:
    """Outcome of a successful dispatch."""
    request_id: str
    command_id: str
    message: str = "Command sent successfully"


class CommandDispatcher:
    """
    Sends commands to Discord on behalf of authenticated users.

    Rules:
    - Every command is validated before it leaves the process
    - Dangerous commands are logged, never blocked here
    - Every dispatch attempt lands in the user's history
    """

    def __init__(
        self,
        registry: CommandRegistry,
        client: DiscordClient,
        history: HistoryStore,
        channel_id: Optional[str] = None
    ):
        self._registry = registry
        self._client = client
        self._history = history
        self._channel_id = channel_id
        self._logger = logging.getLogger("controller.core.dispatcher")

    async def execute(
        self,
        command_id: str,
        parameters: Optional[Mapping[str, Optional[ParameterValue]]],
        user: str
    ) -> DispatchResult:
        """
        Validate and send a command.

        Raises ValidationFailed, CommandNotFound or DispatchFailed.
        """
        if not command_id:
            raise ValidationFailed("Missing commandId")

        command = self._registry.get_command(command_id)
        if command is None:
            raise CommandNotFound(command_id)

        parameters = dict(parameters or {})
        validation = self._registry.validate_parameters(command, parameters)
        if not validation.valid:
            raise ValidationFailed(validation.errors, command_id=command_id)

        if command.dangerous:
            self._logger.warning(
                f"Dangerous command executed: {command_id} by user {user}",
                extra={"command_id": command_id, "user": user}
            )

        request_id = generate_request_id()
        start = int(time.time() * 1000)
        payload = format_command_embed(command, request_id, parameters)

        response = await self._client.send_webhook(payload)
        end = int(time.time() * 1000)

        if not response.success:
            error = response.error or "Failed to send command to Discord"
            self._history.save(user, HistoryEntry(
                id=request_id,
                command_id=command.id,
                command_name=command.name,
                status=ExecutionStatus.ERROR,
                error=error,
                start_time=start,
                end_time=end,
                duration=end - start,
            ))
            raise _dispatch_error(response, error, command_id=command_id)

        self._history.save(user, HistoryEntry(
            id=request_id,
            command_id=command.id,
            command_name=command.name,
            status=ExecutionStatus.PENDING,
            start_time=start,
        ))
        self._logger.info(
            f"Dispatched {command_id} as {request_id}",
            extra={"command_id": command_id, "user": user}
        )
        return DispatchResult(request_id=request_id, command_id=command.id)

    async def poll_response(
        self,
        channel_id: str,
        limit: Any = DEFAULT_POLL_LIMIT,
        after: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch recent messages from the configured reply channel.

        Raises PermissionDenied, ValidationFailed or DispatchFailed.
        """
        if not self._channel_id:
            self._logger.error("DISCORD_CHANNEL_ID not configured")
            raise DispatchFailed("Server configuration error")

        if not channel_id:
            raise ValidationFailed("Missing channelId")

        # Only the configured channel may be read
        if str(channel_id) != self._channel_id:
            raise PermissionDenied("Invalid channel", channel_id=channel_id)

        if not _CHANNEL_ID.match(str(channel_id)):
            raise ValidationFailed("Invalid channelId format")

        response = await self._client.poll_messages(
            str(channel_id),
            limit=clamp_limit(limit, DEFAULT_POLL_LIMIT, MAX_POLL_LIMIT),
            after=after or None
        )
        if not response.success:
            raise _dispatch_error(response, response.error or "Failed to poll Discord")

        return list(response.data or [])
