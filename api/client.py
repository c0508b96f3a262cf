"""
Discord API Client
------------------
Webhook delivery and channel polling for the command relay.
Secrets come from configuration only and never leave the server.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, Optional
import logging

import httpx


DISCORD_API_BASE = "https://discord.com/api/v10"


class APIStatus(Enum):
    """Status of an API response."""
    SUCCESS = auto()
    RATE_LIMITED = auto()
    AUTH_ERROR = auto()
    NOT_FOUND = auto()
    SERVER_ERROR = auto()
    TIMEOUT = auto()
    NETWORK_ERROR = auto()


@dataclass
class DiscordConfig:
    """Configuration for the Discord client."""
    webhook_url: Optional[str] = None
    bot_token: Optional[str] = None
    api_base: str = DISCORD_API_BASE
    timeout_seconds: float = 5.0
    user_agent: str = "MaxBotController/1.0"


@dataclass
class APIResponse:
    """Response from an API call."""
    status: APIStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    status_code: int = 0
    response_time_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == APIStatus.SUCCESS


class DiscordClient:
    """
    Discord client for sending commands and reading bot replies.

    Rules:
    - Never raises: every failure becomes an APIResponse
    - Unconfigured secrets fail without touching the network
    - One HTTP client per request
    """

    def __init__(
        self,
        config: DiscordConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self._transport = transport
        self._logger = logging.getLogger("controller.api.discord")

        if not config.webhook_url:
            self._logger.warning("Discord webhook URL not configured")
        if not config.bot_token:
            self._logger.warning("Discord bot token not configured")

    @property
    def webhook_configured(self) -> bool:
        return bool(self.config.webhook_url)

    @property
    def bot_configured(self) -> bool:
        return bool(self.config.bot_token)

    def _bot_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bot {self.config.bot_token}",
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }

    async def send_webhook(self, payload: Dict[str, Any]) -> APIResponse:
        """Post a message payload to the configured webhook."""
        if not self.webhook_configured:
            return APIResponse(
                status=APIStatus.AUTH_ERROR,
                error="Discord webhook not configured"
            )

        response = await self._request(
            "POST",
            self.config.webhook_url,
            json=payload,
            headers={"Content-Type": "application/json"}
        )
        if not response.success:
            self._logger.error(f"Discord webhook error: {response.status_code} {response.error}")
            if response.status_code:
                response.error = f"Discord error: {response.status_code}"
        return response

    async def poll_messages(
        self,
        channel_id: str,
        limit: Optional[int] = None,
        after: Optional[str] = None
    ) -> APIResponse:
        """Fetch recent messages from a channel. data is a list of messages."""
        if not self.bot_configured:
            return APIResponse(
                status=APIStatus.AUTH_ERROR,
                error="Bot token not configured"
            )

        params: Dict[str, str] = {}
        if limit:
            params["limit"] = str(limit)
        if after:
            params["after"] = after

        response = await self._request(
            "GET",
            f"{self.config.api_base}/channels/{channel_id}/messages",
            params=params,
            headers=self._bot_headers()
        )
        if response.success and response.data is None:
            response.data = []
        elif not response.success and response.status_code:
            response.error = f"Discord API error: {response.status_code}"
        return response

    async def get_channel_info(self, channel_id: str) -> APIResponse:
        """Look up a channel. data is {"id", "name"}."""
        if not self.bot_configured:
            return APIResponse(
                status=APIStatus.AUTH_ERROR,
                error="Bot token not configured"
            )

        response = await self._request(
            "GET",
            f"{self.config.api_base}/channels/{channel_id}",
            headers=self._bot_headers()
        )
        if response.success:
            data = response.data or {}
            response.data = {"id": data.get("id"), "name": data.get("name")}
        elif response.status_code:
            response.error = f"Discord API error: {response.status_code}"
        return response

    async def test_webhook(self) -> bool:
        """Send a connection test message through the webhook."""
        response = await self.send_webhook({
            "content": "🟢 MaxBot Controller connection test successful"
        })
        return response.success

    async def test_bot(self) -> bool:
        """Check that the bot token is accepted."""
        if not self.bot_configured:
            return False
        response = await self._request(
            "GET",
            f"{self.config.api_base}/users/@me",
            headers=self._bot_headers()
        )
        return response.success

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict] = None,
        json: Optional[Dict] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> APIResponse:
        """Make an HTTP request with error handling."""
        start_time = datetime.now()

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport
            ) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json,
                    headers=headers
                )

                response_time = (datetime.now() - start_time).total_seconds() * 1000

                if 200 <= response.status_code < 300:
                    return APIResponse(
                        status=APIStatus.SUCCESS,
                        data=response.json() if response.content else None,
                        status_code=response.status_code,
                        response_time_ms=response_time
                    )
                elif response.status_code == 429:
                    return APIResponse(
                        status=APIStatus.RATE_LIMITED,
                        error="Rate limit exceeded",
                        status_code=response.status_code,
                        response_time_ms=response_time
                    )
                elif response.status_code in (401, 403):
                    return APIResponse(
                        status=APIStatus.AUTH_ERROR,
                        error="Authentication failed",
                        status_code=response.status_code,
                        response_time_ms=response_time
                    )
                elif response.status_code == 404:
                    return APIResponse(
                        status=APIStatus.NOT_FOUND,
                        error="Resource not found",
                        status_code=response.status_code,
                        response_time_ms=response_time
                    )
                else:
                    return APIResponse(
                        status=APIStatus.SERVER_ERROR,
                        error=f"Unexpected status: {response.status_code}",
                        status_code=response.status_code,
                        response_time_ms=response_time
                    )

        except httpx.TimeoutException:
            return APIResponse(
                status=APIStatus.TIMEOUT,
                error="Request timed out"
            )
        except httpx.NetworkError as e:
            return APIResponse(
                status=APIStatus.NETWORK_ERROR,
                error=f"Network error: {e}"
            )
        except (httpx.HTTPError, ValueError) as e:
            self._logger.error(f"Request failed: {e}")
            return APIResponse(
                status=APIStatus.NETWORK_ERROR,
                error=str(e)
            )
