"""
Dispatcher Tests
----------------
Validation gate, embed formatting, history recording and poll guards.
"""

import asyncio
import json
import re
from datetime import datetime, timezone

import httpx
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from api.client import DiscordClient, DiscordConfig
from core.dispatcher import (
    CommandDispatcher, clamp_limit, format_command_embed, generate_request_id
)
from core.errors import (
    CommandNotFound, DiscordTimeout, DiscordUnreachable, DispatchFailed,
    ErrorCategory, PermissionDenied, ValidationFailed,
)
from infra.history import ExecutionStatus, HistoryStore


CHANNEL = "123456"


class FakeDiscord:
    """Records webhook payloads and serves canned poll results."""

    def __init__(self, status=204, messages=None):
        self.status = status
        self.messages = messages or []
        self.payloads = []
        self.polls = []

    def handler(self, request):
        if request.method == "POST":
            self.payloads.append(json.loads(request.content))
            return httpx.Response(self.status)
        self.polls.append(dict(request.url.params))
        return httpx.Response(self.status if self.status >= 400 else 200, json=self.messages)


@pytest.fixture
def discord():
    return FakeDiscord()


@pytest.fixture
def history():
    return HistoryStore()


@pytest.fixture
def dispatcher(registry, discord, history):
    client = DiscordClient(
        DiscordConfig(webhook_url="https://discord.test/hook", bot_token="t", api_base="https://discord.test/api"),
        transport=httpx.MockTransport(discord.handler),
    )
    return CommandDispatcher(registry, client, history, channel_id=CHANNEL)


class TestExecute:

    def test_success_records_pending(self, dispatcher, discord, history):
        result = asyncio.run(dispatcher.execute("bench", {"mode": "fast", "count": 3}, "ops@example.com"))

        assert result.command_id == "bench"
        assert result.message == "Command sent successfully"
        assert len(discord.payloads) == 1

        entries = history.list("ops@example.com")
        assert len(entries) == 1
        assert entries[0].id == result.request_id
        assert entries[0].status == ExecutionStatus.PENDING
        assert entries[0].command_name == "Benchmark"

    def test_missing_command_id(self, dispatcher):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(dispatcher.execute("", {}, "u"))
        assert exc_info.value.errors == ["Missing commandId"]

    def test_unknown_command(self, dispatcher, discord):
        with pytest.raises(CommandNotFound):
            asyncio.run(dispatcher.execute("nope", {}, "u"))
        assert discord.payloads == []

    def test_invalid_parameters_not_sent(self, dispatcher, discord, history):
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(dispatcher.execute("bench", {"mode": "turbo", "count": "x"}, "u"))

        assert len(exc_info.value.errors) == 2
        assert str(exc_info.value) == "; ".join(exc_info.value.errors)
        assert discord.payloads == []
        assert history.list("u") == []

    def test_dangerous_command_logged_not_blocked(self, dispatcher, discord, caplog):
        with caplog.at_level("WARNING", logger="controller.core.dispatcher"):
            asyncio.run(dispatcher.execute("docker_restart", {"target": "web"}, "ops@example.com"))

        assert len(discord.payloads) == 1
        assert "Dangerous command executed: docker_restart by user ops@example.com" in caplog.text

    def test_webhook_failure_records_error(self, registry, history):
        discord = FakeDiscord(status=500)
        client = DiscordClient(
            DiscordConfig(webhook_url="https://discord.test/hook"),
            transport=httpx.MockTransport(discord.handler),
        )
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)

        with pytest.raises(DispatchFailed) as exc_info:
            asyncio.run(dispatcher.execute("sys_status", {}, "u"))

        assert str(exc_info.value) == "Discord error: 500"
        entry = history.list("u")[0]
        assert entry.status == ExecutionStatus.ERROR
        assert entry.error == "Discord error: 500"

    def test_unreachable_discord_classified(self, registry, history):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = DiscordClient(DiscordConfig(webhook_url="https://discord.test/hook"), transport=httpx.MockTransport(handler))
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)

        with pytest.raises(DiscordUnreachable) as exc_info:
            asyncio.run(dispatcher.execute("sys_status", {}, "u"))

        assert isinstance(exc_info.value, DispatchFailed)
        assert exc_info.value.error.category == ErrorCategory.NETWORK_ERROR
        assert history.list("u")[0].status == ExecutionStatus.ERROR

    def test_http_error_stays_dispatch_failure(self, registry, history):
        client = DiscordClient(
            DiscordConfig(webhook_url="https://discord.test/hook"),
            transport=httpx.MockTransport(lambda r: httpx.Response(502)),
        )
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)

        with pytest.raises(DispatchFailed) as exc_info:
            asyncio.run(dispatcher.execute("sys_status", {}, "u"))
        assert exc_info.value.error.category == ErrorCategory.DISPATCH_FAILURE


class TestEmbed:

    def test_embed_shape(self, registry):
        cmd = registry.get_command("bench")
        now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        payload = format_command_embed(cmd, "req_1_abc", {"mode": "fast", "verbose": True, "count": None}, now=now)

        embed = payload["embeds"][0]
        assert embed["title"] == "🎮 Command Executed: Benchmark"
        assert embed["description"] == "Request ID: `req_1_abc`"
        assert embed["color"] == 0x00FF41
        assert embed["fields"] == [
            {"name": "mode", "value": "fast", "inline": True},
            {"name": "verbose", "value": "true", "inline": True},
        ]
        assert embed["footer"]["text"].startswith("2026-01-02 03:04:05")

    def test_no_fields_key_without_parameters(self, registry):
        payload = format_command_embed(registry.get_command("sys_status"), "r", {})
        assert "fields" not in payload["embeds"][0]

    def test_field_value_truncated(self, registry):
        payload = format_command_embed(registry.get_command("docker_restart"), "r", {"target": "x" * 2000})
        assert len(payload["embeds"][0]["fields"][0]["value"]) == 1024

    def test_request_id_format(self):
        assert re.match(r"^req_\d+_[0-9a-z]{9}$", generate_request_id())


class TestPoll:

    def test_poll_returns_messages(self, registry, history):
        discord = FakeDiscord(messages=[{"id": "1", "content": "up 3 days"}])
        client = DiscordClient(
            DiscordConfig(bot_token="t", api_base="https://discord.test/api"),
            transport=httpx.MockTransport(discord.handler),
        )
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)

        messages = asyncio.run(dispatcher.poll_response(CHANNEL, "500", after="9"))

        assert messages == [{"id": "1", "content": "up 3 days"}]
        assert discord.polls == [{"limit": "100", "after": "9"}]

    def test_other_channel_forbidden(self, dispatcher):
        with pytest.raises(PermissionDenied):
            asyncio.run(dispatcher.poll_response("999"))

    def test_missing_channel(self, dispatcher):
        with pytest.raises(ValidationFailed):
            asyncio.run(dispatcher.poll_response(""))

    def test_non_numeric_configured_channel(self, registry, history):
        client = DiscordClient(DiscordConfig(bot_token="t"), transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        dispatcher = CommandDispatcher(registry, client, history, channel_id="general")
        with pytest.raises(ValidationFailed) as exc_info:
            asyncio.run(dispatcher.poll_response("general"))
        assert exc_info.value.errors == ["Invalid channelId format"]

    def test_unconfigured_channel(self, registry, history):
        client = DiscordClient(DiscordConfig(bot_token="t"), transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        dispatcher = CommandDispatcher(registry, client, history)
        with pytest.raises(DispatchFailed):
            asyncio.run(dispatcher.poll_response(CHANNEL))

    def test_api_error(self, registry, history):
        discord = FakeDiscord(status=500)
        client = DiscordClient(
            DiscordConfig(bot_token="t", api_base="https://discord.test/api"),
            transport=httpx.MockTransport(discord.handler),
        )
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)
        with pytest.raises(DispatchFailed) as exc_info:
            asyncio.run(dispatcher.poll_response(CHANNEL))
        assert str(exc_info.value) == "Discord API error: 500"

    def test_poll_timeout_classified(self, registry, history):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = DiscordClient(DiscordConfig(bot_token="t"), transport=httpx.MockTransport(handler))
        dispatcher = CommandDispatcher(registry, client, history, channel_id=CHANNEL)

        with pytest.raises(DiscordTimeout) as exc_info:
            asyncio.run(dispatcher.poll_response(CHANNEL))
        assert exc_info.value.error.category == ErrorCategory.TIMEOUT_ERROR


class TestClampLimit:

    @pytest.mark.parametrize("raw, expected", [
        (None, 10), ("abc", 10), (0, 10), ("0", 10), (-5, 1), (50, 50), ("250", 100),
    ])
    def test_clamp(self, raw, expected):
        assert clamp_limit(raw, 10, 100) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
