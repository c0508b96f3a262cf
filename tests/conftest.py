"""
Controller Test Configuration
-----------------------------
Shared fixtures and configuration for all tests.
"""

import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from commands.registry import (
    Command, CommandParameter, CommandRegistry, ParameterKind
)


# =============================================================================
# Test Isolation: Block Side Effects
# =============================================================================

@pytest.fixture(autouse=True)
def block_real_network(monkeypatch):
    """
    Block real outbound HTTP during tests.

    Clients under test must be given an httpx.MockTransport; anything
    that reaches the real transport raises RuntimeError.
    """
    async def _blocked(*args, **kwargs):
        raise RuntimeError(
            "Real network access is forbidden during tests. "
            "Pass an httpx.MockTransport to the client."
        )

    monkeypatch.setattr(httpx.AsyncHTTPTransport, "handle_async_request", _blocked)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def sample_commands():
    """Small fixture catalog covering every parameter kind."""
    return [
        Command(
            id="sys_status",
            name="System Status",
            description="Show uptime and load",
            category="system",
        ),
        Command(
            id="docker_restart",
            name="Restart Container",
            description="Restart a Docker container",
            category="containers",
            dangerous=True,
            parameters=(
                CommandParameter(id="target", name="target", kind=ParameterKind.STRING, required=True),
            ),
        ),
        Command(
            id="bench",
            name="Benchmark",
            description="Run a benchmark",
            category="performance",
            parameters=(
                CommandParameter(
                    id="mode", name="mode", kind=ParameterKind.SELECT,
                    required=True, options=("fast", "slow"),
                ),
                CommandParameter(id="count", name="count", kind=ParameterKind.NUMBER),
                CommandParameter(id="verbose", name="verbose", kind=ParameterKind.BOOLEAN),
            ),
        ),
        Command(
            id="docker_ps",
            name="List Containers",
            description="List running containers",
            category="containers",
        ),
        Command(
            id="bot_ping",
            name="Bot Ping",
            description="Check the bot is alive",
            category="bot_admin",
        ),
    ]


@pytest.fixture
def registry(sample_commands):
    return CommandRegistry(sample_commands)


CATALOG_YAML = """
commands:
  - id: sys_status
    name: System Status
    description: Show uptime
    category: system
  - id: net_ping
    name: Ping Host
    description: Ping a host
    category: network
    dangerous: false
    parameters:
      - id: host
        name: Host
        type: string
        required: true
      - id: mode
        name: Mode
        type: select
        options: [fast, slow]
        default: fast
"""


@pytest.fixture
def catalog_file(tmp_path):
    """A valid two-command catalog on disk."""
    path = tmp_path / "catalog.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path
