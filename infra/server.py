#!/usr/bin/env python3
"""
Controller Server
-----------------
Composition root: loads the catalog once, wires the registry into the
dispatcher and service bus, and runs the FastAPI app.

Usage:
    python -m infra.server --port 8000
    python -m infra.server --catalog commands/command_catalog.yaml --strict-env
"""

import argparse
import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from rich.console import Console

from api.client import DiscordClient, DiscordConfig
from commands.catalog import load_catalog
from commands.registry import CommandRegistry
from core.dispatcher import CommandDispatcher
from core.errors import ConfigurationError
from infra.auth import TokenAuthenticator
from infra.config import ControllerSettings, get_environment_status, validate_environment
from infra.history import HistoryStore
from infra.logging import configure_logging, get_logger
from infra.service_bus import ServiceBus

console = Console()


def build_app(
    settings: ControllerSettings,
    registry: Optional[CommandRegistry] = None,
    client: Optional[DiscordClient] = None
) -> FastAPI:
    """Wire every component from settings and return the app."""
    if registry is None:
        registry = CommandRegistry(load_catalog(settings.catalog_path))

    if client is None:
        client = DiscordClient(DiscordConfig(
            webhook_url=settings.webhook_url,
            bot_token=settings.bot_token,
            timeout_seconds=settings.discord_timeout_seconds,
        ))

    history = HistoryStore(max_per_user=settings.history_max_per_user)
    dispatcher = CommandDispatcher(registry, client, history, channel_id=settings.channel_id)

    bus = ServiceBus(
        registry=registry,
        dispatcher=dispatcher,
        history=history,
        authenticator=TokenAuthenticator(settings.api_tokens),
        rate_limits=settings.rate_limits,
    )
    return bus.create_app()


def main():
    parser = argparse.ArgumentParser(description="MaxBot Controller Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--config", default="config.yaml", help="Optional YAML config file")
    parser.add_argument("--catalog", default=None, help="Command catalog YAML (default: bundled)")
    parser.add_argument("--strict-env", action="store_true",
                        help="Refuse to start if a required environment variable is missing")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()

    configure_logging(level=getattr(logging, args.log_level))
    logger = get_logger("infra.server")

    for var, status in get_environment_status().items():
        style = "green" if status == "configured" else "red"
        console.print(f"  [{style}]{status:>10}[/{style}]  {var}")

    try:
        if args.strict_env:
            validate_environment()
        settings = ControllerSettings.load(args.config)
        if args.catalog:
            settings.catalog_path = args.catalog
        app = build_app(settings)
    except ConfigurationError as e:
        logger.critical(f"Startup failed: {e}")
        console.print(f"[bold red]Startup failed:[/bold red] {e}")
        sys.exit(1)

    console.print(f"\n[bold green]MaxBot Controller[/bold green]")
    console.print(f"Running on http://{args.host}:{args.port}")
    console.print(f"API docs: http://{args.host}:{args.port}/docs")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower()
    )


if __name__ == "__main__":
    main()
