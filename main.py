#!/usr/bin/env python3
"""
MaxBot Controller CLI
=====================

Operator entry point for the command catalog.

Usage:
    python main.py list                          # All commands
    python main.py list --search docker          # Search name/description/category
    python main.py groups                        # Commands grouped by category
    python main.py show net_ping                 # One command with parameters
    python main.py validate net_ping host=a.com count=3
    python main.py run docker_restart container=web --user ops@example.com
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from api.client import DiscordClient, DiscordConfig
from commands.catalog import load_catalog
from commands.registry import Command, CommandRegistry, ParameterValue
from core.dispatcher import CommandDispatcher
from core.errors import ControllerException
from infra.config import ControllerSettings
from infra.history import HistoryStore
from infra.logging import RequestContext, configure_logging


console = Console()


def parse_assignments(pairs: List[str]) -> Dict[str, ParameterValue]:
    """
    Parse key=value arguments.
    Values are read as JSON scalars when possible (3, 2.5, true), else strings.
    """
    values: Dict[str, ParameterValue] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got '{pair}'")
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw
        if not isinstance(value, (str, int, float, bool)):
            value = raw
        values[key] = value
    return values


def print_commands(commands: List[Command], title: str = "Commands") -> None:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Category")
    table.add_column("Description", style="dim")

    for cmd in commands:
        name = f"{cmd.name} [red]⚠[/red]" if cmd.dangerous else cmd.name
        table.add_row(cmd.id, name, cmd.category, cmd.description)

    console.print(table)


def print_command(command: Command) -> None:
    lines = [f"[dim]{command.description}[/dim]", f"Category: {command.category}"]
    if command.dangerous:
        lines.append("[bold red]Dangerous: requires confirmation before running[/bold red]")

    for param in command.parameters:
        flag = "[red]*[/red]" if param.required else " "
        extra = ""
        if param.options:
            extra = f" one of: {', '.join(param.options)}"
        elif param.default is not None:
            extra = f" (default {param.default})"
        lines.append(f" {flag} [cyan]{param.id}[/cyan] <{param.kind.value}>{extra}")

    console.print(Panel("\n".join(lines), title=command.name, border_style="green"))


def cmd_list(registry: CommandRegistry, args) -> int:
    commands = registry.search_commands(args.search) if args.search else registry.get_all_commands()
    if args.category:
        commands = [c for c in commands if c.category == args.category]
    print_commands(commands)
    return 0


def cmd_groups(registry: CommandRegistry, args) -> int:
    for group in registry.get_commands_by_category():
        console.print(f"\n[bold]{group.icon} {group.label}[/bold] [dim]{group.description}[/dim]")
        for cmd in group.commands:
            console.print(f"  • [cyan]{cmd.id}[/cyan] {cmd.name}")
    return 0


def cmd_show(registry: CommandRegistry, args) -> int:
    command = registry.get_command(args.command_id)
    if command is None:
        console.print(f"[red]Command not found:[/red] {args.command_id}")
        return 1
    print_command(command)
    return 0


def cmd_validate(registry: CommandRegistry, args) -> int:
    command = registry.get_command(args.command_id)
    if command is None:
        console.print(f"[red]Command not found:[/red] {args.command_id}")
        return 1

    result = registry.validate_parameters(command, parse_assignments(args.params))
    if result.valid:
        console.print("[bold green]✓ Parameters valid[/bold green]")
        return 0

    for error in result.errors:
        console.print(f"[red]✗[/red] {error}")
    return 1


def cmd_run(registry: CommandRegistry, args, settings: ControllerSettings) -> int:
    command = registry.get_command(args.command_id)
    if command is not None and command.dangerous and not args.yes:
        console.print(f"[bold red]{command.name} is marked dangerous.[/bold red] Re-run with --yes to send it.")
        return 1

    client = DiscordClient(DiscordConfig(
        webhook_url=settings.webhook_url,
        bot_token=settings.bot_token,
        timeout_seconds=settings.discord_timeout_seconds,
    ))
    dispatcher = CommandDispatcher(registry, client, HistoryStore(), channel_id=settings.channel_id)

    with RequestContext():
        result = asyncio.run(dispatcher.execute(
            args.command_id, parse_assignments(args.params), args.user
        ))

    console.print(f"[bold green]Sent[/bold green] {result.command_id} as [cyan]{result.request_id}[/cyan]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MaxBot Controller - command catalog and Discord relay"
    )
    parser.add_argument("--catalog", default=None, help="Command catalog YAML (default: bundled)")
    parser.add_argument("--config", "-c", default="config.yaml", help="Path to configuration file")
    parser.add_argument(
        "--log-level", "-l",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )

    sub = parser.add_subparsers(dest="action", required=True)

    p_list = sub.add_parser("list", help="List commands")
    p_list.add_argument("--search", "-s", default=None)
    p_list.add_argument("--category", default=None)

    sub.add_parser("groups", help="List commands by category")

    p_show = sub.add_parser("show", help="Show one command")
    p_show.add_argument("command_id")

    p_validate = sub.add_parser("validate", help="Validate parameters without sending")
    p_validate.add_argument("command_id")
    p_validate.add_argument("params", nargs="*", metavar="key=value")

    p_run = sub.add_parser("run", help="Send a command to Discord")
    p_run.add_argument("command_id")
    p_run.add_argument("params", nargs="*", metavar="key=value")
    p_run.add_argument("--user", default="cli", help="Name recorded as the sender")
    p_run.add_argument("--yes", "-y", action="store_true", help="Confirm dangerous commands")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level), file=False)
    logger = logging.getLogger("controller.main")

    try:
        settings = ControllerSettings.load(args.config)
        registry = CommandRegistry(load_catalog(args.catalog or settings.catalog_path))

        if args.action == "list":
            return cmd_list(registry, args)
        if args.action == "groups":
            return cmd_groups(registry, args)
        if args.action == "show":
            return cmd_show(registry, args)
        if args.action == "validate":
            return cmd_validate(registry, args)
        return cmd_run(registry, args, settings)

    except ControllerException as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 2
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
