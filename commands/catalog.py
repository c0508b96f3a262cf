"""
Command Catalog Loader
----------------------
Parses the YAML command catalog into Command records.
A malformed catalog is a configuration error and aborts start-up.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

import yaml

from core.errors import CatalogError
from .registry import Command, CommandParameter, ParameterKind, _as_option_string


DEFAULT_CATALOG = Path(__file__).parent / "command_catalog.yaml"

_logger = logging.getLogger("controller.commands.catalog")


def default_catalog_path() -> Path:
    """Path of the catalog bundled with the package."""
    return DEFAULT_CATALOG


def load_catalog(path: Optional[Union[str, Path]] = None) -> List[Command]:
    """
    Load command definitions from a YAML file.

    Duplicate command ids are rejected rather than silently overwritten.
    """
    path = Path(path) if path else DEFAULT_CATALOG

    if not path.exists():
        raise CatalogError(f"Command catalog not found: {path}", source=str(path))

    with open(path, 'r', encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CatalogError(f"Invalid YAML in {path}: {e}", source=str(path)) from e

    commands = parse_catalog(data, source=str(path))
    _logger.info(f"Loaded {len(commands)} commands from {path}")
    return commands


def parse_catalog(data: Any, source: str = "<memory>") -> List[Command]:
    """Parse an already-decoded catalog document."""
    if not isinstance(data, dict) or not isinstance(data.get('commands'), list):
        raise CatalogError("Catalog must contain a 'commands' list", source=source)

    commands = []
    seen = set()
    for index, cmd_data in enumerate(data['commands']):
        cmd = _parse_command(cmd_data, index, source)
        if cmd.id in seen:
            raise CatalogError(f"Duplicate command id: {cmd.id}", source=source)
        seen.add(cmd.id)
        commands.append(cmd)

    return commands


def _parse_command(data: Any, index: int, source: str) -> Command:
    if not isinstance(data, dict):
        raise CatalogError(f"Command #{index} is not a mapping", source=source)

    where = data.get('id', f"#{index}")
    _require(data, ('id', 'name', 'description', 'category'), f"command {where}", source)

    params = [
        _parse_parameter(param_data, where, source)
        for param_data in data.get('parameters') or []
    ]

    try:
        return Command(
            id=str(data['id']),
            name=str(data['name']),
            description=str(data['description']),
            category=str(data['category']),
            parameters=tuple(params),
            dangerous=_flag(data, 'dangerous', f"command {where}", source),
            icon=data.get('icon'),
            timeout_ms=data.get('timeout'),
            requires_confirmation=_flag(data, 'requiresConfirmation', f"command {where}", source),
        )
    except ValueError as e:
        raise CatalogError(str(e), source=source) from e


def _parse_parameter(data: Any, command_id: str, source: str) -> CommandParameter:
    if not isinstance(data, dict):
        raise CatalogError(f"Parameter of command {command_id} is not a mapping", source=source)

    _require(data, ('id', 'name'), f"parameter of command {command_id}", source)

    raw_kind = data.get('type', 'string')
    try:
        kind = ParameterKind(raw_kind)
    except ValueError as e:
        raise CatalogError(
            f"Unknown parameter type '{raw_kind}' in command {command_id}",
            source=source
        ) from e

    try:
        return CommandParameter(
            id=str(data['id']),
            name=str(data['name']),
            kind=kind,
            required=_flag(data, 'required', f"parameter {data['id']} of command {command_id}", source),
            default=data.get('default'),
            options=tuple(_as_option_string(o) for o in data.get('options') or ()),
            description=data.get('description', ''),
            placeholder=data.get('placeholder', ''),
        )
    except ValueError as e:
        raise CatalogError(f"{e} (command {command_id})", source=source) from e


def _require(data: Dict, keys, what: str, source: str) -> None:
    missing = [k for k in keys if k not in data]
    if missing:
        raise CatalogError(f"Missing {', '.join(missing)} in {what}", source=source)


def _flag(data: Dict, key: str, what: str, source: str) -> bool:
    # YAML strings like "false" would be truthy under bool()
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise CatalogError(f"'{key}' must be true or false in {what}", source=source)
    return value
