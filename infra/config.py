"""
Configuration Manager
---------------------
Centralized configuration and secret handling.

Rules:
- Secrets never in code or config files
- All secrets from environment
- Status reports never reveal secret values
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import logging
import os

import yaml

from api.rate_limiter import RateLimitConfig, tiers_from_env
from core.errors import ConfigurationError


ENV_PREFIX = "CONTROLLER_"


@dataclass
class SecretConfig:
    """Configuration for a secret."""
    name: str
    env_var: str
    required: bool = True
    description: str = ""


class SecretManager:
    """
    Manages secrets loaded from the environment.
    """

    REQUIRED_SECRETS: List[SecretConfig] = [
        SecretConfig("webhook_url", "DISCORD_WEBHOOK_URL",
                     description="Discord webhook commands are posted to"),
        SecretConfig("bot_token", "DISCORD_BOT_TOKEN",
                     description="Bot token used to read replies"),
        SecretConfig("channel_id", "DISCORD_CHANNEL_ID",
                     description="Channel the bot replies in"),
        SecretConfig("api_tokens", "CONTROLLER_API_TOKENS",
                     description="Comma separated token:user pairs for API access"),
    ]

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ
        self._secrets: Dict[str, str] = {}
        self._logger = logging.getLogger("controller.infra.secrets")
        self._load_secrets()

    def _load_secrets(self) -> None:
        """Load secrets from environment."""
        for secret in self.REQUIRED_SECRETS:
            value = self._environ.get(secret.env_var)
            if value:
                self._secrets[secret.name] = value
                self._logger.debug(f"Loaded secret: {secret.name}")
            elif secret.required:
                self._logger.warning(f"Missing required secret: {secret.name}")

    def get(self, name: str) -> Optional[str]:
        """Get a secret by name."""
        return self._secrets.get(name)

    def has(self, name: str) -> bool:
        """Check if a secret exists."""
        return name in self._secrets

    def missing(self) -> List[str]:
        """Environment variables of required secrets that are not set."""
        return [
            s.env_var for s in self.REQUIRED_SECRETS
            if s.required and not self.has(s.name)
        ]

    def status(self) -> Dict[str, str]:
        """Per-variable status, never the value."""
        return {
            s.env_var: "configured" if self.has(s.name) else "missing"
            for s in self.REQUIRED_SECRETS
        }


class ConfigManager:
    """
    Loads configuration from YAML with environment variable overrides.
    """

    def __init__(
        self,
        config_path: str = "config.yaml",
        environ: Optional[Mapping[str, str]] = None
    ):
        self._config_path = Path(config_path)
        self._environ = os.environ if environ is None else environ
        self._config: Dict[str, Any] = {}
        self._logger = logging.getLogger("controller.infra.config")

        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if self._config_path.exists():
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f) or {}
            self._logger.info(f"Loaded config from {self._config_path}")
        else:
            self._logger.debug(f"Config file not found: {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Supports dot notation: 'section.key'
        Environment variables override file config.
        """
        env_key = f"{ENV_PREFIX}{key.upper().replace('.', '_')}"
        env_value = self._environ.get(env_key)
        if env_value is not None:
            return env_value

        value = self._config
        for part in key.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        return self._config.get(section, {})


def parse_api_tokens(raw: Optional[str]) -> Dict[str, str]:
    """
    Parse "token:user,token2:user2" into {token: user}.
    Malformed pairs are a configuration error.
    """
    tokens: Dict[str, str] = {}
    if not raw:
        return tokens

    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        token, sep, user = pair.partition(":")
        if not sep or not token.strip() or not user.strip():
            raise ConfigurationError("Malformed CONTROLLER_API_TOKENS entry", entry_index=len(tokens))
        tokens[token.strip()] = user.strip()

    return tokens


@dataclass
class ControllerSettings:
    """Typed settings for the controller process."""
    webhook_url: Optional[str] = None
    bot_token: Optional[str] = None
    channel_id: Optional[str] = None
    api_tokens: Dict[str, str] = field(default_factory=dict)
    catalog_path: Optional[str] = None
    discord_timeout_seconds: float = 5.0
    history_max_per_user: int = 100
    rate_limits: Dict[str, RateLimitConfig] = field(default_factory=tiers_from_env)

    @classmethod
    def load(
        cls,
        config_path: str = "config.yaml",
        environ: Optional[Mapping[str, str]] = None
    ) -> "ControllerSettings":
        """Build settings from config file, environment and secrets."""
        env = os.environ if environ is None else environ
        config = ConfigManager(config_path, environ=env)
        secrets = SecretManager(environ=env)

        try:
            return cls(
                webhook_url=secrets.get("webhook_url"),
                bot_token=secrets.get("bot_token"),
                channel_id=secrets.get("channel_id"),
                api_tokens=parse_api_tokens(secrets.get("api_tokens")),
                catalog_path=config.get("catalog_path"),
                discord_timeout_seconds=float(config.get("discord.timeout_seconds", 5.0)),
                history_max_per_user=int(config.get("history.max_per_user", 100)),
                rate_limits=tiers_from_env(env),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e


def validate_environment(environ: Optional[Mapping[str, str]] = None) -> None:
    """Fail fast if any required environment variable is missing."""
    missing = SecretManager(environ=environ).missing()
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing
        )


def get_environment_status(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Report which required variables are set, without their values."""
    return SecretManager(environ=environ).status()
