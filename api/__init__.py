# API module - Discord integration and request throttling
# One client for Discord, explicit rate limits, secrets isolated

from .client import DiscordClient, DiscordConfig, APIResponse, APIStatus
from .rate_limiter import RateLimiter, RateLimitConfig, tiers_from_env, client_key

__all__ = [
    "DiscordClient", "DiscordConfig", "APIResponse", "APIStatus",
    "RateLimiter", "RateLimitConfig", "tiers_from_env", "client_key",
]
