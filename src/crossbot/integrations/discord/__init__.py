"""Discord integration: REST client, gateway, chat source and bot service."""

from .allowlist import DiscordAllowlist, allowlist_allows
from .config import DiscordBotConfig
from .constants import (
    DISCORD_API_BASE_URL,
    DISCORD_GATEWAY_URL,
    DISCORD_MAX_MESSAGE_LENGTH,
)
from .errors import (
    DiscordAPIError,
    DiscordConfigError,
    DiscordError,
    DiscordPermanentError,
    DiscordTransientError,
)
from .gateway import (
    DiscordGatewayClient,
    GatewayFrame,
    build_identify_payload,
    calculate_reconnect_backoff,
    parse_gateway_frame,
)
from .message import DISCORD_SOURCE, normalize_message, snowflake_timestamp
from .permissions import DiscordPermissions
from .rest import DiscordRestClient
from .service import DiscordBotService, create_discord_bot_service
from .source import DiscordSource, snapshot_from_guild

__all__ = [
    "DISCORD_API_BASE_URL",
    "DISCORD_GATEWAY_URL",
    "DISCORD_MAX_MESSAGE_LENGTH",
    "DISCORD_SOURCE",
    "DiscordAPIError",
    "DiscordAllowlist",
    "DiscordBotConfig",
    "DiscordBotService",
    "DiscordConfigError",
    "DiscordError",
    "DiscordGatewayClient",
    "DiscordPermanentError",
    "DiscordPermissions",
    "DiscordRestClient",
    "DiscordSource",
    "DiscordTransientError",
    "GatewayFrame",
    "allowlist_allows",
    "build_identify_payload",
    "calculate_reconnect_backoff",
    "create_discord_bot_service",
    "normalize_message",
    "parse_gateway_frame",
    "snapshot_from_guild",
    "snowflake_timestamp",
]
