from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...core.config import parse_string_ids
from .constants import DEFAULT_INTENTS, DISCORD_MAX_MESSAGE_LENGTH
from .errors import DiscordConfigError

DEFAULT_BOT_TOKEN_ENV = "CROSSBOT_DISCORD_BOT_TOKEN"


@dataclass(frozen=True)
class DiscordBotConfig:
    enabled: bool
    bot_token_env: str
    bot_token: Optional[str]
    allowed_guild_ids: frozenset[str]
    allowed_channel_ids: frozenset[str]
    allowed_user_ids: frozenset[str]
    intents: int
    max_message_length: int
    gateway_url: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "DiscordBotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        enabled = bool(cfg.get("enabled", False))
        bot_token_env = str(cfg.get("bot_token_env", DEFAULT_BOT_TOKEN_ENV)).strip()
        if not bot_token_env:
            raise DiscordConfigError("discord.bot_token_env must be non-empty")
        bot_token = os.environ.get(bot_token_env)

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if not isinstance(intents_value, int) or isinstance(intents_value, bool):
            raise DiscordConfigError("discord.intents must be an integer")
        if intents_value < 0:
            raise DiscordConfigError("discord.intents must be >= 0")

        max_message_length_value = cfg.get(
            "max_message_length", DISCORD_MAX_MESSAGE_LENGTH
        )
        if not isinstance(max_message_length_value, int):
            raise DiscordConfigError("discord.max_message_length must be an integer")
        if max_message_length_value <= 0:
            raise DiscordConfigError("discord.max_message_length must be > 0")
        max_message_length = min(max_message_length_value, DISCORD_MAX_MESSAGE_LENGTH)

        gateway_url = cfg.get("gateway_url")
        if gateway_url is not None and not isinstance(gateway_url, str):
            raise DiscordConfigError("discord.gateway_url must be a string")

        if enabled and not bot_token:
            raise DiscordConfigError(
                f"Discord bot is enabled but env var {bot_token_env} is unset"
            )

        return cls(
            enabled=enabled,
            bot_token_env=bot_token_env,
            bot_token=bot_token,
            allowed_guild_ids=frozenset(parse_string_ids(cfg.get("allowed_guild_ids"))),
            allowed_channel_ids=frozenset(
                parse_string_ids(cfg.get("allowed_channel_ids"))
            ),
            allowed_user_ids=frozenset(parse_string_ids(cfg.get("allowed_user_ids"))),
            intents=intents_value,
            max_message_length=max_message_length,
            gateway_url=gateway_url or None,
        )
