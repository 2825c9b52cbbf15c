from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...core.config import parse_string_ids
from .constants import DEFAULT_SLACK_HOST, DEFAULT_SLACK_PORT, SLACK_MAX_MESSAGE_LENGTH
from .errors import SlackConfigError

DEFAULT_BOT_TOKEN_ENV = "CROSSBOT_SLACK_BOT_TOKEN"
DEFAULT_SIGNING_SECRET_ENV = "CROSSBOT_SLACK_SIGNING_SECRET"


def _env_name(cfg: dict[str, Any], key: str, default: str) -> str:
    value = str(cfg.get(key, default)).strip()
    if not value:
        raise SlackConfigError(f"slack.{key} must be non-empty")
    return value


@dataclass(frozen=True)
class SlackBotConfig:
    enabled: bool
    bot_token_env: str
    bot_token: Optional[str]
    signing_secret_env: str
    signing_secret: Optional[str]
    host: str
    port: int
    max_message_length: int
    allowed_team_ids: frozenset[str]

    @classmethod
    def from_raw(cls, raw: Any) -> "SlackBotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        enabled = bool(cfg.get("enabled", False))
        bot_token_env = _env_name(cfg, "bot_token_env", DEFAULT_BOT_TOKEN_ENV)
        signing_secret_env = _env_name(
            cfg, "signing_secret_env", DEFAULT_SIGNING_SECRET_ENV
        )
        bot_token = os.environ.get(bot_token_env)
        signing_secret = os.environ.get(signing_secret_env)

        host = cfg.get("host", DEFAULT_SLACK_HOST)
        if not isinstance(host, str) or not host.strip():
            raise SlackConfigError("slack.host must be a non-empty string")

        port = cfg.get("port", DEFAULT_SLACK_PORT)
        if not isinstance(port, int) or isinstance(port, bool) or not 0 < port < 65536:
            raise SlackConfigError("slack.port must be an integer between 1 and 65535")

        max_message_length = cfg.get("max_message_length", SLACK_MAX_MESSAGE_LENGTH)
        if not isinstance(max_message_length, int) or max_message_length <= 0:
            raise SlackConfigError("slack.max_message_length must be a positive integer")

        if enabled and not bot_token:
            raise SlackConfigError(
                f"Slack bot is enabled but env var {bot_token_env} is unset"
            )
        if enabled and not signing_secret:
            raise SlackConfigError(
                f"Slack bot is enabled but env var {signing_secret_env} is unset"
            )

        return cls(
            enabled=enabled,
            bot_token_env=bot_token_env,
            bot_token=bot_token,
            signing_secret_env=signing_secret_env,
            signing_secret=signing_secret,
            host=host.strip(),
            port=port,
            max_message_length=min(max_message_length, SLACK_MAX_MESSAGE_LENGTH),
            allowed_team_ids=frozenset(parse_string_ids(cfg.get("allowed_team_ids"))),
        )
