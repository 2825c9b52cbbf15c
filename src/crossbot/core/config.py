from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError

logger = logging.getLogger("crossbot.core.config")

CONFIG_FILENAME = "crossbot.yml"
DEFAULT_COMMAND_PREFIX = "!"
DEFAULT_LOCALE = "en"
DEFAULT_STATE_FILE = ".crossbot/state.sqlite3"
DEFAULT_LOG_FILE = ".crossbot/crossbot.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 3
DEFAULT_GUILD_SYNC_INTERVAL_SECONDS = 300.0
MAX_COMMAND_PREFIX_LENGTH = 8


@dataclass(frozen=True)
class LogConfig:
    path: Path
    level: int = logging.INFO
    max_bytes: int = DEFAULT_LOG_MAX_BYTES
    backup_count: int = DEFAULT_LOG_BACKUP_COUNT


@dataclass(frozen=True)
class GuildSyncConfig:
    enabled: bool = True
    interval_seconds: float = DEFAULT_GUILD_SYNC_INTERVAL_SECONDS


@dataclass(frozen=True)
class BotConfig:
    root: Path
    command_prefix: str
    default_locale: str
    state_file: Path
    log: LogConfig
    guild_sync: GuildSyncConfig = field(default_factory=GuildSyncConfig)
    raw: dict[str, Any] = field(default_factory=dict)

    def section(self, name: str) -> dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}

    @classmethod
    def from_raw(cls, *, root: Path, raw: dict[str, Any]) -> "BotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}

        prefix = cfg.get("command_prefix", DEFAULT_COMMAND_PREFIX)
        if not isinstance(prefix, str) or not prefix.strip():
            raise ConfigError("command_prefix must be a non-empty string")
        prefix = prefix.strip()
        if len(prefix) > MAX_COMMAND_PREFIX_LENGTH or any(ch.isspace() for ch in prefix):
            raise ConfigError(
                f"command_prefix must be at most {MAX_COMMAND_PREFIX_LENGTH} "
                "characters without whitespace"
            )

        default_locale = str(cfg.get("default_locale", DEFAULT_LOCALE)).strip().lower()
        if not default_locale:
            raise ConfigError("default_locale must be non-empty")

        state_file_value = cfg.get("state_file", DEFAULT_STATE_FILE)
        if not isinstance(state_file_value, str) or not state_file_value.strip():
            raise ConfigError("state_file must be a string path")

        return cls(
            root=root,
            command_prefix=prefix,
            default_locale=default_locale,
            state_file=(root / state_file_value).resolve(),
            log=_parse_log_config(root, cfg.get("log")),
            guild_sync=_parse_guild_sync_config(cfg.get("guild_sync")),
            raw=cfg,
        )


def load_config(path: Optional[Path] = None) -> BotConfig:
    """Load `crossbot.yml` from a file or directory.

    A `.env` next to the config file is loaded first so token env vars named
    in the file resolve. A missing config file yields the defaults.
    """

    target = (path or Path.cwd()).resolve()
    config_path = target / CONFIG_FILENAME if target.is_dir() else target
    root = config_path.parent

    env_path = root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)

    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Unable to read {config_path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level")
        raw = loaded
    else:
        logger.info("Config file %s not found; using defaults", config_path)

    return BotConfig.from_raw(root=root, raw=raw)


def _parse_log_config(root: Path, value: Any) -> LogConfig:
    cfg = value if isinstance(value, dict) else {}
    path_value = cfg.get("path", DEFAULT_LOG_FILE)
    if not isinstance(path_value, str) or not path_value.strip():
        raise ConfigError("log.path must be a string path")
    level_name = str(cfg.get("level", "INFO")).strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigError(f"log.level has unknown value {level_name!r}")
    return LogConfig(
        path=(root / path_value).resolve(),
        level=level,
        max_bytes=parse_positive_int_or_default(
            cfg.get("max_bytes"), default=DEFAULT_LOG_MAX_BYTES, key="log.max_bytes"
        ),
        backup_count=parse_positive_int_or_default(
            cfg.get("backup_count"),
            default=DEFAULT_LOG_BACKUP_COUNT,
            key="log.backup_count",
        ),
    )


def _parse_guild_sync_config(value: Any) -> GuildSyncConfig:
    cfg = value if isinstance(value, dict) else {}
    interval = cfg.get("interval_seconds", DEFAULT_GUILD_SYNC_INTERVAL_SECONDS)
    try:
        interval_seconds = float(interval)
    except (TypeError, ValueError) as exc:
        raise ConfigError("guild_sync.interval_seconds must be a number") from exc
    if interval_seconds <= 0:
        raise ConfigError("guild_sync.interval_seconds must be > 0")
    return GuildSyncConfig(
        enabled=parse_bool_or_default(
            cfg.get("enabled"), default=True, key="guild_sync.enabled"
        ),
        interval_seconds=interval_seconds,
    )


def parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def parse_positive_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        return default
    return parsed


def parse_bool_or_default(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{key} must be a boolean")
