"""Core runtime primitives."""

from .config import BotConfig, LogConfig, load_config
from .exceptions import ConfigError, CrossbotError, PermanentError, TransientError
from .guild_sync import GuildDirectory, GuildSyncScheduler, OrganizationSnapshot
from .localization import Lang, LangManager
from .store import BotStore

__all__ = [
    "BotConfig",
    "BotStore",
    "ConfigError",
    "CrossbotError",
    "GuildDirectory",
    "GuildSyncScheduler",
    "Lang",
    "LangManager",
    "LogConfig",
    "OrganizationSnapshot",
    "PermanentError",
    "TransientError",
    "load_config",
]
