from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"

# Discord hard limit for message content.
DISCORD_MAX_MESSAGE_LENGTH = 2000

# Messages per history request and per bulk-delete request.
DISCORD_HISTORY_PAGE_LIMIT = 50
DISCORD_BULK_DELETE_MAX = 100
# Bulk delete rejects messages older than two weeks.
DISCORD_BULK_DELETE_MAX_AGE_DAYS = 14

DISCORD_EPOCH_MS = 1420070400000

# Gateway intents (https://discord.com/developers/docs/topics/gateway#gateway-intents).
DISCORD_INTENT_GUILDS = 1 << 0
DISCORD_INTENT_GUILD_MEMBERS = 1 << 1
DISCORD_INTENT_GUILD_MESSAGES = 1 << 9
DISCORD_INTENT_DIRECT_MESSAGES = 1 << 12
DISCORD_INTENT_MESSAGE_CONTENT = 1 << 15

DEFAULT_INTENTS = (
    DISCORD_INTENT_GUILDS
    | DISCORD_INTENT_GUILD_MESSAGES
    | DISCORD_INTENT_DIRECT_MESSAGES
    | DISCORD_INTENT_MESSAGE_CONTENT
)

# Channel types.
CHANNEL_TYPE_GUILD_TEXT = 0
CHANNEL_TYPE_DM = 1
CHANNEL_TYPE_GUILD_VOICE = 2
CHANNEL_TYPE_GUILD_CATEGORY = 4
CHANNEL_TYPE_GUILD_ANNOUNCEMENT = 5
TEXT_CHANNEL_TYPES = frozenset({CHANNEL_TYPE_GUILD_TEXT, CHANNEL_TYPE_GUILD_ANNOUNCEMENT})

# Permission bits (https://discord.com/developers/docs/topics/permissions).
PERMISSION_BITS = {
    "CREATE_INSTANT_INVITE": 1 << 0,
    "KICK_MEMBERS": 1 << 1,
    "BAN_MEMBERS": 1 << 2,
    "ADMINISTRATOR": 1 << 3,
    "MANAGE_CHANNELS": 1 << 4,
    "MANAGE_GUILD": 1 << 5,
    "ADD_REACTIONS": 1 << 6,
    "VIEW_CHANNEL": 1 << 10,
    "SEND_MESSAGES": 1 << 11,
    "MANAGE_MESSAGES": 1 << 13,
    "READ_MESSAGE_HISTORY": 1 << 16,
    "MENTION_EVERYONE": 1 << 17,
    "MANAGE_ROLES": 1 << 28,
}
ALL_PERMISSIONS = (1 << 53) - 1
