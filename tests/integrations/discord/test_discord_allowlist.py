from __future__ import annotations

from crossbot.integrations.chat.testing import make_message
from crossbot.integrations.discord.allowlist import DiscordAllowlist, allowlist_allows


def _allowlist(guilds=(), channels=(), users=()) -> DiscordAllowlist:
    return DiscordAllowlist(
        allowed_guild_ids=frozenset(guilds),
        allowed_channel_ids=frozenset(channels),
        allowed_user_ids=frozenset(users),
    )


def _message(guild_id="g1", channel_id="c1", user_id="u1"):
    return make_message("hi", org_id=guild_id, channel_id=channel_id, user_id=user_id)


def test_empty_allowlist_allows_everything() -> None:
    allowlist = _allowlist()

    assert allowlist.is_open
    assert allowlist_allows(_message(), allowlist)
    assert allowlist_allows(_message(guild_id=None, channel_id=None), allowlist)


def test_allowlist_requires_membership_in_all_configured_sets() -> None:
    allowlist = _allowlist(guilds={"g1"}, channels={"c1"}, users={"u1"})

    assert allowlist_allows(_message(), allowlist)
    assert not allowlist_allows(_message(guild_id="other"), allowlist)
    assert not allowlist_allows(_message(channel_id="other"), allowlist)
    assert not allowlist_allows(_message(user_id="other"), allowlist)


def test_allowlist_enforces_only_configured_dimensions() -> None:
    guild_only = _allowlist(guilds={"g1"})

    assert allowlist_allows(_message(channel_id="anything"), guild_only)
    assert not allowlist_allows(_message(guild_id="g2"), guild_only)


def test_direct_messages_only_check_users() -> None:
    guild_only = _allowlist(guilds={"g1"})
    user_only = _allowlist(users={"u1"})
    dm = _message(guild_id=None, channel_id=None)

    assert allowlist_allows(dm, guild_only)
    assert allowlist_allows(dm, user_only)
    assert not allowlist_allows(
        _message(guild_id=None, channel_id=None, user_id="u2"), user_only
    )
