from __future__ import annotations

from typing import Any

import httpx
import pytest

from crossbot.integrations.discord.errors import (
    DiscordPermanentError,
    DiscordTransientError,
)
from crossbot.integrations.discord.rest import DiscordRestClient

BASE_URL = "https://discord.test/api/v10"


def _client(handler, **kwargs) -> DiscordRestClient:
    return DiscordRestClient(
        bot_token="abc123",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture()
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    monkeypatch.setattr("crossbot.integrations.discord.rest.asyncio.sleep", fake_sleep)
    return recorded


@pytest.mark.anyio
async def test_discord_rest_client_sets_authorization_header() -> None:
    observed: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        observed["authorization"] = request.headers.get("Authorization")
        observed["path"] = request.url.path
        return httpx.Response(200, json={"id": "bot-1", "username": "crossbot"})

    async with _client(handler) as client:
        payload = await client.get_current_user()

    assert payload["id"] == "bot-1"
    assert observed["authorization"] == "Bot abc123"
    assert observed["path"] == "/api/v10/users/@me"


@pytest.mark.anyio
async def test_rate_limit_retry_after_retries_and_succeeds(sleeps: list[float]) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] < 3:
            return httpx.Response(429, headers={"Retry-After": "0.25"}, json={})
        return httpx.Response(200, json={"id": "msg-1"})

    async with _client(handler) as client:
        payload = await client.create_channel_message(
            channel_id="chan-1", payload={"content": "hello"}
        )

    assert payload == {"id": "msg-1"}
    assert attempts["count"] == 3
    assert sleeps == [0.25, 0.25]


@pytest.mark.anyio
async def test_rate_limit_body_retry_after_is_used_when_header_missing(
    sleeps: list[float],
) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            return httpx.Response(429, json={"retry_after": 1.5, "global": False})
        return httpx.Response(204)

    async with _client(handler) as client:
        await client.delete_channel_message(channel_id="chan-1", message_id="m1")

    assert sleeps == [1.5]


@pytest.mark.anyio
async def test_rate_limit_exhaustion_raises_transient(sleeps: list[float]) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "2"}, json={})

    async with _client(handler, max_retries=2) as client:
        with pytest.raises(DiscordTransientError) as exc_info:
            await client.get_guild("g1")

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 2.0
    assert sleeps == [2.0, 2.0]


@pytest.mark.anyio
async def test_server_errors_retry_with_backoff_then_raise(sleeps: list[float]) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(502, text="bad gateway")

    async with _client(handler, retry_base_delay=0.5, retry_max_delay=30.0) as client:
        with pytest.raises(DiscordTransientError) as exc_info:
            await client.list_guild_channels("g1")

    assert attempts["count"] == 4
    assert len(sleeps) == 3
    assert all(delay >= 1.0 for delay in sleeps)
    assert "status=502" in str(exc_info.value)


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [400, 401, 403, 404])
async def test_client_errors_are_permanent_and_not_retried(
    sleeps: list[float], status_code: int
) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(status_code, json={"message": "nope"})

    async with _client(handler) as client:
        with pytest.raises(DiscordPermanentError) as exc_info:
            await client.get_guild("g1")

    assert exc_info.value.status_code == status_code
    assert attempts["count"] == 1
    assert sleeps == []


@pytest.mark.anyio
async def test_network_errors_retry_then_raise_transient(sleeps: list[float]) -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler, max_retries=1) as client:
        with pytest.raises(DiscordTransientError):
            await client.get_current_user()

    assert attempts["count"] == 2
    assert len(sleeps) == 1


@pytest.mark.anyio
async def test_guild_listing_follows_pages() -> None:
    observed: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        observed.append(params)
        if "after" not in params:
            return httpx.Response(200, json=[{"id": str(i)} for i in range(200)])
        return httpx.Response(200, json=[{"id": "200"}, "junk"])

    async with _client(handler) as client:
        guilds = await client.list_current_user_guilds()

    assert len(guilds) == 201
    assert observed == [{"limit": "200"}, {"limit": "200", "after": "199"}]


@pytest.mark.anyio
async def test_history_and_bulk_delete_routes() -> None:
    observed: list[tuple[str, str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        observed.append((request.method, request.url.path, request.url.query.decode()))
        if request.method == "GET":
            return httpx.Response(200, json=[{"id": "m2"}, {"id": "m1"}])
        return httpx.Response(204)

    async with _client(handler) as client:
        messages = await client.get_channel_messages(
            channel_id="c1", limit=500, before="m9"
        )
        await client.bulk_delete_messages(channel_id="c1", message_ids=["m1", "m2"])
        with pytest.raises(ValueError):
            await client.bulk_delete_messages(channel_id="c1", message_ids=["m1"])

    assert [message["id"] for message in messages] == ["m2", "m1"]
    assert observed == [
        ("GET", "/api/v10/channels/c1/messages", "limit=100&before=m9"),
        ("POST", "/api/v10/channels/c1/messages/bulk-delete", ""),
    ]
