from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional, Sequence

import httpx

from .constants import DISCORD_API_BASE_URL
from .errors import DiscordAPIError, DiscordPermanentError, DiscordTransientError

logger = logging.getLogger(__name__)

_RETRYABLE_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)


class DiscordRestClient:
    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = DISCORD_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, transport=transport
        )
        self._authorization_header = f"Bot {bot_token}"
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2**attempt) + random.uniform(0, 1)
        return float(min(delay, self._retry_max_delay))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        params: Optional[dict[str, Any]] = None,
        expect_json: bool = True,
    ) -> Any:
        rate_limit_retries = 0
        retry_attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=payload,
                    params=params,
                    headers={"Authorization": self._authorization_header},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code == 429:
                    retry_after = _parse_retry_after(exc.response)
                    if rate_limit_retries < self._max_retries:
                        rate_limit_retries += 1
                        logger.info(
                            "Discord rate limited on %s %s, retrying after %.1fs (attempt %d)",
                            method,
                            path,
                            retry_after,
                            rate_limit_retries,
                        )
                        await asyncio.sleep(retry_after)
                        continue
                    raise DiscordTransientError(
                        f"Discord API rate limit exceeded for {method} {path}",
                        status_code=status_code,
                        retry_after=retry_after,
                    ) from exc

                body_preview = (
                    (exc.response.text or "").strip().replace("\n", " ")[:200]
                )
                if 500 <= status_code < 600:
                    if retry_attempt < self._max_retries:
                        retry_attempt += 1
                        delay = self._calculate_retry_delay(retry_attempt)
                        logger.warning(
                            "Discord server error %d on %s %s, retrying in %.1fs (attempt %d/%d)",
                            status_code,
                            method,
                            path,
                            delay,
                            retry_attempt,
                            self._max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise DiscordTransientError(
                        f"Discord API server error for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                if status_code in {401, 403}:
                    raise DiscordPermanentError(
                        f"Discord API authentication failure for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                raise DiscordPermanentError(
                    f"Discord API request failed for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                ) from exc
            except httpx.HTTPError as exc:
                if (
                    isinstance(exc, _RETRYABLE_NETWORK_ERRORS)
                    and retry_attempt < self._max_retries
                ):
                    retry_attempt += 1
                    delay = self._calculate_retry_delay(retry_attempt)
                    logger.warning(
                        "Discord network error on %s %s: %s, retrying in %.1fs (attempt %d/%d)",
                        method,
                        path,
                        type(exc).__name__,
                        delay,
                        retry_attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DiscordTransientError(
                    f"Discord API network error for {method} {path}: {exc}"
                ) from exc

            if not expect_json:
                return None
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise DiscordAPIError(
                    f"Discord API returned non-JSON success response for {method} {path}"
                ) from exc

    async def get_gateway_bot(self) -> dict[str, Any]:
        payload = await self._request("GET", "/gateway/bot")
        return payload if isinstance(payload, dict) else {}

    async def get_current_user(self) -> dict[str, Any]:
        payload = await self._request("GET", "/users/@me")
        return payload if isinstance(payload, dict) else {}

    async def list_current_user_guilds(self) -> list[dict[str, Any]]:
        guilds: list[dict[str, Any]] = []
        after: Optional[str] = None
        while True:
            params: dict[str, Any] = {"limit": 200}
            if after is not None:
                params["after"] = after
            payload = await self._request("GET", "/users/@me/guilds", params=params)
            page = _dict_items(payload)
            guilds.extend(page)
            if len(page) < 200:
                return guilds
            after = str(page[-1].get("id"))

    async def get_guild(self, guild_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/guilds/{guild_id}")
        return payload if isinstance(payload, dict) else {}

    async def list_guild_channels(self, guild_id: str) -> list[dict[str, Any]]:
        return _dict_items(await self._request("GET", f"/guilds/{guild_id}/channels"))

    async def list_guild_roles(self, guild_id: str) -> list[dict[str, Any]]:
        return _dict_items(await self._request("GET", f"/guilds/{guild_id}/roles"))

    async def get_guild_member(self, guild_id: str, user_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/guilds/{guild_id}/members/{user_id}")
        return payload if isinstance(payload, dict) else {}

    async def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    async def get_channel_messages(
        self,
        *,
        channel_id: str,
        limit: int = 50,
        before: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": max(1, min(limit, 100))}
        if before:
            params["before"] = before
        return _dict_items(
            await self._request(
                "GET", f"/channels/{channel_id}/messages", params=params
            )
        )

    async def delete_channel_message(
        self,
        *,
        channel_id: str,
        message_id: str,
    ) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}",
            expect_json=False,
        )

    async def bulk_delete_messages(
        self,
        *,
        channel_id: str,
        message_ids: Sequence[str],
    ) -> None:
        if len(message_ids) < 2:
            raise ValueError("bulk delete needs at least two message ids")
        await self._request(
            "POST",
            f"/channels/{channel_id}/messages/bulk-delete",
            payload={"messages": list(message_ids)},
            expect_json=False,
        )


def _parse_retry_after(response: httpx.Response) -> float:
    retry_after_raw = response.headers.get("Retry-After")
    if retry_after_raw is None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            retry_after_raw = body.get("retry_after")
    try:
        return max(float(retry_after_raw), 0.0) if retry_after_raw is not None else 1.0
    except (TypeError, ValueError):
        return 1.0


def _dict_items(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]
