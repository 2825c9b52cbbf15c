from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional

import httpx

from .constants import (
    SLACK_API_BASE_URL,
    SLACK_LIST_PAGE_LIMIT,
    SLACK_TRANSIENT_ERROR_CODES,
)
from .errors import SlackAPIError, SlackPermanentError, SlackTransientError

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


class SlackWebClient:
    """Minimal Slack Web API client.

    Slack reports most failures as HTTP 200 with `{"ok": false, "error": ...}`;
    those are mapped onto the same transient/permanent split as HTTP errors.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = SLACK_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, transport=transport
        )
        self._authorization_header = f"Bearer {bot_token}"
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SlackWebClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2**attempt) + random.uniform(0, 1)
        return float(min(delay, self._retry_max_delay))

    async def _call(
        self,
        api_method: str,
        *,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        http_method = "POST" if payload is not None else "GET"
        rate_limit_retries = 0
        retry_attempt = 0

        while True:
            try:
                response = await self._client.request(
                    http_method,
                    f"/{api_method}",
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
                            "Slack rate limited on %s, retrying after %.1fs (attempt %d)",
                            api_method,
                            retry_after,
                            rate_limit_retries,
                        )
                        await asyncio.sleep(retry_after)
                        continue
                    raise SlackTransientError(
                        f"Slack API rate limit exceeded for {api_method}",
                        status_code=status_code,
                        error_code="ratelimited",
                        retry_after=retry_after,
                    ) from exc
                if 500 <= status_code < 600:
                    if retry_attempt < self._max_retries:
                        retry_attempt += 1
                        delay = self._calculate_retry_delay(retry_attempt)
                        logger.warning(
                            "Slack server error %d on %s, retrying in %.1fs (attempt %d/%d)",
                            status_code,
                            api_method,
                            delay,
                            retry_attempt,
                            self._max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise SlackTransientError(
                        f"Slack API server error for {api_method}: status={status_code}",
                        status_code=status_code,
                    ) from exc
                raise SlackPermanentError(
                    f"Slack API request failed for {api_method}: status={status_code}",
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
                        "Slack network error on %s: %s, retrying in %.1fs (attempt %d/%d)",
                        api_method,
                        type(exc).__name__,
                        delay,
                        retry_attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise SlackTransientError(
                    f"Slack API network error for {api_method}: {exc}"
                ) from exc

            try:
                body = response.json()
            except ValueError as exc:
                raise SlackAPIError(
                    f"Slack API returned non-JSON response for {api_method}"
                ) from exc
            if not isinstance(body, dict):
                raise SlackAPIError(f"Slack API returned non-object body for {api_method}")
            if body.get("ok"):
                return body

            error_code = str(body.get("error") or "unknown_error")
            if error_code in SLACK_TRANSIENT_ERROR_CODES:
                if retry_attempt < self._max_retries:
                    retry_attempt += 1
                    await asyncio.sleep(self._calculate_retry_delay(retry_attempt))
                    continue
                raise SlackTransientError(
                    f"Slack API {api_method} failed: {error_code}",
                    status_code=response.status_code,
                    error_code=error_code,
                )
            raise SlackPermanentError(
                f"Slack API {api_method} failed: {error_code}",
                status_code=response.status_code,
                error_code=error_code,
            )

    async def auth_test(self) -> dict[str, Any]:
        return await self._call("auth.test", payload={})

    async def team_info(self) -> dict[str, Any]:
        body = await self._call("team.info")
        team = body.get("team")
        return team if isinstance(team, dict) else {}

    async def users_info(self, user_id: str) -> dict[str, Any]:
        body = await self._call("users.info", params={"user": user_id})
        user = body.get("user")
        return user if isinstance(user, dict) else {}

    async def post_message(self, *, channel: str, text: str) -> dict[str, Any]:
        return await self._call(
            "chat.postMessage",
            payload={"channel": channel, "text": text, "unfurl_links": False},
        )

    async def delete_message(self, *, channel: str, ts: str) -> None:
        await self._call("chat.delete", payload={"channel": channel, "ts": ts})

    async def conversations_history(
        self,
        *,
        channel: str,
        limit: int,
        latest: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """One page of channel history, newest first, strictly older than `latest`."""

        params: dict[str, Any] = {"channel": channel, "limit": max(1, min(limit, 1000))}
        if latest:
            params["latest"] = latest
            params["inclusive"] = "false"
        body = await self._call("conversations.history", params=params)
        return _dict_items(body.get("messages"))

    async def list_conversations(self) -> list[dict[str, Any]]:
        channels: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params: dict[str, Any] = {
                "types": "public_channel,private_channel",
                "exclude_archived": "true",
                "limit": SLACK_LIST_PAGE_LIMIT,
            }
            if cursor:
                params["cursor"] = cursor
            body = await self._call("conversations.list", params=params)
            channels.extend(_dict_items(body.get("channels")))
            cursor = _next_cursor(body)
            if not cursor:
                return channels


def _next_cursor(body: dict[str, Any]) -> Optional[str]:
    metadata = body.get("response_metadata")
    if not isinstance(metadata, dict):
        return None
    cursor = metadata.get("next_cursor")
    return cursor if isinstance(cursor, str) and cursor else None


def _parse_retry_after(response: httpx.Response) -> float:
    try:
        return max(float(response.headers.get("Retry-After", "1")), 0.0)
    except (TypeError, ValueError):
        return 1.0


def _dict_items(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]
