"""Slack Events API endpoint.

Requests are authenticated with the `v0` signing scheme: HMAC-SHA256 over
`v0:{timestamp}:{raw body}` keyed by the app's signing secret.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, HTTPException, Request, status

from ...core.logging_utils import log_event
from .constants import (
    SLACK_EVENTS_PATH,
    SLACK_RETRY_NUM_HEADER,
    SLACK_SIGNATURE_HEADER,
    SLACK_SIGNATURE_TOLERANCE_SECONDS,
    SLACK_SIGNATURE_VERSION,
    SLACK_TIMESTAMP_HEADER,
)
from .errors import SlackSignatureError

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


def compute_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    base = f"{SLACK_SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + body
    digest = hmac.new(
        signing_secret.encode("utf-8"), base, digestmod=hashlib.sha256
    ).hexdigest()
    return f"{SLACK_SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    *,
    body: bytes,
    timestamp: Optional[str],
    signature: Optional[str],
    signing_secret: str,
    tolerance_seconds: int = SLACK_SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> None:
    if not signing_secret:
        raise SlackSignatureError("Slack signing secret is not configured")
    if not timestamp or not signature:
        raise SlackSignatureError("Missing Slack signature headers")
    try:
        request_time = int(timestamp)
    except ValueError as exc:
        raise SlackSignatureError("Slack request timestamp is not an integer") from exc
    current = time.time() if now is None else now
    if abs(current - request_time) > tolerance_seconds:
        raise SlackSignatureError("Slack request timestamp outside tolerance window")
    expected = compute_signature(signing_secret, timestamp, body)
    if not hmac.compare_digest(expected, signature):
        raise SlackSignatureError("Slack signature mismatch")


def create_events_app(
    *,
    signing_secret: str,
    on_event: EventCallback,
    logger: Optional[logging.Logger] = None,
    path: str = SLACK_EVENTS_PATH,
) -> FastAPI:
    """Build the FastAPI app that receives Slack event callbacks.

    `on_event` must return quickly; Slack expects an acknowledgement within
    three seconds and retries otherwise.
    """

    log = logger or logging.getLogger(__name__)
    app = FastAPI(redirect_slashes=False, docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(path)
    async def slack_events(request: Request) -> dict[str, Any]:
        body = await request.body()
        try:
            verify_slack_signature(
                body=body,
                timestamp=request.headers.get(SLACK_TIMESTAMP_HEADER),
                signature=request.headers.get(SLACK_SIGNATURE_HEADER),
                signing_secret=signing_secret,
            )
        except SlackSignatureError as exc:
            log_event(log, logging.WARNING, "slack.events.signature_rejected", exc=exc)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)
            ) from exc

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload"
            ) from exc
        if not isinstance(payload, dict):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payload must be a JSON object",
            )

        payload_type = payload.get("type")
        if payload_type == "url_verification":
            return {"challenge": payload.get("challenge")}
        if payload_type == "event_callback":
            log_event(
                log,
                logging.DEBUG,
                "slack.events.received",
                event_id=payload.get("event_id"),
                retry_num=request.headers.get(SLACK_RETRY_NUM_HEADER),
            )
            await on_event(payload)
        return {"ok": True}

    return app
