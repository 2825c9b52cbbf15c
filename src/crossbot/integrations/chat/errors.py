"""Adapter-layer error hierarchy for platform chat integrations.

This module composes shared core error types so retry and severity behavior
stays consistent across sources.
"""

from __future__ import annotations

from typing import Optional

from ...core.exceptions import CrossbotError, PermanentError, TransientError


class ChatSourceError(CrossbotError):
    """Base chat source error."""


class ChatSourceTransientError(ChatSourceError, TransientError):
    """Retryable source failure (network/rate-limit/transient backend state)."""


class ChatSourcePermanentError(ChatSourceError, PermanentError):
    """Non-retryable source failure (validation/auth/config)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class ChatSourceTimeoutError(ChatSourceTransientError):
    """Timeout while talking to a platform API."""

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        if user_message is None:
            user_message = "Chat platform timed out."
        super().__init__(message, user_message=user_message)
