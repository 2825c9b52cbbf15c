"""Shared error hierarchy.

Platform integrations compose these types so retry and severity behavior
stays consistent across sources.
"""

from __future__ import annotations

from typing import Optional


class CrossbotError(Exception):
    """Base error for the bot runtime."""

    recoverable: bool = True
    severity: str = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(CrossbotError):
    """Failure that may succeed when attempted again (network, rate limits)."""

    recoverable = True
    severity = "warning"


class PermanentError(CrossbotError):
    """Failure that will not resolve without a change (auth, bad request)."""

    recoverable = False
    severity = "error"


class ConfigError(CrossbotError):
    """Raised when the bot configuration is missing or invalid."""

    recoverable = False
