from __future__ import annotations

from typing import Optional

from ...core.exceptions import ConfigError, PermanentError, TransientError
from ..chat.errors import ChatSourceError


class SlackError(ChatSourceError):
    """Base Slack integration error."""


class SlackConfigError(SlackError, ConfigError):
    """Slack integration configuration error."""

    recoverable = False


class SlackAPIError(SlackError):
    """Slack Web API error, either an HTTP failure or an `ok: false` body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.error_code = error_code
        self.retry_after = retry_after


class SlackTransientError(SlackAPIError, TransientError):
    """Retryable Slack error (rate limits, network issues, 5xx)."""

    recoverable = TransientError.recoverable
    severity = TransientError.severity


class SlackPermanentError(SlackAPIError, PermanentError):
    """Non-retryable Slack error (bad token, missing scope, unknown channel)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class SlackSignatureError(SlackError):
    """Inbound Events API request failed signature verification."""
