"""Slack integration: Web API client, Events API endpoint, chat source and service."""

from .config import SlackBotConfig
from .constants import SLACK_API_BASE_URL, SLACK_EVENTS_PATH, SLACK_MAX_MESSAGE_LENGTH
from .errors import (
    SlackAPIError,
    SlackConfigError,
    SlackError,
    SlackPermanentError,
    SlackSignatureError,
    SlackTransientError,
)
from .events import compute_signature, create_events_app, verify_slack_signature
from .message import SLACK_SOURCE, normalize_event, strip_bot_mention
from .permissions import SlackPermissions, is_workspace_admin
from .rest import SlackWebClient
from .service import SlackBotService, create_slack_bot_service
from .source import SlackSource

__all__ = [
    "SLACK_API_BASE_URL",
    "SLACK_EVENTS_PATH",
    "SLACK_MAX_MESSAGE_LENGTH",
    "SLACK_SOURCE",
    "SlackAPIError",
    "SlackBotConfig",
    "SlackBotService",
    "SlackConfigError",
    "SlackError",
    "SlackPermanentError",
    "SlackPermissions",
    "SlackSignatureError",
    "SlackSource",
    "SlackTransientError",
    "SlackWebClient",
    "compute_signature",
    "create_events_app",
    "create_slack_bot_service",
    "is_workspace_admin",
    "normalize_event",
    "strip_bot_mention",
    "verify_slack_signature",
]
