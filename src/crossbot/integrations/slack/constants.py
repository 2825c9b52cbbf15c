from __future__ import annotations

SLACK_API_BASE_URL = "https://slack.com/api"

# chat.postMessage truncates text beyond this length.
SLACK_MAX_MESSAGE_LENGTH = 40000
SLACK_HISTORY_PAGE_LIMIT = 100
SLACK_LIST_PAGE_LIMIT = 200

SLACK_SIGNATURE_VERSION = "v0"
SLACK_SIGNATURE_HEADER = "X-Slack-Signature"
SLACK_TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SLACK_RETRY_NUM_HEADER = "X-Slack-Retry-Num"
# Requests older than this are rejected as possible replays.
SLACK_SIGNATURE_TOLERANCE_SECONDS = 300

SLACK_EVENTS_PATH = "/slack/events"
DEFAULT_SLACK_HOST = "127.0.0.1"
DEFAULT_SLACK_PORT = 3000

# `ok: false` error codes worth retrying.
SLACK_TRANSIENT_ERROR_CODES = frozenset(
    {
        "ratelimited",
        "internal_error",
        "fatal_error",
        "service_unavailable",
        "request_timeout",
    }
)
