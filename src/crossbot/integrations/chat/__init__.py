"""Platform-agnostic chat layer shared by every source."""

from .bootstrap import BootstrapReport, ChatBootstrapStep, run_chat_bootstrap_steps
from .capabilities import ChatCapabilities
from .dispatcher import (
    ChatDispatcher,
    DispatchContext,
    DispatchResult,
    RecentMessageIds,
    build_dispatch_context,
)
from .errors import (
    ChatSourceError,
    ChatSourcePermanentError,
    ChatSourceTimeoutError,
    ChatSourceTransientError,
)
from .models import ChatMessage, SentMessage
from .source import ChatSource, SourcePermissions, deliver_reply
from .text_chunking import split_text

__all__ = [
    "BootstrapReport",
    "ChatBootstrapStep",
    "ChatCapabilities",
    "ChatDispatcher",
    "ChatMessage",
    "ChatSource",
    "ChatSourceError",
    "ChatSourcePermanentError",
    "ChatSourceTimeoutError",
    "ChatSourceTransientError",
    "DispatchContext",
    "DispatchResult",
    "RecentMessageIds",
    "SentMessage",
    "SourcePermissions",
    "build_dispatch_context",
    "deliver_reply",
    "run_chat_bootstrap_steps",
    "split_text",
]
