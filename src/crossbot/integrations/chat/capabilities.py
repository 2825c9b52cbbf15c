"""Platform capability declarations for the adapter layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChatCapabilities:
    """Capabilities surfaced by a concrete chat source."""

    max_text_length: int
    supports_bulk_delete: bool = False
    supports_private_messages: bool = True
    history_page_limit: int = 50
