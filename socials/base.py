# socials/base.py
from __future__ import annotations

from typing import Optional, Protocol

from core.models import Message, PublishedRef


class PlatformAdapter(Protocol):
    """
    All platform adapters (Bluesky, Mastodon, X, LinkedIn, Feed) implement this.

    MUST:
      - Create the message on the target platform
      - Thread it under `reply_to` if provided (reply post, or comment on the root for LinkedIn)
      - Return a PublishedRef that uniquely identifies the created message
      - Raise an ApiError subclass (core.errors) on failure instead of returning None
    """

    name: str

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef: ...


def text_with_link(message: Message) -> str:
    """Trimmed content with the link (if any) appended on its own paragraph."""
    text = (message.content or "").strip()
    if message.link:
        text = f"{text}\n\n{message.link}" if text else message.link
    return text


def preview(text: str, width: int = 180) -> str:
    """One-line preview of a post for logs."""
    return text.strip().replace("\n", " ")[:width]
