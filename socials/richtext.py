# socials/richtext.py
"""
Bluesky rich text: facets for links, mentions and hashtags.

AT Protocol facets index into the UTF-8 encoding of the post text, so every
offset here is a byte offset, never a character count. Links are rewritten to
a short display form first; mentions and tags are then detected on the
rewritten text so their offsets line up with what is actually posted.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

LINK_DISPLAY_LENGTH = 24

# Python lookbehinds must be fixed width, hence the (?:^|(?<=\s)) form.
URL_RE = re.compile(r"(?:^|(?<=\s))https?://\S+")
MENTION_RE = re.compile(r"(?:^|(?<=\s))@([a-zA-Z0-9.-]+)")
TAG_RE = re.compile(r"(?:^|(?<=\s))#([a-zA-Z0-9]+)")
SCHEME_RE = re.compile(r"^https?://")

HandleResolver = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class LinkFeature:
    uri: str

    def to_record(self) -> Dict[str, Any]:
        return {"$type": "app.bsky.richtext.facet#link", "uri": self.uri}


@dataclass(frozen=True)
class MentionFeature:
    did: str

    def to_record(self) -> Dict[str, Any]:
        return {"$type": "app.bsky.richtext.facet#mention", "did": self.did}


@dataclass(frozen=True)
class TagFeature:
    tag: str

    def to_record(self) -> Dict[str, Any]:
        return {"$type": "app.bsky.richtext.facet#tag", "tag": self.tag}


Feature = Union[LinkFeature, MentionFeature, TagFeature]


@dataclass(frozen=True)
class Facet:
    """Half-open [byte_start, byte_end) range into the UTF-8 bytes of the final text."""

    byte_start: int
    byte_end: int
    feature: Feature

    def to_record(self) -> Dict[str, Any]:
        return {
            "index": {"byteStart": self.byte_start, "byteEnd": self.byte_end},
            "features": [self.feature.to_record()],
        }


@dataclass(frozen=True)
class RichText:
    text: str
    facets: List[Facet]


def utf8_len(value: str) -> int:
    return len(value.encode("utf-8"))


def shorten_link(url: str, max_length: int = LINK_DISPLAY_LENGTH) -> str:
    """Strip the scheme and cut to `max_length` visible characters ("..." included)."""
    if max_length <= 3:
        raise ValueError("max_length must be greater than 3")
    clean = SCHEME_RE.sub("", url)
    if len(clean) <= max_length:
        return clean
    return clean[: max_length - 3] + "..."


def _rewrite_links(text: str, shorten: bool, max_length: int) -> tuple[str, List[Facet]]:
    parts: List[str] = []
    facets: List[Facet] = []
    byte_offset = 0
    last = 0

    for match in URL_RE.finditer(text):
        prefix = text[last : match.start()]
        parts.append(prefix)
        byte_offset += utf8_len(prefix)

        url = match.group(0)
        display = shorten_link(url, max_length) if shorten else url
        byte_start = byte_offset
        byte_end = byte_start + utf8_len(display)

        parts.append(display)
        byte_offset = byte_end
        facets.append(Facet(byte_start, byte_end, LinkFeature(url)))
        last = match.end()

    parts.append(text[last:])
    return "".join(parts), facets


def _resolve(resolver: Optional[HandleResolver], handle: str) -> Optional[str]:
    if resolver is None:
        return None
    try:
        return resolver(handle)
    except Exception as e:
        logger.warning("Could not resolve Bluesky handle %s (%s); skipping mention.", handle, e)
        return None


def detect_mentions_and_tags(text: str, resolver: Optional[HandleResolver] = None) -> List[Facet]:
    """Mention facets (resolved handles only), then tag facets, each in text order."""
    facets: List[Facet] = []

    for match in MENTION_RE.finditer(text):
        handle = match.group(1).rstrip(".-")
        # Only something that looks like a domain handle is worth a lookup
        if "." not in handle:
            continue
        did = _resolve(resolver, handle)
        if not did:
            continue
        byte_start = utf8_len(text[: match.start()])
        byte_end = byte_start + utf8_len("@" + handle)
        facets.append(Facet(byte_start, byte_end, MentionFeature(did)))

    for match in TAG_RE.finditer(text):
        byte_start = utf8_len(text[: match.start()])
        byte_end = byte_start + utf8_len(match.group(0))
        facets.append(Facet(byte_start, byte_end, TagFeature(match.group(1))))

    return facets


def build_rich_text(
    text: str,
    resolver: Optional[HandleResolver] = None,
    shorten_links: bool = True,
    link_display_length: int = LINK_DISPLAY_LENGTH,
) -> RichText:
    """
    Turn plain post text into (final text, facets).

    1. Bare http(s) URLs are replaced by their short display form; the link
       facet spans the display text and points at the original URL.
    2. Mentions and hashtags are detected on the rewritten text. Mentions
       need `resolver(handle) -> did`; an unresolved mention is skipped.

    Link facets come first, then mentions, then tags.
    """
    final_text, link_facets = _rewrite_links(text, shorten_links, link_display_length)
    return RichText(final_text, link_facets + detect_mentions_and_tags(final_text, resolver))
