# socials/feed_client.py
from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

import pytz

from core.errors import ApiError, TransportError
from core.models import Message, PublishedRef
from storage.documents import Document, DocumentStore

from .base import preview

logger = logging.getLogger(__name__)

POST_KIND = "post"
TAG_RE = re.compile(r"(?:^|\s)#(\w+)")

ATOM_NS = "http://www.w3.org/2005/Atom"
MEDIA_NS = "http://search.yahoo.com/mrss/"
THR_NS = "http://purl.org/syndication/thread/1.0"

ET.register_namespace("", ATOM_NS)
ET.register_namespace("media", MEDIA_NS)
ET.register_namespace("thr", THR_NS)

Filter = Optional[Literal["include", "exclude"]]


@dataclass
class FeedConfig:
    base_url: str

    @property
    def root(self) -> str:
        return self.base_url.rstrip("/")

    def entry_uri(self, uuid: str) -> str:
        return f"{self.root}/feed/{uuid}"

    def image_uri(self, ref: str) -> str:
        return f"{self.root}/files/{ref}"


def extract_tags(content: str) -> List[str]:
    """Hashtags in `content`, without the '#', in order of appearance."""
    return TAG_RE.findall(content or "")


class FeedClient:
    """
    Local syndication feed adapter.

    "Publishing" stores one `post` document per message; a reply stores the
    uuid of the previous entry in `reply_to`, which the Atom output renders as
    a thr:in-reply-to element.
    """

    name = "feed"

    def __init__(self, cfg: FeedConfig, documents: DocumentStore):
        self.cfg = cfg
        self.documents = documents

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        content = (message.content or "").strip()
        payload = {
            "content": content,
            "link": message.link,
            "language": language,
            "tags": extract_tags(content),
            "images": list(message.images),
            "reply_to": reply_to.id if reply_to else None,
        }

        logger.info("Adding feed entry: %s", preview(content))
        try:
            doc = self.documents.create(kind=POST_KIND, payload=payload, tags=payload["tags"])
        except ApiError:
            raise
        except (OSError, ValueError) as e:
            logger.exception("FeedClient: failed to save feed entry")
            raise TransportError.from_exception(e, target=self.name, action="save feed entry") from e

        return PublishedRef(
            platform=self.name,
            id=doc.uuid,
            uri=self.cfg.entry_uri(doc.uuid),
            reply_to_id=reply_to.id if reply_to else None,
            root=reply_to.thread_root if reply_to else None,
            raw=payload,
        )

    # ---------------- Atom ----------------

    @staticmethod
    def _matches(doc: Document, filter_by_links: Filter, filter_by_images: Filter) -> bool:
        has_link = bool(doc.payload.get("link"))
        has_images = bool(doc.payload.get("images"))
        if filter_by_links == "include" and not has_link:
            return False
        if filter_by_links == "exclude" and has_link:
            return False
        if filter_by_images == "include" and not has_images:
            return False
        if filter_by_images == "exclude" and has_images:
            return False
        return True

    def _entry_html(self, doc: Document) -> str:
        content = doc.payload.get("content") or ""
        parts = [f"<p>{html.escape(content)}</p>"]
        link = doc.payload.get("link")
        if link:
            href = html.escape(link, quote=True)
            parts.append(f'<p><a href="{href}">{href}</a></p>')
        for ref in doc.payload.get("images") or []:
            parts.append(f'<p><img src="{html.escape(self.cfg.image_uri(ref), quote=True)}" /></p>')
        return "".join(parts)

    def render_atom(self, filter_by_links: Filter = None, filter_by_images: Filter = None) -> str:
        """
        Render stored entries (newest first) as an Atom feed.

        filter_by_links / filter_by_images: "include" keeps only entries that
        have links / images, "exclude" drops them, None keeps everything.
        """
        docs = [
            d
            for d in self.documents.get_all(kind=POST_KIND)
            if self._matches(d, filter_by_links, filter_by_images)
        ]
        docs.sort(key=lambda d: d.created_at, reverse=True)

        host = re.sub(r"^https?://", "", self.cfg.root)
        feed = ET.Element(f"{{{ATOM_NS}}}feed")
        ET.SubElement(feed, f"{{{ATOM_NS}}}title").text = f"Feed of {host}"
        ET.SubElement(feed, f"{{{ATOM_NS}}}id").text = f"{self.cfg.root}/feed"
        ET.SubElement(feed, f"{{{ATOM_NS}}}link", href=self.cfg.root)
        updated = docs[0].created_at if docs else datetime.now(pytz.utc).isoformat()
        ET.SubElement(feed, f"{{{ATOM_NS}}}updated").text = updated

        for doc in docs:
            content = doc.payload.get("content") or ""
            uri = self.cfg.entry_uri(doc.uuid)

            entry = ET.SubElement(feed, f"{{{ATOM_NS}}}entry")
            title = content[:100] + ("..." if len(content) > 100 else "")
            ET.SubElement(entry, f"{{{ATOM_NS}}}title").text = title
            ET.SubElement(entry, f"{{{ATOM_NS}}}id").text = uri
            ET.SubElement(entry, f"{{{ATOM_NS}}}link", href=uri)
            ET.SubElement(entry, f"{{{ATOM_NS}}}published").text = doc.created_at
            ET.SubElement(entry, f"{{{ATOM_NS}}}updated").text = doc.created_at
            ET.SubElement(entry, f"{{{ATOM_NS}}}content", type="html").text = self._entry_html(doc)

            for tag in doc.payload.get("tags") or []:
                ET.SubElement(entry, f"{{{ATOM_NS}}}category", term=tag)

            for ref in doc.payload.get("images") or []:
                ET.SubElement(entry, f"{{{MEDIA_NS}}}content", url=self.cfg.image_uri(ref), medium="image")

            parent = doc.payload.get("reply_to")
            if parent:
                parent_uri = self.cfg.entry_uri(parent)
                ET.SubElement(entry, f"{{{THR_NS}}}in-reply-to", ref=parent_uri, href=parent_uri)

        return ET.tostring(feed, encoding="unicode", xml_declaration=True)
