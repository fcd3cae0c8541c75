"""
Tests for the local feed adapter and its Atom rendering
"""

import xml.etree.ElementTree as ET

import pytest

from core.errors import TransportError
from core.models import Message, PublishedRef
from socials.feed_client import ATOM_NS, MEDIA_NS, THR_NS, FeedClient, FeedConfig, extract_tags

NS = {"atom": ATOM_NS, "media": MEDIA_NS, "thr": THR_NS}


@pytest.fixture
def feed(memory_documents):
    return FeedClient(FeedConfig(base_url="https://example.com/"), documents=memory_documents)


class TestPublish:
    def test_entry_is_stored(self, feed, memory_documents):
        ref = feed.publish(Message(content="Goal! #NJDevils #NHL", link="https://nhl.com", images=("a.png",)), language="en")

        doc = memory_documents.get(ref.id)
        assert ref.uri == f"https://example.com/feed/{ref.id}"
        assert doc.kind == "post"
        assert doc.payload == {
            "content": "Goal! #NJDevils #NHL",
            "link": "https://nhl.com",
            "language": "en",
            "tags": ["NJDevils", "NHL"],
            "images": ["a.png"],
            "reply_to": None,
        }

    def test_reply_points_at_previous_entry(self, feed, memory_documents):
        first = feed.publish(Message(content="one"))
        second = feed.publish(Message(content="two"), reply_to=first)

        assert memory_documents.get(second.id).payload["reply_to"] == first.id
        assert second.thread_root is first

    def test_store_failure_is_transport_error(self, feed, memory_documents, monkeypatch):
        def broken(**kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(memory_documents, "create", broken)

        with pytest.raises(TransportError) as exc:
            feed.publish(Message(content="x"))

        assert exc.value.target == "feed"

    def test_extract_tags(self):
        assert extract_tags("#start middle#no #end_1") == ["start", "end_1"]


class TestAtom:
    def test_render(self, feed, frozen_time):
        root = feed.publish(Message(content="Hello <world> #hi", link="https://nhl.com", images=("a.png",)))
        feed.publish(Message(content="Reply"), reply_to=root)

        xml = feed.render_atom()
        doc = ET.fromstring(xml)

        assert doc.find("atom:title", NS).text == "Feed of example.com"
        entries = doc.findall("atom:entry", NS)
        assert len(entries) == 2
        by_title = {e.find("atom:title", NS).text: e for e in entries}

        first = by_title["Hello <world> #hi"]
        assert first.find("atom:link", NS).get("href") == root.uri
        assert first.find("atom:category", NS).get("term") == "hi"
        media = first.find("media:content", NS)
        assert media.get("url") == "https://example.com/files/a.png"
        assert "&lt;world&gt;" in first.find("atom:content", NS).text
        assert first.find("atom:published", NS).text.startswith("2025-10-31T20:00:00")

        reply = by_title["Reply"]
        in_reply_to = reply.find("thr:in-reply-to", NS)
        assert in_reply_to.get("ref") == root.uri

    def test_long_titles_are_cut(self, feed):
        feed.publish(Message(content="x" * 150))
        entry = ET.fromstring(feed.render_atom()).find("atom:entry", NS)
        assert entry.find("atom:title", NS).text == "x" * 100 + "..."

    def test_filters(self, feed):
        feed.publish(Message(content="plain"))
        feed.publish(Message(content="linked", link="https://nhl.com"))
        feed.publish(Message(content="pic", images=("a.png",)))

        def titles(**kwargs):
            doc = ET.fromstring(feed.render_atom(**kwargs))
            return sorted(e.find("atom:title", NS).text for e in doc.findall("atom:entry", NS))

        assert titles(filter_by_links="include") == ["linked"]
        assert titles(filter_by_links="exclude") == ["pic", "plain"]
        assert titles(filter_by_images="include") == ["pic"]
        assert titles(filter_by_images="exclude", filter_by_links="exclude") == ["plain"]

    def test_empty_feed(self, feed):
        doc = ET.fromstring(feed.render_atom())
        assert doc.findall("atom:entry", NS) == []
        assert doc.find("atom:updated", NS).text
