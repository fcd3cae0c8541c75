"""
Tests for the document store and the local image store
"""

import json

import pytest

from core.errors import ValidationError
from storage.documents import JsonDocumentStore
from storage.images import LocalImageStore


class TestJsonDocumentStore:
    def test_create_and_search(self, temp_dir, frozen_time):
        store = JsonDocumentStore(temp_dir / "docs.json")

        doc = store.create(kind="post", payload={"content": "hi"}, tags=["a"])

        assert store.get(doc.uuid) == doc
        assert doc.created_at == "2025-10-31T20:00:00+00:00"
        assert doc.created_at_dt.year == 2025
        assert store.get_all("post") == [doc]
        assert store.get_all("other") == []

    def test_search_key_upserts(self, temp_dir):
        store = JsonDocumentStore(temp_dir / "docs.json")

        first = store.create(kind="token", payload={"v": 1}, search_key="k")
        second = store.create(kind="token", payload={"v": 2}, search_key="k")

        assert first.uuid == second.uuid
        assert store.search_by_key("k").payload == {"v": 2}
        assert len(store.get_all()) == 1

    def test_persists_across_instances(self, temp_dir, assert_valid_json):
        path = temp_dir / "nested" / "docs.json"
        JsonDocumentStore(path).create(kind="post", payload={"content": "saved"})

        reloaded = JsonDocumentStore(path)

        assert [d.payload["content"] for d in reloaded.get_all()] == ["saved"]
        assert assert_valid_json(path)[0]["kind"] == "post"
        assert not path.with_suffix(".json.tmp").exists()

    def test_memory_only(self, memory_documents):
        memory_documents.create(kind="post", payload={})
        assert memory_documents.path is None
        assert len(memory_documents.get_all()) == 1

    def test_missing_key(self, memory_documents):
        assert memory_documents.search_by_key("nope") is None


class TestLocalImageStore:
    def test_read_png(self, temp_dir, png_bytes):
        (temp_dir / "goal.png").write_bytes(png_bytes)
        (temp_dir / "goal.png.alt.txt").write_text("  A red square \n", encoding="utf-8")

        img = LocalImageStore(temp_dir).read_image("goal.png")

        assert img.data == png_bytes
        assert img.mimetype == "image/png"
        assert (img.width, img.height) == (4, 3)
        assert img.alt_text == "A red square"
        assert img.size == len(png_bytes)
        assert img.filename == "goal.png"

    def test_no_alt_text(self, temp_dir, png_bytes):
        (temp_dir / "a.png").write_bytes(png_bytes)
        assert LocalImageStore(temp_dir).read_image("a.png").alt_text is None

    def test_missing_image(self, temp_dir):
        with pytest.raises(ValidationError) as exc:
            LocalImageStore(temp_dir).read_image("nope.png")
        assert exc.value.status == 404

    def test_path_traversal_rejected(self, temp_dir):
        (temp_dir / "secret.txt").write_text("x")
        store = LocalImageStore(temp_dir / "uploads")

        with pytest.raises(ValidationError) as exc:
            store.read_image("../secret.txt")
        assert exc.value.status == 400

    def test_unreadable_image_keeps_zero_dimensions(self, temp_dir):
        (temp_dir / "broken.jpg").write_bytes(b"not really a jpeg")

        img = LocalImageStore(temp_dir).read_image("broken.jpg")

        assert (img.width, img.height) == (0, 0)
        assert img.mimetype == "image/jpeg"


def test_documents_file_is_a_json_list(temp_dir):
    path = temp_dir / "docs.json"
    JsonDocumentStore(path).create(kind="post", payload={"a": 1}, search_key="s")
    data = json.loads(path.read_text())
    assert data[0]["search_key"] == "s"
