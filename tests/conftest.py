"""Shared pytest fixtures and configuration

This file contains fixtures that can be used across all test files.
Pytest automatically discovers this file and makes fixtures available.
"""

import io
import json
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest
from PIL import Image

from core.models import PublishedRef
from storage.documents import JsonDocumentStore
from storage.images import ImageFile

# ==================== Fake Adapters ====================


class EchoAdapter:
    """Adapter that publishes nothing and returns ids "<name>-<n>"; records every call."""

    def __init__(self, name):
        self.name = name
        self.calls = []
        self._lock = threading.Lock()

    def publish(self, message, reply_to=None, language=None):
        with self._lock:
            self.calls.append({"message": message, "reply_to": reply_to, "language": language})
            n = len(self.calls)
        return PublishedRef(
            platform=self.name,
            id=f"{self.name}-{n}",
            cid=f"cid-{n}",
            root=reply_to.thread_root if reply_to else None,
            reply_to_id=reply_to.id if reply_to else None,
        )


class FailingAdapter(EchoAdapter):
    """Echoes until call number `fail_on`, then raises `error`."""

    def __init__(self, name, error, fail_on=1):
        super().__init__(name)
        self.error = error
        self.fail_on = fail_on

    def publish(self, message, reply_to=None, language=None):
        if len(self.calls) + 1 >= self.fail_on:
            self.calls.append({"message": message, "reply_to": reply_to, "language": language})
            raise self.error
        return super().publish(message, reply_to=reply_to, language=language)


@pytest.fixture
def echo_adapter():
    """Factory fixture: echo_adapter("mastodon") -> EchoAdapter"""
    return EchoAdapter


@pytest.fixture
def failing_adapter():
    """Factory fixture: failing_adapter("bluesky", RequestError(...), fail_on=2)"""
    return FailingAdapter


# ==================== Storage Fixtures ====================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def png_bytes():
    """A real 4x3 PNG image"""
    buf = io.BytesIO()
    Image.new("RGB", (4, 3), color=(200, 16, 46)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def image_file(png_bytes):
    return ImageFile(
        ref="goal.png",
        data=png_bytes,
        mimetype="image/png",
        width=4,
        height=3,
        alt_text="A red square",
    )


@pytest.fixture
def mock_image_store(image_file):
    """ImageStore whose read_image() always returns `image_file`"""
    store = Mock()
    store.read_image.return_value = image_file
    return store


@pytest.fixture
def memory_documents():
    """In-memory JsonDocumentStore (no file)"""
    return JsonDocumentStore()


# ==================== HTTP Fixtures ====================


def make_response(status_code=200, json_data=None, text="", headers=None, content=None):
    """Build a Mock shaped like requests.Response"""
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = json_data if json_data is not None else {}
    resp.text = text
    resp.headers = headers or {}
    resp.content = content if content is not None else (b"{}" if json_data is not None else b"")
    return resp


@pytest.fixture
def response():
    """Factory fixture for requests.Response-like mocks"""
    return make_response


@pytest.fixture
def mock_sessions():
    """SessionFactory stand-in: mock_sessions.get() returns the same Mock session"""
    session = Mock()
    sessions = Mock()
    sessions.get.return_value = session
    return sessions


# ==================== Time Fixtures ====================


@pytest.fixture
def frozen_time():
    """Freeze time for testing (requires freezegun)"""
    from freezegun import freeze_time

    frozen = freeze_time("2025-10-31 20:00:00")
    frozen.start()

    yield datetime(2025, 10, 31, 20, 0, 0)

    frozen.stop()


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow")


# ==================== Helper Functions ====================


@pytest.fixture
def assert_valid_json():
    """Fixture that provides a helper to validate JSON files"""

    def _assert_valid_json(file_path):
        """Validate that a file contains valid JSON"""
        with open(file_path) as f:
            return json.load(f)  # Will raise if invalid

    return _assert_valid_json
