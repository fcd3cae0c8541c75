"""
Tests for the Mastodon adapter (requests session is a Mock)
"""

from unittest.mock import patch

import pytest
import requests

from core.errors import RequestError, TransportError, ValidationError
from core.models import Message, PublishedRef
from socials.mastodon_client import MastodonClient, MastodonConfig


@pytest.fixture
def mastodon(mock_image_store, mock_sessions):
    cfg = MastodonConfig(base_url="https://mastodon.example/", access_token="tok", visibility="unlisted")
    return MastodonClient(cfg, images=mock_image_store, sessions=mock_sessions)


@pytest.fixture
def session(mock_sessions):
    return mock_sessions.get.return_value


class TestStatuses:
    def test_text_post(self, mastodon, session, response):
        session.post.return_value = response(200, {"id": "111", "url": "https://mastodon.example/@me/111"})

        ref = mastodon.publish(Message(content="  Hello  ", link="https://example.com"), language="en")

        assert ref.id == "111"
        assert ref.uri == "https://mastodon.example/@me/111"
        url = session.post.call_args.args[0]
        data = session.post.call_args.kwargs["data"]
        assert url == "https://mastodon.example/api/v1/statuses"
        assert data == {
            "status": "Hello\n\nhttps://example.com",
            "language": "en",
            "visibility": "unlisted",
        }

    def test_reply_sets_in_reply_to_id(self, mastodon, session, response):
        session.post.return_value = response(200, {"id": "222"})
        parent = PublishedRef(platform="mastodon", id="111")

        ref = mastodon.publish(Message(content="World"), reply_to=parent)

        assert session.post.call_args.kwargs["data"]["in_reply_to_id"] == "111"
        assert ref.reply_to_id == "111"
        assert ref.thread_root is parent

    def test_error_status_passed_through(self, mastodon, session, response):
        session.post.return_value = response(422, text='{"error":"Validation failed"}')

        with pytest.raises(RequestError) as exc:
            mastodon.publish(Message(content="x"))

        assert exc.value.status == 422
        assert exc.value.raw_body == '{"error":"Validation failed"}'

    def test_network_failure_is_transport_error(self, mastodon, session):
        session.post.side_effect = requests.ConnectionError("connection reset")

        with pytest.raises(TransportError) as exc:
            mastodon.publish(Message(content="x"))

        assert exc.value.status == 500
        assert "connection reset" not in exc.value.message


class TestMedia:
    def test_image_upload_then_status(self, mastodon, session, response, image_file):
        session.post.side_effect = [
            response(200, {"id": "m1"}),
            response(200, {"id": "333"}),
        ]

        mastodon.publish(Message(content="pic", images=("goal.png",)))

        upload_call, status_call = session.post.call_args_list
        assert upload_call.args[0] == "https://mastodon.example/api/v2/media"
        assert upload_call.kwargs["files"]["file"] == ("goal.png", image_file.data, "image/png")
        assert upload_call.kwargs["data"] == {"description": "A red square"}
        assert status_call.kwargs["data"]["media_ids[]"] == ["m1"]

    @patch("socials.mastodon_client.time.sleep")
    def test_async_media_is_polled(self, mock_sleep, mastodon, session, response):
        session.post.side_effect = [
            response(202, {"id": "m2"}),
            response(200, {"id": "444"}),
        ]
        session.get.side_effect = [
            response(202, {"id": "m2"}),
            response(200, {"id": "m2", "url": "https://files/m2.png"}),
        ]

        ref = mastodon.publish(Message(content="pic", images=("goal.png",)))

        assert ref.id == "444"
        assert session.get.call_count == 2
        assert session.get.call_args.args[0] == "https://mastodon.example/api/v1/media/m2"

    @patch("socials.mastodon_client.time.sleep")
    def test_media_processing_timeout(self, mock_sleep, mastodon, session, response):
        mastodon.config.media_poll_attempts = 3
        session.post.return_value = response(202, {"id": "m3"})
        session.get.return_value = response(202, {"id": "m3"})

        with pytest.raises(TransportError) as exc:
            mastodon.publish(Message(content="pic", images=("goal.png",)))

        assert exc.value.message == "Media processing timeout"
        assert session.get.call_count == 3
        # the status was never created
        assert session.post.call_count == 1

    def test_missing_image_is_validation_error(self, mastodon, session, mock_image_store):
        mock_image_store.read_image.side_effect = ValidationError("Failed to read image file: nope.png", status=404)

        with pytest.raises(ValidationError) as exc:
            mastodon.publish(Message(content="pic", images=("nope.png",)))

        assert exc.value.status == 404
        session.post.assert_not_called()
