"""
Tests for pre-flight validation of post requests

Everything rejected here must be rejected before any adapter is touched.
"""

import pytest

from core.errors import ValidationError
from core.models import Message, PostRequest
from core.validation import ValidationLimits, validate


def _request(targets, *contents, **kwargs):
    return PostRequest.create(targets, [Message(content=c) for c in contents], **kwargs)


class TestThreadLength:
    """LinkedIn caps a thread at a post plus one comment; nobody else does."""

    @pytest.mark.parametrize("size", [1, 2, 3, 10])
    def test_long_threads_allowed_without_linkedin(self, size):
        request = _request(["bluesky", "mastodon", "twitter", "feed"], *[f"msg {i}" for i in range(size)])
        assert validate(request) is None

    def test_linkedin_post_plus_comment_allowed(self):
        assert validate(_request(["linkedin"], "post", "comment")) is None

    def test_linkedin_three_messages_rejected(self):
        error = validate(_request(["linkedin", "bluesky"], "m0", "m1", "m2"))

        assert isinstance(error, ValidationError)
        assert error.status == 400
        assert error.target == "linkedin"

    def test_linkedin_rejection_ignores_content(self):
        request = PostRequest.create(
            ["linkedin"],
            [Message(content="x", link="https://example.com"), Message(content="y"), Message(content="z")],
        )
        assert isinstance(validate(request), ValidationError)


class TestLinkedInFollowUp:
    def test_comment_too_long(self):
        request = _request(["linkedin"], "post", "c" * 1251)
        error = validate(request)
        assert isinstance(error, ValidationError)
        assert "too long" in error.message

    def test_comment_at_ceiling_allowed(self):
        assert validate(_request(["linkedin"], "post", "c" * 1250)) is None

    def test_comment_ceiling_is_configurable(self):
        limits = ValidationLimits(linkedin_comment_max_length=10)
        assert isinstance(validate(_request(["linkedin"], "post", "c" * 11), limits), ValidationError)

    def test_comment_with_two_images_rejected(self):
        request = PostRequest.create(
            ["linkedin"],
            [Message(content="post"), Message(content="comment", images=("a.png", "b.png"))],
        )
        error = validate(request)
        assert isinstance(error, ValidationError)
        assert "image" in error.message

    def test_comment_rules_only_apply_to_linkedin(self):
        request = PostRequest.create(
            ["mastodon"],
            [Message(content="post"), Message(content="c" * 900, images=("a.png", "b.png"))],
        )
        assert validate(request) is None


class TestMessageSanity:
    def test_empty_messages_rejected(self):
        error = validate(PostRequest.create(["bluesky"], []))
        assert isinstance(error, ValidationError)
        assert error.message == "messages must not be empty"

    def test_blank_message_rejected(self):
        assert isinstance(validate(_request(["bluesky"], "   ")), ValidationError)

    def test_image_only_message_allowed(self):
        request = PostRequest.create(["bluesky"], [Message(content="", images=("a.png",))])
        assert validate(request) is None

    def test_too_many_images(self):
        request = PostRequest.create(["bluesky"], [Message(content="x", images=tuple(f"{i}.png" for i in range(5)))])
        assert isinstance(validate(request), ValidationError)

    def test_content_too_long(self):
        assert isinstance(validate(_request(["bluesky"], "x" * 1001)), ValidationError)


class TestTargets:
    def test_unknown_target_rejected(self):
        error = validate(_request(["bluesky", "myspace"], "hi"))
        assert isinstance(error, ValidationError)
        assert "myspace" in error.message

    def test_targets_are_case_insensitive_and_deduplicated(self):
        request = _request(["Bluesky", "bluesky", "MASTODON"], "hi")
        assert request.targets == ("bluesky", "mastodon")
        assert validate(request) is None


class TestLimitsFromConfig:
    def test_defaults(self):
        assert ValidationLimits.from_config(None) == ValidationLimits()

    def test_overrides_and_unknown_keys(self):
        limits = ValidationLimits.from_config({"linkedin_comment_max_length": "500", "nope": 1})
        assert limits.linkedin_comment_max_length == 500
        assert limits.max_images == 4


def test_linkedin_thread_length_cannot_be_raised_from_config():
    limits = ValidationLimits.from_config({"linkedin_max_messages": 3})
    request = _request(["linkedin"], "a", "b", "c")

    error = validate(request, limits)

    assert isinstance(error, ValidationError)
    assert "at most 2 messages" in error.message


class TestRequestDecoding:
    def test_bare_strings_are_single_items(self):
        request = PostRequest.from_dict(
            {"targets": "bluesky", "messages": [{"content": "hi", "images": "goal.png"}]}
        )

        assert request.targets == ("bluesky",)
        assert request.messages[0].images == ("goal.png",)
        assert validate(request) is None

    def test_lists_are_kept_in_order(self):
        request = PostRequest.from_dict(
            {"targets": ["Mastodon", "bluesky"], "messages": [{"content": "a", "images": ["1.png", "2.png"]}]}
        )

        assert request.targets == ("mastodon", "bluesky")
        assert request.messages[0].images == ("1.png", "2.png")

    def test_single_message_shorthand(self):
        request = PostRequest.from_dict({"targets": ["feed"], "content": "solo", "link": "https://example.com"})

        assert [m.content for m in request.messages] == ["solo"]
        assert request.messages[0].link == "https://example.com"
