# core/validation.py
"""
Pre-flight validation of a PostRequest.

Everything that would make a target fail *structurally* is rejected here,
before any network call, so a thread never ends up half-published across
platforms (there is no cross-platform rollback).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from core.errors import ValidationError
from core.models import PostRequest, TargetName

logger = logging.getLogger(__name__)

# LinkedIn: one root post plus at most one follow-up comment. Not configurable.
LINKEDIN_MAX_MESSAGES = 2


@dataclass(frozen=True)
class ValidationLimits:
    max_content_length: int = 1000
    max_images: int = 4
    # unconfirmed platform ceiling, override via limits.linkedin_comment_max_length
    linkedin_comment_max_length: int = 1250
    linkedin_comment_max_images: int = 1

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]]) -> "ValidationLimits":
        """Build limits from the optional `limits:` section of config.yaml (unknown keys ignored)."""
        if not cfg:
            return cls()
        known = {f.name for f in fields(cls)}
        overrides = {k: int(v) for k, v in cfg.items() if k in known and v is not None}
        return cls(**overrides)


DEFAULT_LIMITS = ValidationLimits()


def validate(request: PostRequest, limits: ValidationLimits = DEFAULT_LIMITS) -> Optional[ValidationError]:
    """
    Check `request` against the limits of every requested target.

    Pure function: returns the first violated rule as a ValidationError, or None.
    Rule order: empty thread, per-message sanity, LinkedIn thread length,
    LinkedIn follow-up shape, unknown targets.
    """
    messages = request.messages

    if not messages:
        return ValidationError("messages must not be empty")

    for index, message in enumerate(messages):
        content = message.content or ""
        if not content.strip() and not message.images and not message.link:
            return ValidationError(f"message {index + 1} has no content, link or images")
        if len(content) > limits.max_content_length:
            return ValidationError(
                f"message {index + 1} is too long ({len(content)} > {limits.max_content_length} characters)"
            )
        if len(message.images) > limits.max_images:
            return ValidationError(
                f"message {index + 1} has too many images ({len(message.images)} > {limits.max_images})"
            )

    if request.has_target(TargetName.LINKEDIN):
        if len(messages) > LINKEDIN_MAX_MESSAGES:
            return ValidationError(
                f"linkedin supports at most {LINKEDIN_MAX_MESSAGES} messages "
                f"(a post and one follow-up comment), got {len(messages)}",
                target=TargetName.LINKEDIN.value,
            )

        if len(messages) == 2:
            follow_up = messages[1]
            if len(follow_up.content) > limits.linkedin_comment_max_length:
                return ValidationError(
                    f"linkedin follow-up comment is too long "
                    f"({len(follow_up.content)} > {limits.linkedin_comment_max_length} characters)",
                    target=TargetName.LINKEDIN.value,
                )
            if len(follow_up.images) > limits.linkedin_comment_max_images:
                return ValidationError(
                    f"linkedin follow-up comment supports at most "
                    f"{limits.linkedin_comment_max_images} image(s), got {len(follow_up.images)}",
                    target=TargetName.LINKEDIN.value,
                )

    unknown = [name for name in request.targets if TargetName.lookup(name) is None]
    if unknown:
        return ValidationError(f"unknown target(s): {', '.join(unknown)}")

    logger.debug("Request passed validation: targets=%s messages=%d", list(request.targets), len(messages))
    return None
