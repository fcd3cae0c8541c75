# core/chain.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from core.errors import ApiError
from core.models import Failure, Message, PublishedRef, Success, TargetResult

if TYPE_CHECKING:
    from socials.base import PlatformAdapter

logger = logging.getLogger(__name__)


def publish_thread(
    messages: Sequence[Message],
    adapter: "PlatformAdapter",
    language: Optional[str] = None,
) -> TargetResult:
    """
    Publish `messages` to one adapter as a chained thread.

    Message 0 is published on its own; every following message is published
    with `reply_to` set to the ref returned for the message right before it.
    The first ApiError stops the chain: remaining messages are never attempted.
    """
    name = getattr(adapter, "name", type(adapter).__name__)
    results: list[PublishedRef] = []
    parent: Optional[PublishedRef] = None

    for index, message in enumerate(messages):
        try:
            ref = adapter.publish(message, reply_to=parent, language=language)
        except ApiError as err:
            err.with_target(name)
            logger.warning(
                "Thread to %s stopped at message %d/%d: %s (status=%s)",
                name,
                index + 1,
                len(messages),
                err.message,
                err.status,
            )
            return Failure(err)

        logger.info("Published message %d/%d to %s → %s", index + 1, len(messages), name, ref.id)
        results.append(ref)
        parent = ref

    return Success(results)
