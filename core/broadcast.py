# core/broadcast.py
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from core.chain import publish_thread
from core.errors import NotConfiguredError, TransportError
from core.models import CompositeResult, Failure, PostRequest, TargetName, TargetResult
from core.validation import DEFAULT_LIMITS, ValidationLimits, validate

if TYPE_CHECKING:
    from socials.base import PlatformAdapter

logger = logging.getLogger(__name__)


async def _run_target(target: TargetName, adapter: "PlatformAdapter", request: PostRequest) -> TargetResult:
    """
    One broadcast task: run the whole thread against a single adapter.

    Never raises. Anything the adapter lets escape becomes this target's
    Failure, so a broken target can't cancel its siblings.
    """
    try:
        return await asyncio.to_thread(
            publish_thread,
            request.messages,
            adapter,
            language=request.language,
        )
    except Exception as exc:
        logger.exception("Unexpected error while publishing to %s", target.value)
        return Failure(TransportError.from_exception(exc, target=target.value))


async def broadcast(
    request: PostRequest,
    adapters: Mapping[TargetName, Optional["PlatformAdapter"]],
    limits: ValidationLimits = DEFAULT_LIMITS,
) -> CompositeResult:
    """
    Validate `request`, then publish it to every requested target concurrently.

    - Validation failure: returned immediately, no adapter is touched.
    - Target without an adapter: NotConfiguredError (503) for that target only.
    - Each configured target runs publish_thread() in its own task; tasks are
      joined together and can't affect one another.
    """
    error = validate(request, limits)
    if error is not None:
        logger.warning("Rejected post request before publishing: %s", error.message)
        return CompositeResult(rejected=error)

    targets = request.target_names()
    outcomes: Dict[TargetName, TargetResult] = {}
    tasks: Dict[TargetName, asyncio.Task] = {}

    for target in targets:
        adapter = adapters.get(target)
        if adapter is None:
            logger.warning("Target %s requested but not configured.", target.value)
            outcomes[target] = Failure(NotConfiguredError.for_target(target.value))
            continue
        tasks[target] = asyncio.create_task(_run_target(target, adapter, request))

    if tasks:
        logger.info(
            "Broadcasting %d message(s) to %s",
            len(request.messages),
            ", ".join(t.value for t in tasks),
        )
        results = await asyncio.gather(*tasks.values(), return_exceptions=True)
        for target, result in zip(tasks, results):
            if isinstance(result, BaseException):
                # _run_target already converts Exception; this is cancellation & co.
                logger.error("Task for %s ended abnormally: %r", target.value, result)
                result = Failure(TransportError.from_exception(result, target=target.value))
            outcomes[target] = result

    # Report in request order
    ordered = {t: outcomes[t] for t in targets if t in outcomes}
    composite = CompositeResult(outcomes=ordered)

    if composite.ok:
        logger.info("Broadcast succeeded on %s", ", ".join(t.value for t in ordered) or "no targets")
    else:
        logger.warning(
            "Broadcast finished with failures (status=%s): %s",
            composite.status,
            {t.value: f.error.message for t, f in composite.failures.items()},
        )
    return composite


def broadcast_sync(
    request: PostRequest,
    adapters: Mapping[TargetName, Optional["PlatformAdapter"]],
    limits: ValidationLimits = DEFAULT_LIMITS,
) -> CompositeResult:
    """Blocking wrapper around broadcast() for callers without an event loop."""
    return asyncio.run(broadcast(request, adapters, limits))
