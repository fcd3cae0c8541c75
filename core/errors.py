# core/errors.py
from __future__ import annotations

from typing import Any, Optional


class ApiError(Exception):
    """
    Base error for anything that prevents a message from being published.

    status:   HTTP-ish status code surfaced to the caller
    target:   target name ("bluesky", "linkedin", ...) when known
    message:  human readable, safe to show to the end user
    raw_body: original response body from the remote platform (diagnostics only)
    """

    default_status: int = 500

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        target: Optional[str] = None,
        raw_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = int(status if status is not None else self.default_status)
        self.target = target
        self.raw_body = raw_body

    def with_target(self, target: str) -> "ApiError":
        """Label the error with a target if it doesn't carry one already."""
        if self.target is None:
            self.target = target
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "error",
            "module": self.target,
            "status": self.status,
            "error": self.message,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, target={self.target!r}, message={self.message!r})"


class ValidationError(ApiError):
    """Request is malformed or violates a platform contract. Never reaches the network."""

    default_status = 400


class NotConfiguredError(ApiError):
    """Target was requested but nothing is configured for it."""

    default_status = 503

    @classmethod
    def for_target(cls, target: str) -> "NotConfiguredError":
        return cls(f"{target} not configured", target=target)


class RequestError(ApiError):
    """Remote platform answered with a non-success status."""

    default_status = 502


class TransportError(ApiError):
    """Network, timeout or serialization failure while talking to a platform."""

    default_status = 500

    @classmethod
    def from_exception(cls, exc: BaseException, target: Optional[str] = None, action: str = "publish") -> "TransportError":
        # Exception details go to the logs, not to the caller.
        name = target or "platform"
        return cls(f"Failed to {action} to {name} ({type(exc).__name__})", target=target)


class CompositeError(ApiError):
    """
    At least one target failed during a broadcast.

    `responses` holds every per-target outcome (successes included) in the
    JSON shape returned to the caller.
    """

    def __init__(self, message: str, status: int, responses: list[dict[str, Any]]):
        super().__init__(message, status=status, target="publish")
        self.responses = responses

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["responses"] = self.responses
        return out
