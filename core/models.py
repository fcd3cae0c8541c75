# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from core.errors import ApiError, CompositeError


def _as_list(value: Any) -> list:
    """JSON arrays pass through; a bare value (e.g. "targets": "bluesky") becomes a one-item list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class TargetName(str, Enum):
    BLUESKY = "bluesky"
    MASTODON = "mastodon"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    FEED = "feed"

    @classmethod
    def lookup(cls, name: str) -> Optional["TargetName"]:
        """Return the TargetName for `name` (case-insensitive), or None if unknown."""
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Message:
    """
    One message of a thread.

    `images` are opaque references understood by the image store (upload uuids,
    file names, ...). Order matters: images are attached in this order.
    """

    content: str
    link: Optional[str] = None
    images: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            content=data.get("content") or "",
            link=data.get("link") or None,
            images=tuple(_as_list(data.get("images") or None)),
        )


@dataclass(frozen=True)
class PostRequest:
    """
    A logical post: message 0 is the root, message i replies to message i-1.

    `targets` keeps the names as received (lower-cased); unknown names are
    rejected by the validator rather than dropped here.
    """

    targets: tuple[str, ...]
    messages: tuple[Message, ...]
    language: Optional[str] = None

    @classmethod
    def create(
        cls,
        targets: Iterable[Union[str, TargetName]],
        messages: Iterable[Message],
        language: Optional[str] = None,
    ) -> "PostRequest":
        names: list[str] = []
        for t in targets:
            name = t.value if isinstance(t, TargetName) else str(t).strip().lower()
            if name not in names:
                names.append(name)
        return cls(targets=tuple(names), messages=tuple(messages), language=language)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostRequest":
        """
        Decode the JSON request shape:
            {"targets": [...], "language": "en", "messages": [{"content": ..., "link": ..., "images": [...]}]}

        The single-message shorthand {"content": ..., "link": ..., "images": ...} is accepted too.
        """
        raw_messages = data.get("messages")
        if raw_messages is None and "content" in data:
            raw_messages = [data]
        return cls.create(
            targets=_as_list(data.get("targets") or None),
            messages=[Message.from_dict(m) for m in _as_list(raw_messages)],
            language=data.get("language") or None,
        )

    def target_names(self) -> list[TargetName]:
        """Known targets in request order (unknown names are skipped; validate() reports them)."""
        out: list[TargetName] = []
        for name in self.targets:
            t = TargetName.lookup(name)
            if t is not None and t not in out:
                out.append(t)
        return out

    def has_target(self, target: TargetName) -> bool:
        return target.value in self.targets


@dataclass
class PublishedRef:
    """Normalized reference to one published message on one platform.

    platform:    target name
    id:          canonical id for the platform (status id, tweet id, at:// uri, urn, feed uuid)
    uri:         user-facing link, if the platform gives us one
    cid:         Bluesky CID (needed to build reply strong refs)
    root:        ref of the thread root when this message is a reply
    reply_to_id: id of the message this one replies to / comments on
    raw:         original payload returned by the platform (debugging/forensics)
    """

    platform: str
    id: str
    uri: Optional[str] = None
    cid: Optional[str] = None
    root: Optional["PublishedRef"] = None
    reply_to_id: Optional[str] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @property
    def thread_root(self) -> "PublishedRef":
        return self.root or self

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id}
        if self.uri:
            out["uri"] = self.uri
        if self.cid:
            out["cid"] = self.cid
        if self.reply_to_id:
            out["replyToId"] = self.reply_to_id
        return out


@dataclass
class Success:
    refs: List[PublishedRef]
    ok = True

    def to_dict(self, target: str) -> Dict[str, Any]:
        return {
            "type": "success",
            "module": target,
            "result": {"messages": [r.to_dict() for r in self.refs]},
        }


@dataclass
class Failure:
    error: ApiError
    ok = False

    def to_dict(self, target: str) -> Dict[str, Any]:
        out = self.error.to_dict()
        out["module"] = self.error.target or target
        return out


TargetResult = Union[Success, Failure]


@dataclass
class CompositeResult:
    """
    Merged outcome of one broadcast.

    `rejected` is set when the request failed pre-flight validation, in which
    case `outcomes` is empty and nothing was published.
    """

    outcomes: Dict[TargetName, TargetResult] = field(default_factory=dict)
    rejected: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.rejected is None and all(o.ok for o in self.outcomes.values())

    @property
    def failures(self) -> Dict[TargetName, Failure]:
        return {t: o for t, o in self.outcomes.items() if isinstance(o, Failure)}

    @property
    def successes(self) -> Dict[TargetName, List[PublishedRef]]:
        return {t: o.refs for t, o in self.outcomes.items() if isinstance(o, Success)}

    @property
    def status(self) -> int:
        if self.rejected is not None:
            return self.rejected.status
        failures = self.failures
        if failures:
            return max(f.error.status for f in failures.values())
        return 200

    @property
    def error(self) -> Optional[ApiError]:
        """The error to surface to the caller, or None when every target succeeded."""
        if self.rejected is not None:
            return self.rejected
        failures = self.failures
        if not failures:
            return None
        names = ", ".join(t.value for t in failures)
        return CompositeError(
            f"Failed to create post via {names}.",
            status=self.status,
            responses=[o.to_dict(t.value) for t, o in self.outcomes.items()],
        )

    def to_dict(self) -> Dict[str, Any]:
        err = self.error
        if err is not None:
            return err.to_dict()
        return {t.value: {"module": t.value, "messages": [r.to_dict() for r in refs]} for t, refs in self.successes.items()}
