# socials/publisher.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union
from uuid import uuid4

from core.broadcast import broadcast, broadcast_sync
from core.errors import NotConfiguredError
from core.models import CompositeResult, Message, PostRequest, PublishedRef, TargetName
from core.validation import ValidationLimits
from definitions import DEFAULT_DOCUMENTS_FILE, UPLOADS_DIR
from storage.documents import DocumentStore, JsonDocumentStore
from storage.images import ImageStore, LocalImageStore
from utils.config import load_config, platform_section, resolve_mode

from .base import PlatformAdapter, preview
from .bluesky_client import BlueskyClient, BlueskyConfig
from .feed_client import FeedClient, FeedConfig
from .link_preview import LinkPreviewParser
from .linkedin_client import LinkedInClient, LinkedInConfig
from .mastodon_client import MastodonClient, MastodonConfig
from .platforms import CONFIG_SECTIONS, normalize_target
from .x_client import XClient, XConfig

logger = logging.getLogger(__name__)


class DryRunAdapter:
    """Stands in for a real adapter in nosocial mode: logs what would be posted."""

    def __init__(self, name: str):
        self.name = name

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        verb = "reply" if reply_to else "post"
        if message.content:
            logger.info("[NOSOCIAL] (%s) Would %s → %s", self.name, verb, preview(message.content))
            logger.debug("[NOSOCIAL-FULL] (%s)\n%s", self.name, message.content)
        else:
            logger.info("[NOSOCIAL] (%s) Would %s an image-only update.", self.name, verb)

        return PublishedRef(
            platform=self.name,
            id=f"nosocial-{uuid4()}",
            reply_to_id=reply_to.id if reply_to else None,
            root=reply_to.thread_root if reply_to else None,
        )


class SocialPublisher:
    """
    Config-driven front door to the broadcast orchestrator.

    - Builds one adapter per target enabled under `socials:` in config.yaml,
      using the credentials block for the current mode ("prod" | "debug").
    - nosocial replaces every enabled adapter with a DryRunAdapter.
    - broadcast() is the async entry point; publish() blocks.
    """

    def __init__(
        self,
        config: Union[dict, str, Path],  # accept dict or path to YAML
        mode: Optional[str] = None,  # "prod" | "debug" (overrides YAML)
        nosocial: Optional[bool] = None,  # override YAML script.nosocial
        documents: Optional[DocumentStore] = None,
        images: Optional[ImageStore] = None,
        link_previews: Optional[LinkPreviewParser] = None,
    ):
        # Load config if a path/str was provided
        if isinstance(config, (str, Path)):
            self.cfg: dict = load_config(str(config))
        else:
            self.cfg = dict(config)

        # Resolve mode / nosocial
        cfg_script = self.cfg.get("script", {}) or {}
        self.mode = resolve_mode(self.cfg, mode)
        cfg_nosocial = bool(cfg_script.get("nosocial", False))
        self.nosocial = cfg_nosocial if nosocial is None else bool(nosocial)

        storage_cfg = self.cfg.get("storage", {}) or {}
        self.documents = documents or JsonDocumentStore(storage_cfg.get("documents_file") or DEFAULT_DOCUMENTS_FILE)
        self.images = images or LocalImageStore(storage_cfg.get("images_dir") or UPLOADS_DIR)
        self.link_previews = link_previews
        self.limits = ValidationLimits.from_config(self.cfg.get("limits"))

        self.enabled = self._enabled_targets()
        self.adapters: Dict[TargetName, Optional[PlatformAdapter]] = {t: None for t in TargetName}
        for target in self.enabled:
            self.adapters[target] = DryRunAdapter(target.value) if self.nosocial else self._build(target)

        logger.info(
            "SocialPublisher ready (mode=%s, nosocial=%s): %s",
            self.mode,
            self.nosocial,
            ", ".join(t.value for t, a in self.adapters.items() if a is not None) or "no targets",
        )

    # ---------- construction ----------
    def _enabled_targets(self) -> list[TargetName]:
        socials = self.cfg.get("socials", {}) or {}
        enabled: list[TargetName] = []
        for name, flag in socials.items():
            target = TargetName.lookup(normalize_target(name))
            if target is None:
                logger.warning("Ignoring unknown target %r under socials:", name)
                continue
            if flag and target not in enabled:
                enabled.append(target)
        return enabled

    def _section(self, target: TargetName) -> Dict[str, Any]:
        for name in CONFIG_SECTIONS[target]:
            if name in self.cfg:
                return platform_section(self.cfg, name, self.mode)
        return {}

    def _link_previews(self) -> LinkPreviewParser:
        """The injected parser, or a fresh one per adapter so no two targets share a session."""
        return self.link_previews or LinkPreviewParser()

    def _build(self, target: TargetName) -> Optional[PlatformAdapter]:
        """Adapter for `target`, or None (logged) when its config block is incomplete."""
        c = self._section(target)
        try:
            if target is TargetName.BLUESKY:
                return BlueskyClient(
                    BlueskyConfig(
                        handle=c["handle"],
                        app_password=c["app_password"],
                        service_url=c.get("service_url"),
                    ),
                    images=self.images,
                    link_previews=self._link_previews(),
                )
            if target is TargetName.MASTODON:
                return MastodonClient(
                    MastodonConfig(
                        base_url=c.get("base_url", "https://mastodon.social"),
                        access_token=c["access_token"],
                        visibility=c.get("visibility"),
                    ),
                    images=self.images,
                )
            if target is TargetName.TWITTER:
                return XClient(
                    XConfig(
                        consumer_key=c["consumer_key"],
                        consumer_secret=c["consumer_secret"],
                        access_token=c["access_token"],
                        access_token_secret=c["access_token_secret"],
                    ),
                    images=self.images,
                )
            if target is TargetName.LINKEDIN:
                return LinkedInClient(
                    LinkedInConfig(
                        client_id=c["client_id"],
                        client_secret=c["client_secret"],
                        user=c.get("user", "default"),
                        access_token=c.get("access_token"),
                        refresh_token=c.get("refresh_token"),
                    ),
                    documents=self.documents,
                    images=self.images,
                    link_previews=self._link_previews(),
                )
            if target is TargetName.FEED:
                return FeedClient(FeedConfig(base_url=c["base_url"]), documents=self.documents)
        except KeyError as e:
            logger.error("%s is enabled but its config is missing %s; target disabled.", target.value, e)
        return None

    # ---------- high-level API ----------
    def request(
        self,
        messages: Iterable[Message],
        targets: Union[str, Iterable[str]] = "enabled",
        language: Optional[str] = None,
    ) -> PostRequest:
        """Build a PostRequest; targets="enabled" means every target enabled in config."""
        if isinstance(targets, str):
            names = [t.value for t in self.enabled] if targets == "enabled" else [targets]
        else:
            names = list(targets)
        return PostRequest.create([normalize_target(n) for n in names], messages, language=language)

    async def broadcast(self, request: PostRequest) -> CompositeResult:
        return await broadcast(request, self.adapters, self.limits)

    def publish(self, request: PostRequest) -> CompositeResult:
        return broadcast_sync(request, self.adapters, self.limits)

    def feed(self) -> FeedClient:
        adapter = self.adapters.get(TargetName.FEED)
        if isinstance(adapter, FeedClient):
            return adapter
        # Rendering only reads the document store, so nosocial still gets a feed.
        section = self._section(TargetName.FEED)
        if TargetName.FEED in self.enabled and section.get("base_url"):
            return FeedClient(FeedConfig(base_url=section["base_url"]), documents=self.documents)
        raise NotConfiguredError.for_target(TargetName.FEED.value)

    def render_feed(self, filter_by_links: Optional[str] = None, filter_by_images: Optional[str] = None) -> str:
        return self.feed().render_atom(filter_by_links=filter_by_links, filter_by_images=filter_by_images)

