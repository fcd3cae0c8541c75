# socials/bluesky_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from atproto import Client
from atproto import models as at_models
from atproto_client.exceptions import AtProtocolError

from core.errors import ApiError, RequestError, TransportError, ValidationError
from core.models import Message, PublishedRef
from storage.images import ImageStore

from .base import preview, text_with_link
from .link_preview import LinkPreviewParser
from .richtext import LINK_DISPLAY_LENGTH, Facet, LinkFeature, MentionFeature, RichText, build_rich_text
from utils.sessions import TokenCache

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = "https://bsky.social"


@dataclass
class BlueskyConfig:
    handle: str
    app_password: str
    service_url: str | None = None
    link_display_length: int = LINK_DISPLAY_LENGTH


def _parse_at_uri(uri: str) -> tuple[str, str, str]:
    """
    Parse an at:// URI:
      at://did:plc:XXXX/app.bsky.feed.post/3m4abc... -> (repo_did, collection, rkey)
    """
    if not uri.startswith("at://"):
        raise ValueError(f"Not an at:// uri: {uri}")
    parts = uri[5:].split("/")  # strip 'at://'
    if len(parts) < 3:
        raise ValueError(f"Malformed at:// uri: {uri}")
    repo_did = parts[0]
    collection = "/".join(parts[1:-1])
    rkey = parts[-1]
    return repo_did, collection, rkey


def web_url_for(uri: str) -> str | None:
    """https://bsky.app link for an at:// post uri (None if it can't be parsed)."""
    try:
        did, _, rkey = _parse_at_uri(uri)
    except ValueError:
        return None
    return f"https://bsky.app/profile/{did}/post/{rkey}"


def _strong_ref(ref: PublishedRef) -> at_models.ComAtprotoRepoStrongRef.Main:
    if not ref.cid:
        raise ApiError(f"Missing cid for Bluesky post {ref.id}", status=500, target="bluesky")
    return at_models.ComAtprotoRepoStrongRef.Main(uri=ref.id, cid=ref.cid)


def to_facet_model(facet: Facet) -> at_models.AppBskyRichtextFacet.Main:
    feature = facet.feature
    if isinstance(feature, LinkFeature):
        model: Any = at_models.AppBskyRichtextFacet.Link(uri=feature.uri)
    elif isinstance(feature, MentionFeature):
        model = at_models.AppBskyRichtextFacet.Mention(did=feature.did)
    else:
        model = at_models.AppBskyRichtextFacet.Tag(tag=feature.tag)
    return at_models.AppBskyRichtextFacet.Main(
        index=at_models.AppBskyRichtextFacet.ByteSlice(byte_start=facet.byte_start, byte_end=facet.byte_end),
        features=[model],
    )


class BlueskyClient:
    """
    Bluesky adapter over the atproto SDK:
      - Logs in lazily, once per adapter (single-flight), the SDK refreshes the session after that.
      - Builds facets with socials.richtext (short link display text, byte offsets).
      - Uploads images as blobs; builds an external link card only when there are no images.
      - Replies carry root + parent strong refs.
    """

    name = "bluesky"

    # Bluesky currently limits blobs to ~1,000,000 bytes (~976.56 KiB).
    # Use a slightly lower safety margin to avoid 400 BlobTooLarge errors.
    MAX_BLOB_BYTES: int = 975 * 1024
    MAX_IMAGES: int = 4

    def __init__(
        self,
        cfg: BlueskyConfig,
        images: ImageStore,
        link_previews: Optional[LinkPreviewParser] = None,
        client: Optional[Client] = None,
    ):
        self.cfg = cfg
        self.images = images
        self.link_previews = link_previews
        self.client = client or Client(cfg.service_url or DEFAULT_SERVICE_URL)
        self._session = TokenCache(self._login)

    # ---------------- Session helpers ----------------

    def _login(self):
        profile = self.client.login(self.cfg.handle, self.cfg.app_password)
        logger.info("Authenticated to Bluesky as %s", self.cfg.handle)
        return profile

    def resolve_handle(self, handle: str) -> Optional[str]:
        """Handle -> DID, used for mention facets."""
        self._session.get()
        resp = self.client.resolve_handle(handle)
        return getattr(resp, "did", None)

    # ---------------- Posting helpers ----------------

    def build_rich_text(self, text: str) -> RichText:
        return build_rich_text(
            text,
            resolver=self.resolve_handle,
            link_display_length=self.cfg.link_display_length,
        )

    def _reply_ref(self, reply_to: PublishedRef) -> at_models.AppBskyFeedPost.ReplyRef:
        return at_models.AppBskyFeedPost.ReplyRef(
            root=_strong_ref(reply_to.thread_root),
            parent=_strong_ref(reply_to),
        )

    def _upload_images(self, refs: tuple[str, ...]) -> at_models.AppBskyEmbedImages.Main | None:
        if not refs:
            return None

        images: List[at_models.AppBskyEmbedImages.Image] = []
        for ref in refs[: self.MAX_IMAGES]:
            img = self.images.read_image(ref)

            if img.size > self.MAX_BLOB_BYTES:
                raise ValidationError(
                    f"Image {ref} is too large for Bluesky ({img.size} bytes)",
                    status=413,
                    target=self.name,
                )

            uploaded = self.client.upload_blob(img.data)
            aspect = None
            if img.width > 0 and img.height > 0:
                aspect = at_models.AppBskyEmbedDefs.AspectRatio(width=img.width, height=img.height)

            images.append(
                at_models.AppBskyEmbedImages.Image(
                    image=uploaded.blob,
                    alt=img.alt_text or "",
                    aspect_ratio=aspect,
                )
            )

        return at_models.AppBskyEmbedImages.Main(images=images)

    def _link_card(self, link: str) -> at_models.AppBskyEmbedExternal.Main | None:
        """External embed for `link`, or None if there's no usable preview. Never fatal."""
        if self.link_previews is None:
            return None

        card = self.link_previews.fetch(link)
        if card is None:
            return None

        thumb = None
        if card.image:
            fetched = self.link_previews.fetch_image(card.image)
            if fetched and len(fetched[0]) <= self.MAX_BLOB_BYTES:
                try:
                    thumb = self.client.upload_blob(fetched[0]).blob
                except AtProtocolError as e:
                    logger.warning("BlueskyClient: failed to upload link preview image %s: %s", card.image, e)

        return at_models.AppBskyEmbedExternal.Main(
            external=at_models.AppBskyEmbedExternal.External(
                uri=link,
                title=card.title,
                description=card.description or "",
                thumb=thumb,
            )
        )

    # ---------------- Public API ----------------

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        """
        Create a Bluesky post (text, optional images or link card). Returns a PublishedRef.

        Raises ApiError subclasses; SDK errors carrying an HTTP response become
        RequestError with that status, anything else a TransportError.
        """
        try:
            return self._publish(message, reply_to, language)
        except ApiError:
            raise
        except AtProtocolError as e:
            response = getattr(e, "response", None)
            status = getattr(response, "status_code", None)
            if status:
                body = getattr(response, "content", None)
                logger.warning("Failed to post to Bluesky: status=%s body=%s", status, body)
                raise RequestError(
                    "Failed to create post",
                    status=status,
                    target=self.name,
                    raw_body=str(body) if body is not None else None,
                ) from e
            logger.exception("Failed to post to Bluesky")
            raise TransportError.from_exception(e, target=self.name) from e

    def _publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef],
        language: Optional[str],
    ) -> PublishedRef:
        profile = self._session.get()

        # Reply refs first: a missing cid must fail before anything is uploaded.
        reply_ref = self._reply_ref(reply_to) if reply_to else None

        embed: Any = self._upload_images(message.images)
        if embed is None and message.link:
            # Bluesky allows one embed per post; images win over the link card.
            embed = self._link_card(message.link)

        rich = self.build_rich_text(text_with_link(message))
        logger.info("Posting to Bluesky: %s", preview(rich.text))

        created = self.client.send_post(
            text=rich.text,
            facets=[to_facet_model(f) for f in rich.facets] or None,
            reply_to=reply_ref,
            embed=embed,
            langs=[language] if language else None,
        )

        uri = str(created.uri)
        cid = str(created.cid) if getattr(created, "cid", None) else None
        if not cid:
            raise ApiError("Missing cid for Bluesky post", status=500, target=self.name)

        logger.debug("Bluesky post created by %s: %s", getattr(profile, "did", self.cfg.handle), uri)
        return PublishedRef(
            platform=self.name,
            id=uri,
            uri=web_url_for(uri),
            cid=cid,
            root=reply_to.thread_root if reply_to else None,
            reply_to_id=reply_to.id if reply_to else None,
            raw={"uri": uri, "cid": cid},
        )
