# socials/x_client.py
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import List, Optional

import tweepy

from core.errors import ApiError, RequestError, TransportError
from core.models import Message, PublishedRef
from storage.images import ImageStore

from .base import preview, text_with_link

logger = logging.getLogger(__name__)


@dataclass
class XConfig:
    consumer_key: str
    consumer_secret: str
    access_token: str
    access_token_secret: str


class XClient:
    """
    X (Twitter) adapter:

    - Uses v1.1 API for media upload (photos) and alt text metadata.
    - Uses v2 API (`Client.create_tweet`) for posting.
    - Replies use in_reply_to_tweet_id of the previous tweet.
    """

    name = "twitter"

    def __init__(
        self,
        cfg: XConfig,
        images: ImageStore,
        api_v1: Optional[tweepy.API] = None,
        client_v2: Optional[tweepy.Client] = None,
    ):
        self.cfg = cfg
        self.images = images

        # v1.1 API for media upload
        if api_v1 is None:
            auth = tweepy.OAuth1UserHandler(
                cfg.consumer_key,
                cfg.consumer_secret,
                cfg.access_token,
                cfg.access_token_secret,
            )
            api_v1 = tweepy.API(auth)
        self.api_v1 = api_v1

        # v2 client for tweeting
        self.client_v2 = client_v2 or tweepy.Client(
            consumer_key=cfg.consumer_key,
            consumer_secret=cfg.consumer_secret,
            access_token=cfg.access_token,
            access_token_secret=cfg.access_token_secret,
        )

        self._username: Optional[str] = None

    @property
    def username(self) -> Optional[str]:
        """Account username for building tweet URLs (nice but non-critical)."""
        if self._username is None:
            try:
                me = self.client_v2.get_me().data
                self._username = me.username
            except tweepy.TweepyException as exc:
                logger.warning("XClient: failed to resolve username: %s", exc)
        return self._username

    def _upload_media(self, refs: tuple[str, ...]) -> List[str]:
        media_ids: List[str] = []
        for ref in refs:
            img = self.images.read_image(ref)
            media = self.api_v1.media_upload(filename=img.filename, file=io.BytesIO(img.data))
            # media_id_string works across Tweepy versions
            mid = str(getattr(media, "media_id_string", None) or media.media_id)
            media_ids.append(mid)

            if img.alt_text:
                try:
                    self.api_v1.create_media_metadata(media_id=mid, alt_text=img.alt_text)
                except tweepy.TweepyException as exc:
                    logger.warning("XClient: failed to set alt text for media %s: %s", mid, exc)
        return media_ids

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        """
        Post a tweet with optional media and threading.
        1. Upload media (if any) via v1.1 API.
        2. Post tweet via v2 API.
        3. Return a PublishedRef for the created tweet.

        X has no per-tweet language field; `language` is accepted and ignored.
        """
        try:
            media_ids = self._upload_media(message.images) if message.images else None

            text = text_with_link(message)
            logger.info("Posting to Twitter: %s", preview(text))

            kwargs: dict = {"text": text}
            if media_ids:
                kwargs["media_ids"] = media_ids
            if reply_to is not None:
                kwargs["in_reply_to_tweet_id"] = reply_to.id

            resp = self.client_v2.create_tweet(**kwargs)
        except ApiError:
            raise
        except tweepy.HTTPException as exc:
            response = getattr(exc, "response", None)
            status = getattr(response, "status_code", None) or 502
            body = getattr(response, "text", None)
            logger.warning("XClient: create_tweet failed: status=%s body=%s", status, body)
            raise RequestError("Failed to create post", status=status, target=self.name, raw_body=body) from exc
        except tweepy.TweepyException as exc:
            logger.exception("XClient: create_tweet failed")
            raise TransportError.from_exception(exc, target=self.name) from exc

        data = getattr(resp, "data", None) or {}
        tweet_id = str(data.get("id") or "")
        if not tweet_id:
            logger.warning("XClient: create_tweet returned no id: %r", resp)
            raise RequestError("Failed to create post", status=502, target=self.name, raw_body=repr(data))

        url = None
        if self.username:
            url = f"https://x.com/{self.username}/status/{tweet_id}"

        return PublishedRef(
            platform=self.name,
            id=tweet_id,
            uri=url,
            reply_to_id=reply_to.id if reply_to else None,
            root=reply_to.thread_root if reply_to else None,
            raw=dict(data),
        )
