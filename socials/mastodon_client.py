from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Literal, Optional

import requests

from core.errors import ApiError, RequestError, TransportError
from core.models import Message, PublishedRef
from storage.images import ImageFile, ImageStore
from utils.sessions import SessionFactory

from .base import preview, text_with_link

logger = logging.getLogger(__name__)

Visibility = Literal["public", "unlisted", "private", "direct"]


@dataclass
class MastodonConfig:
    base_url: str
    access_token: str
    visibility: Optional[Visibility] = None
    media_poll_attempts: int = 30
    media_poll_interval: float = 0.2


class MastodonClient:
    """
    Mastodon adapter.

    - Text posts, with the link appended to the text.
    - Image posts via media upload (api/v2/media); alt text goes in `description`.
    - Async media (HTTP 202) is polled on api/v1/media/<id> until processed.
    - Replies use in_reply_to_id of the previous status.
    """

    name = "mastodon"

    def __init__(self, config: MastodonConfig, images: ImageStore, sessions: Optional[SessionFactory] = None) -> None:
        self.config = config
        self.images = images
        self.base_url = config.base_url.rstrip("/")
        self.sessions = sessions or SessionFactory(headers={"Authorization": f"Bearer {config.access_token}"})

    # ---- internal helpers -------------------------------------------------

    def _request_error(self, resp: requests.Response, message: str) -> RequestError:
        logger.warning(
            "Mastodon %s failed: status=%s body=%s",
            message.lower(),
            resp.status_code,
            resp.text,
        )
        return RequestError(message, status=resp.status_code, target=self.name, raw_body=resp.text)

    def _wait_for_media_ready(self, media_id: str) -> dict[str, Any]:
        """
        Poll Mastodon until media has finished processing.

        200 means processed, 202 means still processing. Any other status is a
        RequestError; running out of attempts is a TransportError.
        """
        status_url = f"{self.base_url}/api/v1/media/{media_id}"
        session = self.sessions.get()

        logger.info("Mastodon: waiting for media %s to finish processing", media_id)

        for attempt in range(1, self.config.media_poll_attempts + 1):
            time.sleep(self.config.media_poll_interval)
            resp = session.get(status_url, timeout=10)

            if resp.status_code == 200:
                logger.info("Mastodon: media %s ready after %d poll(s)", media_id, attempt)
                return resp.json()
            if resp.status_code != 202:
                raise self._request_error(resp, "Failed to get media status")

            logger.debug("Mastodon media %s still processing (attempt %d)", media_id, attempt)

        logger.warning("Mastodon media %s not ready after %d polls; giving up.", media_id, self.config.media_poll_attempts)
        raise TransportError("Media processing timeout", target=self.name)

    def _upload_media(self, img: ImageFile) -> str:
        """Upload a single image to Mastodon and return its media id once it is usable."""
        url = f"{self.base_url}/api/v2/media"

        files = {"file": (img.filename, img.data, img.mimetype)}
        data = {"description": img.alt_text} if img.alt_text else None
        resp = self.sessions.get().post(url, files=files, data=data, timeout=60)

        if resp.status_code not in (200, 202):
            raise self._request_error(resp, "Failed to upload media")

        js = resp.json()
        media_id = js.get("id")
        if not media_id:
            raise RequestError("Failed to upload media", status=502, target=self.name, raw_body=resp.text)

        media_id = str(media_id)
        logger.info("Mastodon: uploaded media %s for %s", media_id, img.ref)

        if resp.status_code == 202:
            self._wait_for_media_ready(media_id)

        return media_id

    # ---- public API -------------------------------------------------------

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        """Create a Mastodon status (text, optional link and images), replying to `reply_to` if given."""
        try:
            media_ids = [self._upload_media(self.images.read_image(ref)) for ref in message.images]

            text = text_with_link(message)
            logger.info("Posting to Mastodon: %s", preview(text))

            data: dict[str, Any] = {"status": text}
            if media_ids:
                # requests encodes list values as repeated media_ids[] fields
                data["media_ids[]"] = media_ids
            if reply_to is not None:
                data["in_reply_to_id"] = reply_to.id
            if language:
                data["language"] = language
            if self.config.visibility:
                data["visibility"] = self.config.visibility

            resp = self.sessions.get().post(f"{self.base_url}/api/v1/statuses", data=data, timeout=15)
            if resp.status_code != 200:
                raise self._request_error(resp, "Failed to create post")

            js = resp.json()
            status_id = js.get("id")
            if not status_id:
                raise RequestError("Failed to create post", status=502, target=self.name, raw_body=resp.text)
        except ApiError:
            raise
        except (requests.RequestException, ValueError) as e:
            logger.exception("MastodonClient.publish raised exception")
            raise TransportError.from_exception(e, target=self.name) from e

        return PublishedRef(
            platform=self.name,
            id=str(status_id),
            uri=js.get("url") or js.get("uri"),
            reply_to_id=reply_to.id if reply_to else None,
            root=reply_to.thread_root if reply_to else None,
            raw=js,
        )
