# socials/linkedin_client.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from core.errors import ApiError, NotConfiguredError, RequestError, TransportError
from core.models import Message, PublishedRef
from storage.documents import DocumentStore
from storage.images import ImageStore
from utils.sessions import SessionFactory, TokenCache

from .base import preview, text_with_link
from .link_preview import LinkPreviewParser

logger = logging.getLogger(__name__)

TOKEN_KIND = "linkedin-oauth-token"
# Tokens this close to expiry are refreshed before use.
TOKEN_EXPIRY_BUFFER_SECONDS = 300


@dataclass
class LinkedInConfig:
    client_id: str
    client_secret: str
    user: str = "default"
    api_base: str = "https://api.linkedin.com/v2"
    token_url: str = "https://www.linkedin.com/oauth/v2/accessToken"
    userinfo_url: str = "https://api.linkedin.com/v2/userinfo"
    # Optional seed, saved to the document store when nothing is stored yet.
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def token_key(self) -> str:
        return f"{TOKEN_KIND}:{self.user}"


@dataclass
class LinkedInToken:
    access_token: str
    expires_at: float = 0.0  # epoch seconds, 0 = unknown / never
    refresh_token: Optional[str] = None
    refresh_token_expires_at: float = 0.0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "LinkedInToken":
        return cls(
            access_token=payload["access_token"],
            expires_at=float(payload.get("expires_at") or 0),
            refresh_token=payload.get("refresh_token") or None,
            refresh_token_expires_at=float(payload.get("refresh_token_expires_at") or 0),
        )

    @classmethod
    def from_oauth_response(cls, js: Dict[str, Any], previous: Optional["LinkedInToken"] = None, now: Optional[float] = None) -> "LinkedInToken":
        now = time.time() if now is None else now
        refresh_token = js.get("refresh_token") or (previous.refresh_token if previous else None)
        refresh_expires = js.get("refresh_token_expires_in")
        return cls(
            access_token=js["access_token"],
            expires_at=now + float(js.get("expires_in") or 0) if js.get("expires_in") else 0.0,
            refresh_token=refresh_token,
            refresh_token_expires_at=(
                now + float(refresh_expires)
                if refresh_expires
                else (previous.refresh_token_expires_at if previous else 0.0)
            ),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "expires_at": self.expires_at,
            "refresh_token": self.refresh_token,
            "refresh_token_expires_at": self.refresh_token_expires_at,
        }

    def is_expired(self, now: Optional[float] = None, buffer: float = TOKEN_EXPIRY_BUFFER_SECONDS) -> bool:
        if not self.expires_at:
            return False
        now = time.time() if now is None else now
        return now >= self.expires_at - buffer


class LinkedInClient:
    """
    LinkedIn adapter (UGC posts API).

    - The root message becomes a UGC post: shareMediaCategory IMAGE when it has
      images, ARTICLE when it has a link, NONE otherwise.
    - A follow-up message becomes a comment on the root post
      (socialActions/<root urn>/comments), never a reply post.
    - OAuth tokens live in the document store under `linkedin-oauth-token:<user>`
      and are refreshed single-flight through the refresh-token grant.
    """

    name = "linkedin"

    def __init__(
        self,
        cfg: LinkedInConfig,
        documents: DocumentStore,
        images: ImageStore,
        link_previews: Optional[LinkPreviewParser] = None,
        sessions: Optional[SessionFactory] = None,
    ):
        self.cfg = cfg
        self.documents = documents
        self.images = images
        self.link_previews = link_previews
        self.api_base = cfg.api_base.rstrip("/")
        self.sessions = sessions or SessionFactory(headers={"X-Restli-Protocol-Version": "2.0.0"})
        self._tokens: TokenCache[LinkedInToken] = TokenCache(self._load_token, is_valid=lambda t: not t.is_expired())
        self._person_urn: TokenCache[str] = TokenCache(self._fetch_person_urn)

    # ---------------- OAuth ----------------

    def _stored_token(self) -> Optional[LinkedInToken]:
        doc = self.documents.search_by_key(self.cfg.token_key)
        if doc is not None:
            return LinkedInToken.from_payload(doc.payload)
        if self.cfg.access_token:
            token = LinkedInToken(access_token=self.cfg.access_token, refresh_token=self.cfg.refresh_token)
            self._save_token(token)
            return token
        return None

    def _save_token(self, token: LinkedInToken) -> None:
        self.documents.create(kind=TOKEN_KIND, payload=token.to_payload(), search_key=self.cfg.token_key)

    def _refresh(self, token: LinkedInToken) -> LinkedInToken:
        if not token.refresh_token:
            raise ApiError("LinkedIn access token expired and no refresh token is available", status=401, target=self.name)

        logger.info("LinkedIn: refreshing access token for %s", self.cfg.user)
        resp = self.sessions.get().post(
            self.cfg.token_url,
            data={
                "grant_type": "refresh_token",
                "refresh_token": token.refresh_token,
                "client_id": self.cfg.client_id,
                "client_secret": self.cfg.client_secret,
            },
            timeout=15,
        )
        if resp.status_code != 200:
            raise self._request_error(resp, "Failed to refresh LinkedIn token")

        fresh = LinkedInToken.from_oauth_response(resp.json(), previous=token)
        self._save_token(fresh)
        return fresh

    def _load_token(self) -> LinkedInToken:
        token = self._stored_token()
        if token is None:
            raise NotConfiguredError(f"{self.name} not authorized (no OAuth token for {self.cfg.user})", target=self.name)
        if token.is_expired():
            token = self._refresh(token)
        return token

    def _expire_token(self) -> None:
        """Mark the stored token expired so the next call goes through the refresh grant."""
        doc = self.documents.search_by_key(self.cfg.token_key)
        if doc is not None:
            token = LinkedInToken.from_payload(doc.payload)
            token.expires_at = time.time()
            self._save_token(token)
        self._tokens.invalidate()

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._tokens.get().access_token}"}

    def _fetch_person_urn(self) -> str:
        resp = self.sessions.get().get(self.cfg.userinfo_url, headers=self._auth_headers(), timeout=10)
        if resp.status_code != 200:
            raise self._request_error(resp, "Failed to fetch LinkedIn user info")
        sub = resp.json().get("sub")
        if not sub:
            raise RequestError("LinkedIn user info has no subject", status=502, target=self.name, raw_body=resp.text)
        return sub if sub.startswith("urn:li:person:") else f"urn:li:person:{sub}"

    # ---------------- helpers ----------------

    def _request_error(self, resp: requests.Response, message: str) -> RequestError:
        logger.warning("LinkedIn %s: status=%s body=%s", message.lower(), resp.status_code, resp.text)
        return RequestError(message, status=resp.status_code, target=self.name, raw_body=resp.text)

    def _upload_image(self, ref: str, owner: str) -> tuple[str, Optional[str]]:
        """registerUpload + binary PUT; returns (asset urn, alt text)."""
        img = self.images.read_image(ref)
        session = self.sessions.get()

        resp = session.post(
            f"{self.api_base}/assets?action=registerUpload",
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                    "owner": owner,
                    "serviceRelationships": [
                        {"relationshipType": "OWNER", "identifier": "urn:li:userGeneratedContent"},
                    ],
                }
            },
            headers=self._auth_headers(),
            timeout=15,
        )
        if resp.status_code != 200:
            raise self._request_error(resp, "Failed to register image upload")

        value = resp.json().get("value") or {}
        mechanism = (value.get("uploadMechanism") or {}).get(
            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"
        ) or {}
        upload_url = mechanism.get("uploadUrl")
        asset = value.get("asset")
        if not upload_url or not asset:
            raise RequestError("Failed to register image upload", status=502, target=self.name, raw_body=resp.text)

        put = session.put(
            upload_url,
            data=img.data,
            headers={**self._auth_headers(), "Content-Type": img.mimetype},
            timeout=60,
        )
        if put.status_code not in (200, 201):
            raise self._request_error(put, "Failed to upload image")

        logger.info("LinkedIn: uploaded image %s as %s", ref, asset)
        return asset, img.alt_text

    def _share_content(self, message: Message, author: str) -> Dict[str, Any]:
        if message.images:
            media = []
            for ref in message.images:
                asset, alt = self._upload_image(ref, author)
                entry: Dict[str, Any] = {"status": "READY", "media": asset}
                if alt:
                    entry["description"] = {"text": alt}
                media.append(entry)
            return {
                "shareCommentary": {"text": text_with_link(message)},
                "shareMediaCategory": "IMAGE",
                "media": media,
            }

        if message.link:
            article: Dict[str, Any] = {"status": "READY", "originalUrl": message.link}
            card = self.link_previews.fetch(message.link) if self.link_previews else None
            if card is not None:
                article["title"] = {"text": card.title}
                if card.description:
                    article["description"] = {"text": card.description}
            return {
                "shareCommentary": {"text": (message.content or "").strip()},
                "shareMediaCategory": "ARTICLE",
                "media": [article],
            }

        return {
            "shareCommentary": {"text": (message.content or "").strip()},
            "shareMediaCategory": "NONE",
        }

    def _create_post(self, message: Message, author: str) -> PublishedRef:
        body = {
            "author": author,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": self._share_content(message, author)},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        }
        logger.info("Posting to LinkedIn: %s", preview(message.content or ""))

        resp = self.sessions.get().post(f"{self.api_base}/ugcPosts", json=body, headers=self._auth_headers(), timeout=30)
        if resp.status_code not in (200, 201):
            raise self._request_error(resp, "Failed to create post")

        post_id = resp.headers.get("X-RestLi-Id") or (resp.json().get("id") if resp.content else None)
        if not post_id:
            raise RequestError("Failed to create post", status=502, target=self.name, raw_body=resp.text)

        return PublishedRef(
            platform=self.name,
            id=post_id,
            uri=f"https://www.linkedin.com/feed/update/{post_id}",
        )

    def _create_comment(self, message: Message, root: PublishedRef, author: str) -> PublishedRef:
        body: Dict[str, Any] = {
            "actor": author,
            "object": root.id,
            "message": {"text": text_with_link(message)},
        }
        if message.images:
            asset, _ = self._upload_image(message.images[0], author)
            body["content"] = [{"entity": {"image": asset}}]

        logger.info("Commenting on LinkedIn post %s: %s", root.id, preview(message.content or ""))

        url = f"{self.api_base}/socialActions/{quote(root.id, safe='')}/comments"
        resp = self.sessions.get().post(url, json=body, headers=self._auth_headers(), timeout=30)
        if resp.status_code not in (200, 201):
            raise self._request_error(resp, "Failed to create comment")

        js = resp.json() if resp.content else {}
        comment_id = js.get("$URN") or js.get("id") or resp.headers.get("X-RestLi-Id")
        if not comment_id:
            raise RequestError("Failed to create comment", status=502, target=self.name, raw_body=resp.text)

        return PublishedRef(
            platform=self.name,
            id=str(comment_id),
            root=root,
            reply_to_id=root.id,
            raw=js,
        )

    # ---------------- public API ----------------

    def publish(
        self,
        message: Message,
        reply_to: Optional[PublishedRef] = None,
        language: Optional[str] = None,
    ) -> PublishedRef:
        """Root message -> UGC post; any later message -> comment on the thread root."""
        try:
            author = self._person_urn.get()
            if reply_to is None:
                return self._create_post(message, author)
            return self._create_comment(message, reply_to.thread_root, author)
        except RequestError as e:
            if e.status == 401:
                logger.warning("LinkedIn rejected the access token for %s; it will be refreshed on the next call.", self.cfg.user)
                self._expire_token()
            raise
        except ApiError:
            raise
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.exception("LinkedInClient.publish raised exception")
            raise TransportError.from_exception(e, target=self.name) from e
