# socials/link_preview.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from utils.retry import retry
from utils.sessions import SessionFactory

logger = logging.getLogger(__name__)


@dataclass
class LinkPreview:
    title: str
    url: str
    description: Optional[str] = None
    image: Optional[str] = None


def _meta(soup: BeautifulSoup, *selectors: tuple[str, str]) -> Optional[str]:
    """First non-blank <meta content> among (attribute, value) selectors, in priority order."""
    for attr, value in selectors:
        tag = soup.find("meta", attrs={attr: value})
        content = (tag.get("content") or "").strip() if tag else ""
        if content:
            return content
    return None


def parse_html(html: str, fallback_url: str) -> Optional[LinkPreview]:
    """
    Extract preview metadata from an HTML page.

    Priority: Open Graph, then Twitter Cards, then plain <title>/<meta name=description>.
    Returns None when no title can be found.
    """
    soup = BeautifulSoup(html, "lxml")

    title = _meta(soup, ("property", "og:title"), ("name", "twitter:title"))
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None
    if not title:
        return None

    description = _meta(
        soup,
        ("property", "og:description"),
        ("name", "twitter:description"),
        ("name", "description"),
    )
    url = _meta(soup, ("property", "og:url"), ("name", "twitter:url")) or fallback_url
    image = _meta(
        soup,
        ("property", "og:image"),
        ("name", "twitter:image"),
        ("name", "twitter:image:src"),
    )
    if image:
        image = urljoin(fallback_url, image)

    return LinkPreview(title=title, url=url, description=description, image=image)


class LinkPreviewParser:
    """
    Fetches a page and builds a LinkPreview from it.

    Redirects are not followed: sites that bounce bots to a consent or login
    page would otherwise give us that page's metadata.
    """

    def __init__(self, sessions: Optional[SessionFactory] = None, timeout: float = 10.0):
        self.sessions = sessions or SessionFactory()
        self.timeout = timeout

    @retry(max_attempts=2, delay=1.0, exceptions=(requests.ConnectionError, requests.Timeout))
    def _get(self, url: str) -> requests.Response:
        return self.sessions.get().get(url, timeout=self.timeout, allow_redirects=False)

    def fetch(self, url: str) -> Optional[LinkPreview]:
        try:
            resp = self._get(url)
        except requests.RequestException as e:
            logger.warning("Error fetching link preview for %s: %s", url, e)
            return None

        if resp.status_code != 200:
            logger.warning("Failed to fetch link preview for %s: status=%s", url, resp.status_code)
            return None

        try:
            return parse_html(resp.text, url)
        except Exception:
            logger.exception("Failed to parse link preview HTML for %s", url)
            return None

    def fetch_image(self, image_url: str) -> Optional[tuple[bytes, str]]:
        """Download a preview thumbnail; returns (bytes, mimetype) or None."""
        try:
            resp = self._get(image_url)
        except requests.RequestException as e:
            logger.warning("Failed to fetch preview image %s: %s", image_url, e)
            return None
        if resp.status_code != 200:
            logger.warning("Failed to fetch preview image %s: status=%s", image_url, resp.status_code)
            return None
        mimetype = (resp.headers.get("Content-Type") or "application/octet-stream").split(";")[0].strip()
        return resp.content, mimetype
