import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

USER_AGENT = "socialpublish/1.0"

T = TypeVar("T")


class SessionFactory:
    """A reusable factory for creating and managing `requests` sessions.

    Each thread gets its own `requests.Session` (a Session is not safe to share
    across threads), so adapters running side by side in worker threads never
    touch the same connection pool. Within one thread the session is reused.

    Attributes:
        headers (dict): Default headers applied when a session is created.
        retries (int): Retry budget for idempotent requests.

    """

    def __init__(self, headers: Optional[dict] = None, retries: int = 3):
        """Initializes the SessionFactory with no active session."""
        self.headers = {"User-Agent": USER_AGENT, **(headers or {})}
        self.retries = retries
        self._local = threading.local()

    def get(self) -> requests.Session:
        """Retrieves the calling thread's `requests.Session` instance.

        If this thread has no session yet, a new one is created with the
        default headers and a retry policy for idempotent requests mounted on
        both schemes. Subsequent calls from the same thread return it again.

        Returns:
            requests.Session: The calling thread's `requests.Session` instance.

        """
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self.headers)
            # Only GET/HEAD are retried; a retried POST could publish twice.
            retry = Retry(
                total=self.retries,
                backoff_factor=1,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=frozenset({"GET", "HEAD"}),
            )
            session.mount("https://", HTTPAdapter(max_retries=retry))
            session.mount("http://", HTTPAdapter(max_retries=retry))
            self._local.session = session
        return session


class TokenCache(Generic[T]):
    """Caches a credential (session, OAuth token, ...) and refreshes it single-flight.

    `get()` returns the cached value while `is_valid(value)` holds. Otherwise
    exactly one caller runs `fetch()`; callers arriving meanwhile block on the
    lock and then reuse the freshly stored value instead of fetching again.

    Args:
        fetch: Produces a fresh credential. Exceptions propagate to the caller
            that triggered the refresh and leave the cache empty.
        is_valid: Tells whether a cached credential can still be used.

    Example Usage:
        tokens = TokenCache(fetch=lambda: client.login(user, pw))
        session = tokens.get()

    """

    def __init__(self, fetch: Callable[[], T], is_valid: Optional[Callable[[T], bool]] = None):
        self._fetch = fetch
        self._is_valid = is_valid or (lambda value: value is not None)
        self._value: Optional[T] = None
        # Reentrant: fetch() may call invalidate() on the same cache.
        self._lock = threading.RLock()

    def _usable(self, value: Optional[T]) -> bool:
        return value is not None and self._is_valid(value)

    def get(self) -> T:
        value = self._value
        if self._usable(value):
            return value  # type: ignore[return-value]

        with self._lock:
            # Someone else may have refreshed while we waited for the lock.
            value = self._value
            if self._usable(value):
                return value  # type: ignore[return-value]

            logger.debug("TokenCache: refreshing credential via %s", getattr(self._fetch, "__name__", self._fetch))
            value = self._fetch()
            self._value = value
            return value

    def peek(self) -> Optional[T]:
        return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
