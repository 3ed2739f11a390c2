"""
Cookie Session Management

Holds the session cookie for sources that require a handshake before
serving property pages. One manager per adapter instance; shared between
the adapter's worker threads.
"""
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Optional, Sequence

from config.settings import settings
from src.cadharvest.models.raw import RawDocument
from src.cadharvest.transformers.tax_assessor import SESSION_COOKIE_NAMES, extract_session_cookie
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

_ANY_TOKEN = object()


@dataclass
class SessionState:
    """
    Attributes:
        token: Session cookie value, or None if the handshake set no cookie
        cookie_name: Name of the cookie the token came from
        expires_at: Clock time after which the session is refreshed
    """
    token: Optional[str]
    cookie_name: Optional[str]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SessionManager:
    """
    Lazily performs the handshake and caches the resulting cookie.

    The handshake runs under the manager lock so concurrent callers trigger
    at most one refresh.
    """

    def __init__(
        self,
        handshake: Callable[[Optional[threading.Event]], RawDocument],
        cookie_names: Sequence[str] = SESSION_COOKIE_NAMES,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            handshake: Callable fetching the page that sets the cookie
            cookie_names: Candidate cookie names, in preference order
            ttl: Session lifetime (settings.session_ttl_minutes by default)
            clock: Monotonic time source in seconds
        """
        self._handshake = handshake
        self.cookie_names = tuple(cookie_names)
        self.ttl = ttl or timedelta(minutes=settings.session_ttl_minutes)
        self._clock = clock
        self._state: Optional[SessionState] = None
        self._lock = threading.Lock()
        self.refresh_count = 0

    @property
    def state(self) -> Optional[SessionState]:
        return self._state

    def ensure_session(self, cancel_event: Optional[threading.Event] = None) -> SessionState:
        """
        Return the current session, performing the handshake if it is
        missing or expired.
        """
        with self._lock:
            if self._state is not None and not self._state.is_expired(self._clock()):
                return self._state

            document = self._handshake(cancel_event)
            found = extract_session_cookie(document.header("set-cookie"), self.cookie_names)
            cookie_name, token = found if found else (None, None)

            self._state = SessionState(
                token=token,
                cookie_name=cookie_name,
                expires_at=self._clock() + self.ttl.total_seconds(),
            )
            self.refresh_count += 1

            if token:
                logger.info("session_initialized", url=document.source_url, cookie_name=cookie_name)
            else:
                logger.warning("session_cookie_missing", url=document.source_url)
            return self._state

    def invalidate(self, token=_ANY_TOKEN) -> None:
        """
        Drop the cached session.

        Args:
            token: Only invalidate if the cached token is still this one, so
                a session another thread already refreshed is kept
        """
        with self._lock:
            if self._state is None:
                return
            if token is not _ANY_TOKEN and self._state.token != token:
                return
            self._state = None
        logger.info("session_invalidated")

    @staticmethod
    def cookie_header(state: Optional[SessionState]) -> Dict[str, str]:
        """Cookie request header for a session, empty when there is no token."""
        if state is None or not state.token:
            return {}
        return {"Cookie": f"{state.cookie_name}={state.token}"}
