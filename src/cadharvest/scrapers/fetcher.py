"""
Retrying HTTP Fetcher

Wraps a requests.Session with timeout, error classification and capped
exponential backoff. Each call walks an explicit attempt state machine:
PENDING -> RETRYING(n) -> SUCCEEDED | FAILED.
"""
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Collection, Dict, List, Mapping, Optional

import requests

from config.settings import settings
from src.cadharvest.models.raw import RawDocument
from src.cadharvest.scrapers.errors import (
    CancelledError,
    ClientError,
    FetchError,
    NetworkError,
    ParseError,
    RateLimitedError,
    ServerError,
)
from src.cadharvest.scrapers.rate_limiter import interruptible_sleep
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)

PARSEABLE_CONTENT_TYPES = ("html", "json", "xml")


class AttemptState(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class FetchAttempt:
    """
    Progress of one fetch() call.

    Attributes:
        url: Requested URL
        max_retries: Retries allowed after the first attempt
        state: Current AttemptState
        attempt: Zero-based index of the current attempt
        errors: Errors raised by failed attempts, oldest first
    """
    url: str
    max_retries: int
    state: AttemptState = AttemptState.PENDING
    attempt: int = 0
    errors: List[FetchError] = field(default_factory=list)

    @property
    def last_error(self) -> Optional[FetchError]:
        return self.errors[-1] if self.errors else None

    def fail(self, error: FetchError) -> bool:
        """
        Record a failed attempt.

        Returns:
            True if another attempt should be made
        """
        self.errors.append(error)
        if error.retryable and self.attempt < self.max_retries:
            self.state = AttemptState.RETRYING
            self.attempt += 1
            return True
        self.state = AttemptState.FAILED
        return False

    def succeed(self) -> None:
        self.state = AttemptState.SUCCEEDED


def classify_status(status: int, url: str) -> Optional[FetchError]:
    """Map a non-2xx status to its FetchError, or None for 2xx."""
    if 200 <= status < 300:
        return None
    if status == 429:
        return RateLimitedError(f"HTTP 429 Too Many Requests: {url}", url=url, status=status)
    if 400 <= status < 500:
        return ClientError(f"HTTP {status}: {url}", url=url, status=status)
    if status >= 500:
        return ServerError(f"HTTP {status}: {url}", url=url, status=status)
    # 1xx/3xx reaching here were not followed and not accepted by the caller
    return ClientError(f"Unexpected HTTP {status}: {url}", url=url, status=status)


class RetryableFetcher:
    """
    HTTP GET/POST with retry, backoff and error classification.

    Network errors, 429 and 5xx are retried; other 4xx fail immediately.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleeper: Optional[Callable[[float, Optional[threading.Event]], None]] = None,
        user_agent: Optional[str] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_max_ms: Optional[int] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            session: HTTP session (a new requests.Session by default)
            timeout: Per-request timeout in seconds
            max_retries: Default retry count
            sleeper: sleeper(seconds, cancel_event) used between attempts
            user_agent: User-Agent header sent with every request
            backoff_base_ms: First backoff delay
            backoff_max_ms: Backoff cap
        """
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.http_max_retries
        self.user_agent = user_agent or settings.user_agent
        self.backoff_base_ms = backoff_base_ms if backoff_base_ms is not None else settings.backoff_base_ms
        self.backoff_max_ms = backoff_max_ms if backoff_max_ms is not None else settings.backoff_max_ms
        self._sleeper = sleeper or interruptible_sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number attempt + 1."""
        return min(self.backoff_base_ms * (2 ** attempt), self.backoff_max_ms) / 1000.0

    def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        allow_redirects: bool = True,
        max_retries: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        accept_status: Collection[int] = (),
    ) -> RawDocument:
        """
        Fetch a URL, retrying transient failures.

        Args:
            url: Absolute URL
            method: HTTP method
            headers: Extra request headers
            params: Query parameters
            allow_redirects: Follow 3xx responses
            max_retries: Override the default retry count
            cancel_event: Set to abort; backoff sleeps wake on it
            accept_status: Non-2xx codes returned as documents instead of
                raised (used by existence probes)

        Returns:
            RawDocument for the final response

        Raises:
            FetchError: Last classified error once retries are exhausted
            CancelledError: If cancel_event is set
        """
        retries = self.max_retries if max_retries is None else max_retries
        attempt = FetchAttempt(url=url, max_retries=retries)
        request_headers: Dict[str, str] = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CancelledError(f"Fetch cancelled: {url}")

            try:
                response = self.session.request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    timeout=self.timeout,
                    allow_redirects=allow_redirects,
                )
                error = None
                if response.status_code not in accept_status:
                    error = classify_status(response.status_code, url)
            except requests.Timeout as e:
                error = NetworkError(f"Request timed out: {url}", url=url, cause=e)
            except requests.ConnectionError as e:
                error = NetworkError(f"Connection failed: {url}", url=url, cause=e)
            except requests.RequestException as e:
                error = NetworkError(f"Request failed: {url}", url=url, cause=e)

            if error is None:
                attempt.succeed()
                if attempt.attempt:
                    logger.info("fetch_succeeded_after_retry", url=url, attempts=attempt.attempt + 1)
                return RawDocument(
                    content=response.text,
                    source_url=url,
                    status_code=response.status_code,
                    headers={k.lower(): v for k, v in response.headers.items()},
                )

            if not attempt.fail(error):
                logger.error(
                    "fetch_failed",
                    url=url,
                    status=error.status,
                    error_kind=error.kind.value,
                    attempts=len(attempt.errors),
                )
                raise error

            delay = self.backoff_delay(attempt.attempt - 1)
            logger.warning(
                "fetch_retrying",
                url=url,
                status=error.status,
                error_kind=error.kind.value,
                attempt=attempt.attempt,
                max_retries=retries,
                delay_seconds=delay,
            )
            self._sleeper(delay, cancel_event)


def ensure_parseable(document: RawDocument, expected: Collection[str] = PARSEABLE_CONTENT_TYPES) -> RawDocument:
    """
    Check a document's content type before parsing.

    A missing content-type header is accepted.

    Raises:
        ParseError: If the content type matches none of expected
    """
    content_type = document.content_type.lower()
    if content_type and not any(kind in content_type for kind in expected):
        raise ParseError(f"Unexpected content type '{content_type}'", source_url=document.source_url)
    return document
