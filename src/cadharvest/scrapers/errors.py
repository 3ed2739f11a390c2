"""
Scraper Exceptions

Error taxonomy shared by the fetch layer, source adapters and the ingestion
pipeline. Validation problems are never raised; see
src.cadharvest.validation.validators.ValidationResult.
"""
from enum import Enum
from typing import List, Optional


class FetchErrorKind(str, Enum):
    """Classification of a failed HTTP attempt."""
    NETWORK = "network"
    CLIENT = "client"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"


class ScraperError(Exception):
    """Base class for all scraping failures."""


class FetchError(ScraperError):
    """
    HTTP fetch failure.

    Attributes:
        kind: FetchErrorKind of the failure
        url: Requested URL
        status: HTTP status code, when a response was received
        cause: Underlying exception, when the request itself failed
    """

    kind: FetchErrorKind = FetchErrorKind.NETWORK
    retryable: bool = True

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status = status
        self.cause = cause


class NetworkError(FetchError):
    """Connection failure or timeout. Retryable."""
    kind = FetchErrorKind.NETWORK
    retryable = True


class ClientError(FetchError):
    """HTTP 4xx response. Not retryable."""
    kind = FetchErrorKind.CLIENT
    retryable = False


class RateLimitedError(ClientError):
    """HTTP 429 response. The only retryable 4xx."""
    kind = FetchErrorKind.RATE_LIMITED
    retryable = True


class ServerError(FetchError):
    """HTTP 5xx response. Retryable."""
    kind = FetchErrorKind.SERVER
    retryable = True


class SessionExpiredError(ScraperError):
    """Session was refreshed once and the retried request was still rejected."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ParseError(ScraperError):
    """Document does not have the shape the adapter expects. Not retryable."""

    def __init__(self, message: str, source_url: Optional[str] = None):
        super().__init__(message)
        self.source_url = source_url

    def __str__(self) -> str:
        base = super().__str__()
        if self.source_url:
            return f"{base} (source_url={self.source_url})"
        return base


class PropertyNotFoundError(ScraperError):
    """Identifier does not resolve to a property at the source."""

    def __init__(self, source: str, identifier: str):
        super().__init__(f"Property '{identifier}' not found at source '{source}'")
        self.source = source
        self.identifier = identifier


class UnknownSourceError(ScraperError, ValueError):
    """Source identifier is not registered."""

    def __init__(self, source: str, available: List[str]):
        self.source = source
        self.available = sorted(available)
        super().__init__(
            f"Unknown scraper source: {source}. "
            f"Available sources: {', '.join(self.available)}"
        )


class CancelledError(ScraperError):
    """Call was cancelled through its cancel event (or a batch deadline)."""
