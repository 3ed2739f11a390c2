"""
Scrapers Package

Source adapters for county appraisal district websites, plus the fetch,
rate-limit and session layers they share.
"""

from .errors import (
    CancelledError,
    ClientError,
    FetchError,
    NetworkError,
    ParseError,
    PropertyNotFoundError,
    RateLimitedError,
    ScraperError,
    ServerError,
    SessionExpiredError,
    UnknownSourceError,
)
from .base import SessionAdapter, SourceAdapter
from .fetcher import RetryableFetcher
from .rate_limiter import RateLimitConfig, RateLimiter
from .session import SessionManager
from .sources.hays import HaysCADAdapter
from .sources.travis import TravisCADAdapter
from .sources.williamson import WilliamsonCADAdapter
from .registry import AdapterRegistry, default_registry

__all__ = [
    # Adapters
    "SourceAdapter",
    "SessionAdapter",
    "HaysCADAdapter",
    "TravisCADAdapter",
    "WilliamsonCADAdapter",
    "AdapterRegistry",
    "default_registry",
    # Shared layers
    "RetryableFetcher",
    "RateLimitConfig",
    "RateLimiter",
    "SessionManager",
    # Errors
    "ScraperError",
    "FetchError",
    "NetworkError",
    "ClientError",
    "RateLimitedError",
    "ServerError",
    "SessionExpiredError",
    "ParseError",
    "PropertyNotFoundError",
    "UnknownSourceError",
    "CancelledError",
]
