"""
Shared fixtures for the cadharvest test suite.
"""
from unittest.mock import MagicMock, Mock

import pytest

from src.cadharvest.scrapers.fetcher import RetryableFetcher
from src.cadharvest.scrapers.rate_limiter import RateLimitConfig, RateLimiter


@pytest.fixture
def make_response():
    """Factory for fake requests.Response objects."""
    def _make(status_code=200, text="", headers=None):
        response = Mock()
        response.status_code = status_code
        response.text = text
        response.headers = {"Content-Type": "text/html; charset=utf-8"} if headers is None else headers
        return response
    return _make


@pytest.fixture
def http_session():
    """Fake requests.Session; set .request.side_effect / .return_value in tests."""
    return MagicMock()


@pytest.fixture
def sleeps():
    """Records every delay passed to the fetcher's sleeper."""
    return []


@pytest.fixture
def fetcher(http_session, sleeps):
    return RetryableFetcher(
        session=http_session,
        max_retries=3,
        sleeper=lambda seconds, cancel_event=None: sleeps.append(seconds),
    )


@pytest.fixture
def open_limiter():
    """Rate limiter with a budget large enough never to block."""
    return RateLimiter(configs={}, default_config=RateLimitConfig(requests_per_second=1000, window_ms=1000))
