"""
Unit tests for the retrying HTTP fetcher
"""
import threading

import pytest
import requests

from src.cadharvest.models.raw import RawDocument
from src.cadharvest.scrapers.errors import (
    CancelledError,
    ClientError,
    FetchErrorKind,
    NetworkError,
    ParseError,
    RateLimitedError,
    ServerError,
)
from src.cadharvest.scrapers.fetcher import (
    AttemptState,
    FetchAttempt,
    RetryableFetcher,
    classify_status,
    ensure_parseable,
)

URL = "https://esearch.hayscad.com/Property/View/1"


class TestClassifyStatus:
    """Tests for status classification"""

    def test_success(self):
        assert classify_status(200, URL) is None
        assert classify_status(204, URL) is None

    def test_client_errors(self):
        error = classify_status(404, URL)
        assert isinstance(error, ClientError)
        assert not error.retryable
        assert error.status == 404

    def test_rate_limited_is_retryable_client_error(self):
        error = classify_status(429, URL)
        assert isinstance(error, RateLimitedError)
        assert isinstance(error, ClientError)
        assert error.retryable
        assert error.kind == FetchErrorKind.RATE_LIMITED

    def test_server_errors(self):
        error = classify_status(503, URL)
        assert isinstance(error, ServerError)
        assert error.retryable

    def test_unfollowed_redirect(self):
        assert isinstance(classify_status(302, URL), ClientError)


class TestFetchAttempt:
    """Tests for the attempt state machine"""

    def test_retry_until_budget(self):
        attempt = FetchAttempt(url=URL, max_retries=2)
        assert attempt.state == AttemptState.PENDING
        assert attempt.fail(ServerError("503", url=URL, status=503))
        assert attempt.state == AttemptState.RETRYING
        assert attempt.attempt == 1
        assert attempt.fail(ServerError("503", url=URL, status=503))
        assert not attempt.fail(ServerError("503", url=URL, status=503))
        assert attempt.state == AttemptState.FAILED
        assert len(attempt.errors) == 3

    def test_non_retryable_fails_immediately(self):
        attempt = FetchAttempt(url=URL, max_retries=3)
        assert not attempt.fail(ClientError("404", url=URL, status=404))
        assert attempt.state == AttemptState.FAILED
        assert attempt.last_error.status == 404


class TestRetryableFetcher:
    """Tests for RetryableFetcher.fetch"""

    def test_success(self, fetcher, http_session, make_response, sleeps):
        http_session.request.return_value = make_response(200, "<html>ok</html>")

        document = fetcher.fetch(URL)

        assert isinstance(document, RawDocument)
        assert document.content == "<html>ok</html>"
        assert document.status_code == 200
        assert document.content_type.startswith("text/html")
        assert sleeps == []

        args, kwargs = http_session.request.call_args
        assert args == ("GET", URL)
        assert kwargs["timeout"] == 30.0
        assert kwargs["headers"]["User-Agent"] == "CentralTexas-Scraper/1.0"

    def test_retries_server_errors_with_backoff(self, fetcher, http_session, make_response, sleeps):
        http_session.request.side_effect = [
            make_response(503), make_response(502), make_response(200, "done"),
        ]

        document = fetcher.fetch(URL)

        assert document.content == "done"
        assert http_session.request.call_count == 3
        assert sleeps == [1.0, 2.0]

    def test_retries_rate_limited(self, fetcher, http_session, make_response, sleeps):
        http_session.request.side_effect = [make_response(429), make_response(200)]
        fetcher.fetch(URL)
        assert http_session.request.call_count == 2

    def test_client_error_not_retried(self, fetcher, http_session, make_response, sleeps):
        http_session.request.return_value = make_response(404)

        with pytest.raises(ClientError) as exc_info:
            fetcher.fetch(URL)

        assert exc_info.value.status == 404
        assert http_session.request.call_count == 1
        assert sleeps == []

    def test_exhausted_retries_raise_last_error(self, fetcher, http_session, make_response, sleeps):
        http_session.request.return_value = make_response(500)

        with pytest.raises(ServerError):
            fetcher.fetch(URL)

        assert http_session.request.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]

    def test_network_errors(self, fetcher, http_session, sleeps):
        http_session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NetworkError) as exc_info:
            fetcher.fetch(URL, max_retries=1)

        assert isinstance(exc_info.value.cause, requests.ConnectionError)
        assert http_session.request.call_count == 2

    def test_timeout_is_network_error(self, fetcher, http_session, make_response):
        http_session.request.side_effect = [requests.Timeout("slow"), make_response(200)]
        assert fetcher.fetch(URL).status_code == 200

    def test_accept_status(self, fetcher, http_session, make_response):
        http_session.request.return_value = make_response(404)

        document = fetcher.fetch(URL, allow_redirects=False, accept_status=(404,))

        assert document.status_code == 404
        assert http_session.request.call_args.kwargs["allow_redirects"] is False

    def test_backoff_capped(self):
        fetcher = RetryableFetcher(session=object(), backoff_base_ms=1000, backoff_max_ms=30000)
        assert fetcher.backoff_delay(0) == 1.0
        assert fetcher.backoff_delay(4) == 16.0
        assert fetcher.backoff_delay(10) == 30.0

    def test_cancelled_before_request(self, fetcher, http_session):
        event = threading.Event()
        event.set()

        with pytest.raises(CancelledError):
            fetcher.fetch(URL, cancel_event=event)

        http_session.request.assert_not_called()

    def test_cancel_interrupts_backoff(self, http_session, make_response):
        http_session.request.return_value = make_response(503)
        event = threading.Event()
        fetcher = RetryableFetcher(session=http_session, backoff_base_ms=60000, backoff_max_ms=60000)
        threading.Timer(0.05, event.set).start()

        with pytest.raises(CancelledError):
            fetcher.fetch(URL, cancel_event=event)

        assert http_session.request.call_count == 1


class TestEnsureParseable:
    """Tests for content-type checks"""

    def test_html_and_missing_type_pass(self):
        ensure_parseable(RawDocument(content="", source_url=URL, headers={"content-type": "text/html"}))
        ensure_parseable(RawDocument(content="", source_url=URL))

    def test_binary_rejected(self):
        document = RawDocument(content="%PDF", source_url=URL, headers={"content-type": "application/pdf"})
        with pytest.raises(ParseError) as exc_info:
            ensure_parseable(document)
        assert exc_info.value.source_url == URL
