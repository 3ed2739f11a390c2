"""
Unit tests for the per-domain rate limiter
"""
import threading
import time

import pytest

from src.cadharvest.scrapers.errors import CancelledError
from src.cadharvest.scrapers.rate_limiter import RateLimitConfig, RateLimiter, interruptible_sleep


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    sleeps = []

    def sleeper(seconds, cancel_event=None):
        sleeps.append(seconds)
        clock.now += seconds

    limiter = RateLimiter(
        configs={"hayscad.com": RateLimitConfig(requests_per_second=1, window_ms=2000)},
        default_config=RateLimitConfig(requests_per_second=0.5, window_ms=2000),
        clock=clock,
        sleeper=sleeper,
    )
    limiter.sleeps = sleeps
    return limiter


class TestRateLimitConfig:
    """Tests for admission budgets"""

    def test_default_budget(self):
        assert RateLimitConfig().max_requests == 1

    def test_budget_rounds_up(self):
        assert RateLimitConfig(requests_per_second=1.5, window_ms=1000).max_requests == 2
        assert RateLimitConfig(requests_per_second=0.1, window_ms=1000).max_requests == 1


class TestDomains:
    """Tests for domain resolution"""

    def test_get_domain(self):
        assert RateLimiter.get_domain("https://ESearch.HaysCAD.com/Property/View/1") == "esearch.hayscad.com"
        assert RateLimiter.get_domain("www.wcad.org") == "www.wcad.org"

    def test_override_matches_subdomain(self, limiter):
        assert limiter.config_for("esearch.hayscad.com").requests_per_second == 1
        assert limiter.config_for("hayscad.com").requests_per_second == 1
        assert limiter.config_for("nothayscad.com").requests_per_second == 0.5


class TestAdmission:
    """Tests for the sliding window"""

    def test_admits_up_to_budget(self, limiter, clock):
        domain = "esearch.hayscad.com"
        assert limiter.can_admit(domain)
        limiter.record(domain)
        limiter.record(domain)
        assert not limiter.can_admit(domain)
        assert limiter.remaining(domain) == 0

    def test_window_slides(self, limiter, clock):
        domain = "www.wcad.org"
        limiter.record(domain)
        clock.now = 1.999
        assert not limiter.can_admit(domain)
        clock.now = 2.0
        assert limiter.can_admit(domain)

    def test_domains_are_independent(self, limiter):
        limiter.record("www.wcad.org")
        assert not limiter.can_admit("www.wcad.org")
        assert limiter.can_admit("stage.traviscad.org")

    def test_acquire_blocks_one_window(self, limiter, clock):
        domain = "esearch.hayscad.com"
        limiter.acquire(domain)
        limiter.acquire(domain)
        assert limiter.sleeps == []

        limiter.acquire(domain)

        assert limiter.sleeps == [2.0]
        assert clock.now == 2.0

    def test_wait_does_not_record(self, limiter):
        domain = "www.wcad.org"
        limiter.wait(domain)
        limiter.wait(domain)
        assert limiter.remaining(domain) == 1

    def test_configure_resets_state(self, limiter):
        domain = "esearch.hayscad.com"
        limiter.record(domain)
        limiter.record(domain)
        limiter.configure("hayscad.com", RateLimitConfig(requests_per_second=5, window_ms=1000))
        assert limiter.remaining(domain) == 5

    def test_reset(self, limiter):
        limiter.record("www.wcad.org")
        limiter.reset()
        assert limiter.can_admit("www.wcad.org")

    def test_acquire_cancelled(self, limiter):
        event = threading.Event()
        event.set()
        with pytest.raises(CancelledError):
            limiter.acquire("www.wcad.org", event)
        assert limiter.remaining("www.wcad.org") == 1


class TestRealClock:
    """Concurrency checks against the real clock"""

    def test_concurrent_acquires_are_a_window_apart(self):
        # The last clock read on each thread is the timestamp acquire recorded
        last_read = threading.local()

        def clock():
            last_read.now = time.monotonic()
            return last_read.now

        limiter = RateLimiter(
            configs={},
            default_config=RateLimitConfig(requests_per_second=5, window_ms=200),
            clock=clock,
        )
        admitted = []
        admitted_lock = threading.Lock()

        def worker():
            limiter.acquire("example.com")
            with admitted_lock:
                admitted.append(last_read.now)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=15)

        assert len(admitted) == 10
        admitted.sort()
        gaps = [later - earlier for earlier, later in zip(admitted, admitted[1:])]
        assert min(gaps) >= 0.2 - 1e-6

    def test_interruptible_sleep_wakes_on_cancel(self):
        event = threading.Event()
        threading.Timer(0.05, event.set).start()
        started = time.monotonic()

        with pytest.raises(CancelledError):
            interruptible_sleep(10, event)

        assert time.monotonic() - started < 5
