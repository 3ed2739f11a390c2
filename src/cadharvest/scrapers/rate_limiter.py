"""
Per-Domain Rate Limiter

Sliding-window limiter shared by every adapter in the process. Each domain
keeps the timestamps of its recent requests; a request is admitted while
fewer than ceil(requests_per_second * window_ms / 1000) of them fall inside
the window. Blocked callers re-check once per window.
"""
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from config.settings import settings
from src.cadharvest.scrapers.errors import CancelledError
from src.cadharvest.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Admission budget for one domain."""
    requests_per_second: float = 0.5
    window_ms: int = 2000

    @property
    def max_requests(self) -> int:
        return max(1, math.ceil(self.requests_per_second * self.window_ms / 1000))

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000.0

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        return cls(
            requests_per_second=settings.rate_limit_requests_per_second,
            window_ms=settings.rate_limit_window_ms,
        )


@dataclass
class DomainRateState:
    """Recent request timestamps (clock seconds) for one domain."""
    config: RateLimitConfig
    timestamps: List[float] = field(default_factory=list)

    def prune(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        self.timestamps = [ts for ts in self.timestamps if ts > cutoff]


def interruptible_sleep(seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
    """
    Sleep for seconds, waking early and raising CancelledError if the event
    is set.
    """
    if cancel_event is None:
        time.sleep(seconds)
        return
    if cancel_event.is_set() or cancel_event.wait(seconds):
        raise CancelledError("Cancelled while sleeping")


class RateLimiter:
    """
    Thread-safe sliding-window limiter keyed by domain.

    Domain overrides apply to the configured host and any of its
    subdomains ("hayscad.com" covers "esearch.hayscad.com").
    """

    def __init__(
        self,
        configs: Optional[Mapping[str, RateLimitConfig]] = None,
        default_config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Optional[Callable[[float, Optional[threading.Event]], None]] = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            configs: Per-domain overrides; defaults to
                settings.rate_limit_domain_overrides
            default_config: Budget for domains without an override
            clock: Monotonic time source in seconds (injectable for tests)
            sleeper: sleeper(seconds, cancel_event) used while blocked
        """
        if configs is None:
            configs = {
                domain: RateLimitConfig(**values)
                for domain, values in settings.rate_limit_domain_overrides.items()
            }
        self._configs: Dict[str, RateLimitConfig] = {
            domain.lower(): config for domain, config in configs.items()
        }
        self.default_config = default_config or RateLimitConfig.from_settings()
        self._clock = clock
        self._sleeper = sleeper or interruptible_sleep
        self._states: Dict[str, DomainRateState] = {}
        self._lock = threading.Lock()

    @staticmethod
    def get_domain(url: str) -> str:
        """Host part of a URL, lower-cased; bare hosts pass through."""
        parsed = urlparse(url if "//" in url else f"//{url}")
        return (parsed.hostname or url).lower()

    def config_for(self, domain: str) -> RateLimitConfig:
        """Most specific override matching domain or a parent domain."""
        host = domain.lower()
        while host:
            if host in self._configs:
                return self._configs[host]
            if "." not in host:
                break
            host = host.split(".", 1)[1]
        return self.default_config

    def _state(self, domain: str) -> DomainRateState:
        key = domain.lower()
        state = self._states.get(key)
        if state is None:
            state = DomainRateState(config=self.config_for(key))
            self._states[key] = state
        return state

    def can_admit(self, domain: str) -> bool:
        """Check whether a request to domain would be admitted now."""
        with self._lock:
            state = self._state(domain)
            state.prune(self._clock())
            return len(state.timestamps) < state.config.max_requests

    def record(self, domain: str) -> None:
        """Record a request to domain at the current clock time."""
        with self._lock:
            self._state(domain).timestamps.append(self._clock())

    def remaining(self, domain: str) -> int:
        """Requests still admissible in the current window."""
        with self._lock:
            state = self._state(domain)
            state.prune(self._clock())
            return max(0, state.config.max_requests - len(state.timestamps))

    def wait(self, domain: str, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Block until domain has capacity. Does not record.

        Raises:
            CancelledError: If cancel_event is set while waiting
        """
        while not self.can_admit(domain):
            self._block(domain, cancel_event)

    def acquire(self, domain: str, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Block until domain has capacity, then record the request.

        Check and record happen under one lock so concurrent callers cannot
        all pass the same check.

        Raises:
            CancelledError: If cancel_event is set while waiting
        """
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CancelledError(f"Cancelled before acquiring {domain}")
            with self._lock:
                state = self._state(domain)
                now = self._clock()
                state.prune(now)
                if len(state.timestamps) < state.config.max_requests:
                    state.timestamps.append(now)
                    return
            self._block(domain, cancel_event)

    def _block(self, domain: str, cancel_event: Optional[threading.Event]) -> None:
        config = self.config_for(domain)
        logger.debug("rate_limit_wait", domain=domain, wait_ms=config.window_ms)
        self._sleeper(config.window_seconds, cancel_event)

    def configure(self, domain: str, config: RateLimitConfig) -> None:
        """Set an override for domain and reset its state."""
        with self._lock:
            key = domain.lower()
            self._configs[key] = config
            # Subdomain states may have resolved to the old config
            for state_key in list(self._states):
                if state_key == key or state_key.endswith("." + key):
                    del self._states[state_key]
        logger.info(
            "rate_limit_configured",
            domain=domain,
            requests_per_second=config.requests_per_second,
            window_ms=config.window_ms,
        )

    def reset(self, domain: Optional[str] = None) -> None:
        """Forget recorded requests for one domain, or for all domains."""
        with self._lock:
            if domain is None:
                self._states.clear()
            else:
                self._states.pop(domain.lower(), None)
