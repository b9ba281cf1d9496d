import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, Request

from remise.audit.service import client_info
from remise.auth.deps import get_optional_identity
from remise.auth.session import Identity
from remise.core.config import settings
from remise.core.errors import RateLimited


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        return max(0, int(self.reset_at - time.time()) + 1)

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()


class FixedWindowRateLimiter:
    """In-process fixed-window counter.

    Best effort only: counters live in this worker and vanish on restart.
    """

    def __init__(self, max_requests: int, window_seconds: int, clock=time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            if count >= self.max_requests:
                return RateLimitResult(False, self.max_requests, 0, reset_at)
            count += 1
            self._windows[key] = (count, reset_at)
            self._prune(now)
            return RateLimitResult(True, self.max_requests, self.max_requests - count, reset_at)

    def remaining(self, key: str) -> int:
        count, reset_at = self._windows.get(key, (0, 0.0))
        if self._clock() >= reset_at:
            return self.max_requests
        return max(0, self.max_requests - count)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def _prune(self, now: float) -> None:
        if len(self._windows) < 10_000:
            return
        for stale in [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]:
            del self._windows[stale]


auth_limiter = FixedWindowRateLimiter(
    settings.AUTH_RATE_LIMIT_MAX, settings.AUTH_RATE_LIMIT_WINDOW_SECONDS
)
api_limiter = FixedWindowRateLimiter(
    settings.API_RATE_LIMIT_MAX, settings.API_RATE_LIMIT_WINDOW_SECONDS
)


def rate_limit_key(request: Request, identifier: str | None = None) -> str:
    ip_address, _ = client_info(request)
    return f"{ip_address}:{identifier or 'anonymous'}"


def enforce(limiter: FixedWindowRateLimiter, key: str) -> RateLimitResult:
    result = limiter.hit(key)
    if not result.allowed:
        raise RateLimited(result.retry_after, result.limit, result.reset_at_iso)
    return result


def api_rate_limit(
    request: Request,
    identity: Identity | None = Depends(get_optional_identity),
) -> None:
    enforce(api_limiter, rate_limit_key(request, identity.user_id if identity else None))
