"""Fixed-window rate limiting for inbound inquiries."""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from schemas.context import UserRole
from schemas.responses import RateLimitResult
from .errors import RateLimitExceeded

logger = logging.getLogger(__name__)

ELEVATED_ROLES = {UserRole.ADMIN, UserRole.LEAD_INVESTOR}


@dataclass
class RateLimitBucket:
    tokens: int
    reset_at: float


class RateLimiter:
    """
    Token bucket per key that refills to max when its window expires.

    Buckets are fixed-window: a key gets `max_requests` tokens, and the
    bucket is replaced by a full one once `reset_at` passes.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        key_prefix: str = "rl",
        clock: Callable[[], float] = time.time,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self._clock = clock
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def _key(self, identifier: str) -> str:
        return f"{self.key_prefix}:{identifier}"

    def _current_bucket(self, key: str, now: float) -> RateLimitBucket:
        # Caller holds the lock
        bucket = self._buckets.get(key)
        if bucket is None or now >= bucket.reset_at:
            bucket = RateLimitBucket(tokens=self.max_requests, reset_at=now + self.window_seconds)
            self._buckets[key] = bucket
        return bucket

    def check_limit(self, identifier: str) -> RateLimitResult:
        """Consume one token for the identifier if any remain."""
        with self._lock:
            now = self._clock()
            bucket = self._current_bucket(self._key(identifier), now)

            if bucket.tokens <= 0:
                retry_after_ms = max(1, math.ceil((bucket.reset_at - now) * 1000))
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    limit=self.max_requests,
                    reset_at=bucket.reset_at,
                    retry_after_ms=retry_after_ms,
                )

            bucket.tokens -= 1
            return RateLimitResult(
                allowed=True,
                remaining=bucket.tokens,
                limit=self.max_requests,
                reset_at=bucket.reset_at,
            )

    def enforce_limit(self, identifier: str) -> RateLimitResult:
        """
        Consume a token or raise.

        Raises:
            RateLimitExceeded: when the bucket is empty
        """
        result = self.check_limit(identifier)
        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {self._key(identifier)}, retry in {result.retry_after_ms}ms"
            )
            raise RateLimitExceeded(self._key(identifier), result.limit, result.retry_after_ms)
        return result

    def get_status(self, identifier: str) -> RateLimitResult:
        """Report the bucket state without consuming a token."""
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(self._key(identifier))
            if bucket is None or now >= bucket.reset_at:
                return RateLimitResult(
                    allowed=True,
                    remaining=self.max_requests,
                    limit=self.max_requests,
                    reset_at=now + self.window_seconds,
                )
            retry_after_ms = 0
            if bucket.tokens <= 0:
                retry_after_ms = max(1, math.ceil((bucket.reset_at - now) * 1000))
            return RateLimitResult(
                allowed=bucket.tokens > 0,
                remaining=bucket.tokens,
                limit=self.max_requests,
                reset_at=bucket.reset_at,
                retry_after_ms=retry_after_ms,
            )

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._buckets.pop(self._key(identifier), None)

    def reset_all(self) -> None:
        with self._lock:
            self._buckets.clear()

    def cleanup(self) -> int:
        """Drop buckets whose window has passed. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, bucket in self._buckets.items() if now >= bucket.reset_at]
            for key in expired:
                del self._buckets[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired rate limit buckets")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)


class RateLimitService:
    """Global bucket first, then a per-user bucket sized by role."""

    GLOBAL_KEY = "all"

    def __init__(
        self,
        user_requests: int = 100,
        admin_requests: int = 1000,
        global_requests: int = 10000,
        window_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.user_limiter = RateLimiter(user_requests, window_seconds, "user", clock)
        self.admin_limiter = RateLimiter(admin_requests, window_seconds, "admin", clock)
        self.global_limiter = RateLimiter(global_requests, window_seconds, "global", clock)

    @classmethod
    def from_settings(cls, settings) -> "RateLimitService":
        return cls(
            user_requests=settings.user_requests_per_window,
            admin_requests=settings.admin_requests_per_window,
            global_requests=settings.global_requests_per_window,
            window_seconds=settings.rate_limit_window_seconds,
        )

    def _limiter_for(self, role: Optional[UserRole]) -> RateLimiter:
        return self.admin_limiter if role in ELEVATED_ROLES else self.user_limiter

    def check(self, user_id: str, role: Optional[UserRole] = None) -> RateLimitResult:
        """
        Check both tiers.

        An exhausted user bucket is detected before the global tier is
        touched, and a global rejection does not consume a user token.
        """
        limiter = self._limiter_for(role)
        status = limiter.get_status(user_id)
        if not status.allowed:
            return status

        global_result = self.global_limiter.check_limit(self.GLOBAL_KEY)
        if not global_result.allowed:
            return global_result
        return limiter.check_limit(user_id)

    def enforce(self, user_id: str, role: Optional[UserRole] = None) -> RateLimitResult:
        """Same admission order as `check`, raising RateLimitExceeded on rejection."""
        limiter = self._limiter_for(role)
        if not limiter.get_status(user_id).allowed:
            # Empty bucket: raises without consuming anything
            limiter.enforce_limit(user_id)

        self.global_limiter.enforce_limit(self.GLOBAL_KEY)
        return limiter.enforce_limit(user_id)

    def get_status(self, user_id: str, role: Optional[UserRole] = None) -> RateLimitResult:
        return self._limiter_for(role).get_status(user_id)

    def reset_user(self, user_id: str) -> None:
        self.user_limiter.reset(user_id)
        self.admin_limiter.reset(user_id)

    def reset_all(self) -> None:
        for limiter in (self.user_limiter, self.admin_limiter, self.global_limiter):
            limiter.reset_all()

    def cleanup(self) -> int:
        return sum(
            limiter.cleanup()
            for limiter in (self.user_limiter, self.admin_limiter, self.global_limiter)
        )
