"""Tests for fixed-window rate limiting."""

import pytest
from schemas.context import UserRole
from utils.errors import ErrorCategory, RateLimitExceeded
from utils.rate_limiter import RateLimiter, RateLimitService

from conftest import FakeTimer


class TestRateLimiter:
    """Single-tier bucket behaviour."""

    def setup_method(self):
        self.clock = FakeTimer()
        self.limiter = RateLimiter(max_requests=5, window_seconds=60, clock=self.clock)

    def test_sixth_request_in_window_is_denied(self):
        results = [self.limiter.check_limit("user-1") for _ in range(6)]

        assert all(r.allowed for r in results[:5])
        assert [r.remaining for r in results[:5]] == [4, 3, 2, 1, 0]
        assert results[5].allowed is False
        assert results[5].retry_after_ms > 0

    def test_retry_after_reflects_window(self):
        for _ in range(5):
            self.limiter.check_limit("user-1")
        self.clock.advance(20)

        result = self.limiter.check_limit("user-1")
        assert result.retry_after_ms == 40_000

    def test_refills_after_window(self):
        for _ in range(6):
            self.limiter.check_limit("user-1")
        self.clock.advance(60)

        result = self.limiter.check_limit("user-1")
        assert result.allowed is True
        assert result.remaining == 4

    def test_keys_are_independent(self):
        for _ in range(5):
            self.limiter.check_limit("user-1")
        assert self.limiter.check_limit("user-2").allowed is True

    def test_enforce_limit_raises(self):
        for _ in range(5):
            self.limiter.enforce_limit("user-1")

        with pytest.raises(RateLimitExceeded) as exc_info:
            self.limiter.enforce_limit("user-1")

        error = exc_info.value
        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.retry_after_ms > 0
        assert error.limit == 5

    def test_get_status_does_not_consume(self):
        self.limiter.check_limit("user-1")
        status = self.limiter.get_status("user-1")
        assert status.remaining == 4
        assert self.limiter.get_status("user-1").remaining == 4
        assert self.limiter.get_status("unknown").remaining == 5

    def test_reset_and_cleanup(self):
        for _ in range(5):
            self.limiter.check_limit("user-1")
        self.limiter.reset("user-1")
        assert self.limiter.check_limit("user-1").remaining == 4

        self.limiter.check_limit("user-2")
        self.clock.advance(61)
        assert self.limiter.cleanup() == 2
        assert len(self.limiter) == 0

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0, window_seconds=60)
        with pytest.raises(ValueError):
            RateLimiter(max_requests=5, window_seconds=0)


class TestRateLimitService:
    """Global and per-role tiers."""

    def setup_method(self):
        self.clock = FakeTimer()
        self.service = RateLimitService(
            user_requests=2,
            admin_requests=4,
            global_requests=5,
            window_seconds=60,
            clock=self.clock,
        )

    def test_admins_get_a_larger_bucket(self):
        user_results = [self.service.check("u", UserRole.USER) for _ in range(3)]
        assert [r.allowed for r in user_results] == [True, True, False]

        self.service.reset_all()
        admin_results = [self.service.check("a", UserRole.ADMIN) for _ in range(4)]
        assert all(r.allowed for r in admin_results)

    def test_global_limit_applies_to_everyone(self):
        for user in ("a", "b", "c", "d", "e"):
            assert self.service.check(user).allowed

        result = self.service.check("f")
        assert result.allowed is False
        assert result.retry_after_ms > 0

    def test_enforce_raises(self):
        self.service.enforce("u")
        self.service.enforce("u")
        with pytest.raises(RateLimitExceeded):
            self.service.enforce("u")

    def test_rejected_user_does_not_spend_global_capacity(self):
        self.service.enforce("u")
        self.service.enforce("u")
        for _ in range(3):
            with pytest.raises(RateLimitExceeded):
                self.service.enforce("u")
            assert not self.service.check("u").allowed

        assert self.service.global_limiter.get_status(RateLimitService.GLOBAL_KEY).remaining == 3
        assert all(self.service.check(user).allowed for user in ("a", "b", "c"))

    def test_reset_user(self):
        self.service.check("u")
        self.service.check("u")
        self.service.reset_user("u")
        assert self.service.get_status("u").remaining == 2
