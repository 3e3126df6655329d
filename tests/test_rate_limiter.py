# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
"""Tests for the sliding-window rate limiter."""

import pytest

from gatewaystack.errors import ConfigurationError
from gatewaystack.limits.rate_limiter import InMemoryRateLimiter, RateLimitConfig


@pytest.fixture
def limiter(clock):
    limiter = InMemoryRateLimiter(
        RateLimitConfig(window_ms=60_000, max_requests=3), clock=clock, auto_sweep=False
    )
    yield limiter
    limiter.destroy()


class TestRateLimitConfig:
    """Tests for config validation."""

    def test_rejects_zero_window(self):
        with pytest.raises(ConfigurationError):
            RateLimitConfig(window_ms=0, max_requests=10)

    def test_rejects_zero_max(self):
        with pytest.raises(ConfigurationError):
            RateLimitConfig(window_ms=1000, max_requests=0)


class TestInMemoryRateLimiter:
    """Tests for admission and denial within a window."""

    def test_first_request_allowed(self, limiter, clock):
        result = limiter.check("u:alice")
        assert result.allowed is True
        assert result.remaining == 2
        assert result.reset_at == clock.now + 60_000
        assert result.retry_after_sec is None

    def test_remaining_decrements(self, limiter):
        assert limiter.check("u:alice").remaining == 2
        assert limiter.check("u:alice").remaining == 1
        assert limiter.check("u:alice").remaining == 0

    def test_denied_after_max(self, limiter, clock):
        for _ in range(3):
            limiter.check("u:alice")
            clock.advance(1000)
        result = limiter.check("u:alice")
        assert result.allowed is False
        assert result.remaining == 0
        # Oldest request was at t0; now is t0 + 3s
        assert result.retry_after_sec == 57
        assert result.reset_at == clock.now - 3000 + 60_000

    def test_denied_request_not_counted(self, limiter, clock):
        for _ in range(3):
            limiter.check("u:alice")
        limiter.check("u:alice")
        limiter.check("u:alice")
        clock.advance(60_001)
        assert limiter.check("u:alice").remaining == 2

    def test_window_slides(self, limiter, clock):
        limiter.check("u:alice")
        clock.advance(30_000)
        limiter.check("u:alice")
        limiter.check("u:alice")
        assert limiter.check("u:alice").allowed is False
        clock.advance(30_000)
        # The first timestamp is exactly window_ms old and no longer counts
        assert limiter.check("u:alice").allowed is True

    def test_keys_independent(self, limiter):
        for _ in range(3):
            limiter.check("u:alice")
        assert limiter.check("u:alice").allowed is False
        assert limiter.check("u:bob").allowed is True

    def test_retry_after_rounds_up(self, clock):
        limiter = InMemoryRateLimiter(
            RateLimitConfig(window_ms=1500, max_requests=1), clock=clock, auto_sweep=False
        )
        limiter.check("k")
        clock.advance(100)
        result = limiter.check("k")
        assert result.allowed is False
        assert result.retry_after_sec == 2


class TestSweep:
    """Tests for expired-entry cleanup."""

    def test_sweep_drops_expired_keys(self, limiter, clock):
        limiter.check("u:alice")
        limiter.check("u:bob")
        assert limiter.active_keys == 2
        clock.advance(60_001)
        limiter.sweep()
        assert limiter.active_keys == 0

    def test_sweep_keeps_live_keys(self, limiter, clock):
        limiter.check("u:alice")
        clock.advance(50_000)
        limiter.check("u:bob")
        clock.advance(20_000)
        limiter.sweep()
        assert limiter.active_keys == 1

    def test_reset_single_key(self, limiter):
        limiter.check("u:alice")
        limiter.check("u:bob")
        limiter.reset("u:alice")
        assert limiter.active_keys == 1
        limiter.reset()
        assert limiter.active_keys == 0

    def test_destroy_stops_background_sweep(self):
        limiter = InMemoryRateLimiter(RateLimitConfig(window_ms=1000, max_requests=5))
        assert limiter._sweeper.is_running is True
        sweeper = limiter._sweeper
        limiter.destroy()
        assert sweeper.is_running is False
        # Idempotent
        limiter.destroy()
