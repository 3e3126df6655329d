# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Per-identity rate limiter -- a sliding window of request timestamps.

Each key keeps the timestamps of its admitted requests. A request is
admitted while fewer than ``max_requests`` timestamps fall inside the
trailing window. Expired timestamps are dropped on every check and by a
background sweep, so idle keys do not accumulate.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass

from gatewaystack.errors import ConfigurationError
from gatewaystack.scheduling import Clock, PeriodicSweep, system_clock

logger = logging.getLogger("gatewaystack.limits.rate_limiter")


@dataclass
class RateLimitConfig:
    window_ms: int
    max_requests: int

    def __post_init__(self) -> None:
        if self.window_ms <= 0:
            raise ConfigurationError("rate_limit.window_ms must be positive")
        if self.max_requests <= 0:
            raise ConfigurationError("rate_limit.max_requests must be positive")


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: float  # Epoch ms when capacity frees up
    retry_after_sec: int | None = None  # Only set on denial


class InMemoryRateLimiter:
    """Thread-safe sliding-window rate limiter keyed by resolved identity."""

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Clock | None = None,
        auto_sweep: bool = True,
    ) -> None:
        self._config = config
        self._clock = clock or system_clock
        self._windows: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._sweeper: PeriodicSweep | None = None
        if auto_sweep:
            self._sweeper = PeriodicSweep(
                self.sweep, config.window_ms * 2, name="rate-limit-sweep"
            )
            self._sweeper.start()

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    def check(self, key: str) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        An admitted request is counted immediately; a rejected one is not.
        """
        now = self._clock()
        window_ms = self._config.window_ms
        limit = self._config.max_requests

        with self._lock:
            cutoff = now - window_ms
            timestamps = [t for t in self._windows.get(key, []) if t > cutoff]

            if len(timestamps) >= limit:
                self._windows[key] = timestamps
                reset_at = timestamps[0] + window_ms
                retry_after = max(0, math.ceil((reset_at - now) / 1000))
                logger.warning(
                    "Rate limit exceeded for %s: %d/%d in %dms",
                    key,
                    len(timestamps),
                    limit,
                    window_ms,
                )
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_sec=retry_after,
                )

            timestamps.append(now)
            self._windows[key] = timestamps
            return RateLimitResult(
                allowed=True,
                remaining=limit - len(timestamps),
                reset_at=now + window_ms,
            )

    def sweep(self) -> None:
        """Drop expired timestamps and forget keys with nothing left."""
        now = self._clock()
        cutoff = now - self._config.window_ms
        with self._lock:
            for key in list(self._windows):
                live = [t for t in self._windows[key] if t > cutoff]
                if live:
                    self._windows[key] = live
                else:
                    del self._windows[key]

    @property
    def active_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def destroy(self) -> None:
        """Stop the background sweep. Safe to call more than once."""
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
