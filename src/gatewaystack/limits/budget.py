# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Spend budget tracker -- prevents runaway model costs.

Usage records are kept per key for one rolling period. A check compares
the spend inside the period plus the estimated cost of the next call
against the configured ceiling. Per-model ceilings may be layered on top.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field

from gatewaystack.errors import ConfigurationError
from gatewaystack.scheduling import Clock, PeriodicSweep, system_clock

logger = logging.getLogger("gatewaystack.limits.budget")


@dataclass
class BudgetConfig:
    max_spend: float
    period_ms: int
    model_limits: dict[str, float] = field(default_factory=dict)  # model -> max spend

    def __post_init__(self) -> None:
        if self.max_spend <= 0:
            raise ConfigurationError("budget.max_spend must be positive")
        if self.period_ms <= 0:
            raise ConfigurationError("budget.period_ms must be positive")
        for model, limit in self.model_limits.items():
            if limit <= 0:
                raise ConfigurationError(f"budget.model_limits.{model} must be positive")


@dataclass
class UsageRecord:
    """One completed call's cost."""

    timestamp: float  # Epoch ms
    cost: float
    tokens: int | None = None
    model: str | None = None
    tool: str | None = None


@dataclass
class BudgetCheckResult:
    allowed: bool
    current_spend: float
    max_spend: float
    percent_used: int
    reason: str


@dataclass
class UsageSummary:
    total_spend: float
    total_tokens: int
    request_count: int


def format_amount(value: float) -> str:
    """Render 90.0 as "90" and 12.5 as "12.5"."""
    if float(value).is_integer():
        return str(int(value))
    return str(round(value, 6))


def _percent(spend: float, ceiling: float) -> int:
    # Half-up rounding, 12.5 -> 13
    return int(math.floor(spend / ceiling * 100 + 0.5))


class InMemoryBudgetTracker:
    """Thread-safe rolling-period spend tracker keyed by resolved identity."""

    def __init__(
        self,
        config: BudgetConfig,
        clock: Clock | None = None,
        auto_sweep: bool = True,
    ) -> None:
        self._config = config
        self._clock = clock or system_clock
        self._records: dict[str, list[UsageRecord]] = {}
        self._lock = threading.Lock()
        self._sweeper: PeriodicSweep | None = None
        if auto_sweep:
            self._sweeper = PeriodicSweep(
                self.sweep, config.period_ms / 10, name="budget-sweep"
            )
            self._sweeper.start()

    @property
    def config(self) -> BudgetConfig:
        return self._config

    def _live(self, key: str, now: float) -> list[UsageRecord]:
        cutoff = now - self._config.period_ms
        return [r for r in self._records.get(key, []) if r.timestamp > cutoff]

    def check(
        self,
        key: str,
        estimated_cost: float | None = None,
        model: str | None = None,
    ) -> BudgetCheckResult:
        """Would a call costing ``estimated_cost`` stay inside the budget?"""
        now = self._clock()
        estimate = estimated_cost or 0
        max_spend = self._config.max_spend

        with self._lock:
            live = self._live(key, now)

        current = sum(r.cost for r in live)
        percent = _percent(current, max_spend)

        if current + estimate > max_spend:
            logger.warning(
                "Budget exceeded for %s: %s / %s (estimated +%s)",
                key,
                current,
                max_spend,
                estimate,
            )
            return BudgetCheckResult(
                allowed=False,
                current_spend=current,
                max_spend=max_spend,
                percent_used=percent,
                reason=(
                    f"Budget exceeded: {format_amount(current)} / "
                    f"{format_amount(max_spend)} (estimated +{format_amount(estimate)})"
                ),
            )

        model_limit = self._config.model_limits.get(model) if model else None
        if model_limit is not None:
            model_spend = sum(r.cost for r in live if r.model == model)
            if model_spend + estimate > model_limit:
                logger.warning(
                    "Model budget exceeded for %s on %s: %s / %s",
                    key,
                    model,
                    model_spend,
                    model_limit,
                )
                return BudgetCheckResult(
                    allowed=False,
                    current_spend=model_spend,
                    max_spend=model_limit,
                    percent_used=_percent(model_spend, model_limit),
                    reason=(
                        f"Model budget exceeded for {model}: {format_amount(model_spend)} / "
                        f"{format_amount(model_limit)} (estimated +{format_amount(estimate)})"
                    ),
                )

        return BudgetCheckResult(
            allowed=True,
            current_spend=current,
            max_spend=max_spend,
            percent_used=percent,
            reason="Within budget",
        )

    def record(self, key: str, usage: UsageRecord) -> None:
        with self._lock:
            self._records.setdefault(key, []).append(usage)

    def get_current_spend(self, key: str) -> float:
        now = self._clock()
        with self._lock:
            return sum(r.cost for r in self._live(key, now))

    def get_usage_summary(self, key: str) -> UsageSummary:
        """Totals for ``key`` over the current period."""
        now = self._clock()
        with self._lock:
            live = self._live(key, now)
        return UsageSummary(
            total_spend=sum(r.cost for r in live),
            total_tokens=sum(r.tokens or 0 for r in live),
            request_count=len(live),
        )

    def sweep(self) -> None:
        """Drop records older than the period and forget empty keys."""
        now = self._clock()
        with self._lock:
            for key in list(self._records):
                live = self._live(key, now)
                if live:
                    self._records[key] = live
                else:
                    del self._records[key]

    @property
    def active_keys(self) -> int:
        with self._lock:
            return len(self._records)

    def destroy(self) -> None:
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
