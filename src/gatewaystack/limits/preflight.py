# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Admission control engine -- one preflight call before any upstream work.

Security checks are applied in order:
1. Rate limit (per resolved identity key)
2. Spend budget (current period plus estimated cost)
3. Agent workflow guard (only when the call belongs to a workflow)

The first failing check decides. Every component is optional; an engine
with nothing configured admits everything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gatewaystack.identity import LimitKey, resolve_key
from gatewaystack.limits.agent_guard import AgentGuard, AgentGuardConfig, AgentGuardResult
from gatewaystack.limits.budget import (
    BudgetCheckResult,
    BudgetConfig,
    InMemoryBudgetTracker,
    UsageRecord,
    UsageSummary,
)
from gatewaystack.limits.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)
from gatewaystack.scheduling import Clock

logger = logging.getLogger("gatewaystack.limits.preflight")


@dataclass
class AdmissionConfig:
    rate_limit: RateLimitConfig | None = None
    budget: BudgetConfig | None = None
    agent_guard: AgentGuardConfig | None = None


@dataclass
class PreflightResult:
    """Outcome of the admission checks, with whichever sub-results ran."""

    allowed: bool
    reason: str
    rate_limit: RateLimitResult | None = None
    budget: BudgetCheckResult | None = None
    agent_guard: AgentGuardResult | None = None

    def __bool__(self) -> bool:
        return self.allowed


class AdmissionEngine:
    """Owns the rate limiter, budget tracker and agent guard for one gateway."""

    def __init__(
        self,
        config: AdmissionConfig | None = None,
        clock: Clock | None = None,
        auto_sweep: bool = True,
    ) -> None:
        config = config or AdmissionConfig()
        self._config = config
        self.rate_limiter = (
            InMemoryRateLimiter(config.rate_limit, clock=clock, auto_sweep=auto_sweep)
            if config.rate_limit
            else None
        )
        self.budget = (
            InMemoryBudgetTracker(config.budget, clock=clock, auto_sweep=auto_sweep)
            if config.budget
            else None
        )
        self.agent_guard = AgentGuard(config.agent_guard, clock=clock) if config.agent_guard else None

    def preflight(
        self,
        key: LimitKey,
        workflow_id: str | None = None,
        estimated_cost: float | None = None,
        model: str | None = None,
    ) -> PreflightResult:
        key_str = resolve_key(key)
        result = PreflightResult(allowed=True, reason="All checks passed")

        if self.rate_limiter:
            rl = self.rate_limiter.check(key_str)
            result.rate_limit = rl
            if not rl.allowed:
                result.allowed = False
                result.reason = f"Rate limited. Retry after {rl.retry_after_sec}s"
                return result

        if self.budget:
            budget = self.budget.check(key_str, estimated_cost, model=model)
            result.budget = budget
            if not budget.allowed:
                result.allowed = False
                result.reason = budget.reason
                return result

        if self.agent_guard and workflow_id:
            guard = self.agent_guard.check(workflow_id)
            result.agent_guard = guard
            if not guard.allowed:
                result.allowed = False
                result.reason = guard.reason
                return result

        logger.debug("Preflight passed for %s", key_str)
        return result

    def record_usage(
        self,
        key: LimitKey,
        usage: UsageRecord,
        workflow_id: str | None = None,
    ) -> None:
        """Account a completed call against the budget and its workflow."""
        if self.budget:
            self.budget.record(resolve_key(key), usage)
        if self.agent_guard and workflow_id:
            self.agent_guard.record_tool_call(workflow_id, usage.cost)

    def get_usage_summary(self, key: LimitKey) -> UsageSummary | None:
        if not self.budget:
            return None
        return self.budget.get_usage_summary(resolve_key(key))

    def end_workflow(self, workflow_id: str) -> None:
        if self.agent_guard:
            self.agent_guard.end_workflow(workflow_id)

    def destroy(self) -> None:
        """Stop every background sweep."""
        if self.rate_limiter:
            self.rate_limiter.destroy()
        if self.budget:
            self.budget.destroy()
