# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Admission control: rate limiting, spend budgets and agent workflow guards."""

from gatewaystack.limits.agent_guard import AgentGuard, AgentGuardConfig, AgentGuardResult
from gatewaystack.limits.budget import (
    BudgetCheckResult,
    BudgetConfig,
    InMemoryBudgetTracker,
    UsageRecord,
    UsageSummary,
)
from gatewaystack.limits.preflight import AdmissionConfig, AdmissionEngine, PreflightResult
from gatewaystack.limits.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimitResult,
)

__all__ = [
    "AdmissionConfig",
    "AdmissionEngine",
    "AgentGuard",
    "AgentGuardConfig",
    "AgentGuardResult",
    "BudgetCheckResult",
    "BudgetConfig",
    "InMemoryBudgetTracker",
    "InMemoryRateLimiter",
    "PreflightResult",
    "RateLimitConfig",
    "RateLimitResult",
    "UsageRecord",
    "UsageSummary",
]
