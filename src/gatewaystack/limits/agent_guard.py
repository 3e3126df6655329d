# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Agent workflow guard -- caps runaway agent loops.

A workflow is a group of tool calls sharing a caller-supplied id. The
guard tracks call count, accumulated cost and wall-clock duration per
workflow, and refuses further calls once any cap is reached. State lives
from the first check or record until ``end_workflow``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from gatewaystack.errors import ConfigurationError
from gatewaystack.limits.budget import format_amount
from gatewaystack.scheduling import Clock, system_clock

logger = logging.getLogger("gatewaystack.limits.agent_guard")


@dataclass
class AgentGuardConfig:
    max_tool_calls: int = 50
    max_workflow_cost: float = 1000
    max_duration_ms: int = 300_000

    def __post_init__(self) -> None:
        if self.max_tool_calls <= 0:
            raise ConfigurationError("agent_guard.max_tool_calls must be positive")
        if self.max_workflow_cost <= 0:
            raise ConfigurationError("agent_guard.max_workflow_cost must be positive")
        if self.max_duration_ms <= 0:
            raise ConfigurationError("agent_guard.max_duration_ms must be positive")


@dataclass
class AgentGuardResult:
    allowed: bool
    reason: str
    tool_call_count: int
    workflow_cost: float
    duration_ms: float


@dataclass
class _WorkflowState:
    started_at: float
    tool_call_count: int = 0
    total_cost: float = 0


class AgentGuard:
    """Per-workflow call, cost and duration limits."""

    def __init__(self, config: AgentGuardConfig | None = None, clock: Clock | None = None) -> None:
        self._config = config or AgentGuardConfig()
        self._clock = clock or system_clock
        self._workflows: dict[str, _WorkflowState] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> AgentGuardConfig:
        return self._config

    def _state(self, workflow_id: str, now: float) -> _WorkflowState:
        state = self._workflows.get(workflow_id)
        if state is None:
            state = _WorkflowState(started_at=now)
            self._workflows[workflow_id] = state
        return state

    def check(self, workflow_id: str) -> AgentGuardResult:
        now = self._clock()
        cfg = self._config
        with self._lock:
            state = self._state(workflow_id, now)
            count = state.tool_call_count
            cost = state.total_cost
            duration = now - state.started_at

        def result(allowed: bool, reason: str) -> AgentGuardResult:
            return AgentGuardResult(
                allowed=allowed,
                reason=reason,
                tool_call_count=count,
                workflow_cost=cost,
                duration_ms=duration,
            )

        if duration > cfg.max_duration_ms:
            reason = f"Workflow exceeded max duration: {format_amount(duration)}ms > {cfg.max_duration_ms}ms"
        elif count >= cfg.max_tool_calls:
            reason = f"Workflow exceeded max tool calls: {count} >= {cfg.max_tool_calls}"
        elif cost >= cfg.max_workflow_cost:
            reason = f"Workflow exceeded max cost: {format_amount(cost)} >= {format_amount(cfg.max_workflow_cost)}"
        else:
            return result(True, "Within workflow limits")

        logger.warning("Workflow %s stopped: %s", workflow_id, reason)
        return result(False, reason)

    def record_tool_call(self, workflow_id: str, cost: float = 0) -> None:
        now = self._clock()
        with self._lock:
            state = self._state(workflow_id, now)
            state.tool_call_count += 1
            state.total_cost += cost

    def end_workflow(self, workflow_id: str) -> None:
        with self._lock:
            self._workflows.pop(workflow_id, None)

    @property
    def active_workflows(self) -> int:
        with self._lock:
            return len(self._workflows)
