# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
"""Tests for the admission control engine and key resolution."""

import pytest

from gatewaystack.identity import IdentityClaims, LimitKey, limit_key_from_claims, resolve_key
from gatewaystack.limits import (
    AdmissionConfig,
    AdmissionEngine,
    AgentGuardConfig,
    BudgetConfig,
    RateLimitConfig,
    UsageRecord,
)


class TestResolveKey:
    """Tests for admission key derivation."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            (LimitKey(sub="u1"), "u:u1"),
            (LimitKey(sub="u1", org_id="o1", ip="1.2.3.4"), "u:u1"),
            (LimitKey(org_id="o1", ip="1.2.3.4"), "o:o1"),
            (LimitKey(ip="1.2.3.4"), "ip:1.2.3.4"),
            (LimitKey(), "anonymous"),
            (LimitKey(tenant_id="t1", sub="u1"), "t:t1|u:u1"),
            (LimitKey(tenant_id="t1"), "t:t1|anonymous"),
        ],
    )
    def test_resolve(self, key, expected):
        assert resolve_key(key) == expected

    def test_key_from_claims(self):
        claims = IdentityClaims(sub="alice", org_id="acme")
        key = limit_key_from_claims(claims, ip="10.0.0.1", tenant_id="t1")
        assert key == LimitKey(sub="alice", org_id="acme", ip="10.0.0.1", tenant_id="t1")

    def test_key_without_claims(self):
        assert resolve_key(limit_key_from_claims(None, ip="9.9.9.9")) == "ip:9.9.9.9"


@pytest.fixture
def engine(clock):
    engine = AdmissionEngine(
        AdmissionConfig(
            rate_limit=RateLimitConfig(window_ms=60_000, max_requests=5),
            budget=BudgetConfig(max_spend=10, period_ms=86_400_000),
            agent_guard=AgentGuardConfig(max_tool_calls=2),
        ),
        clock=clock,
        auto_sweep=False,
    )
    yield engine
    engine.destroy()


ALICE = LimitKey(sub="alice")


class TestPreflight:
    """Tests for ordered admission checks."""

    def test_all_pass(self, engine):
        result = engine.preflight(ALICE)
        assert result.allowed is True
        assert result.reason == "All checks passed"
        assert result.rate_limit is not None
        assert result.budget is not None
        assert result.agent_guard is None

    def test_rate_limit_first(self, engine, clock):
        for _ in range(5):
            engine.preflight(ALICE)
        result = engine.preflight(ALICE)
        assert result.allowed is False
        assert result.reason == "Rate limited. Retry after 60s"
        assert result.budget is None

    def test_budget_denial(self, engine, clock):
        engine.record_usage(ALICE, UsageRecord(timestamp=clock.now, cost=9))
        result = engine.preflight(ALICE, estimated_cost=2)
        assert result.allowed is False
        assert result.reason.startswith("Budget exceeded")
        assert result.rate_limit.allowed is True

    def test_agent_guard_only_with_workflow(self, engine, clock):
        engine.record_usage(ALICE, UsageRecord(timestamp=clock.now, cost=0), workflow_id="wf")
        engine.record_usage(ALICE, UsageRecord(timestamp=clock.now, cost=0), workflow_id="wf")
        assert engine.preflight(ALICE).allowed is True
        result = engine.preflight(ALICE, workflow_id="wf")
        assert result.allowed is False
        assert result.reason == "Workflow exceeded max tool calls: 2 >= 2"

    def test_record_usage_feeds_budget_and_guard(self, engine, clock):
        engine.record_usage(ALICE, UsageRecord(timestamp=clock.now, cost=3, tokens=50), workflow_id="wf")
        summary = engine.get_usage_summary(ALICE)
        assert summary.total_spend == 3
        assert summary.total_tokens == 50
        assert engine.agent_guard.check("wf").workflow_cost == 3

    def test_end_workflow(self, engine, clock):
        engine.record_usage(ALICE, UsageRecord(timestamp=clock.now, cost=0), workflow_id="wf")
        engine.end_workflow("wf")
        assert engine.agent_guard.active_workflows == 0

    def test_empty_engine_allows(self):
        engine = AdmissionEngine()
        result = engine.preflight(LimitKey())
        assert result.allowed is True
        assert result.rate_limit is None
        assert engine.get_usage_summary(LimitKey()) is None
        engine.destroy()

    def test_bool(self, engine):
        assert bool(engine.preflight(ALICE)) is True
