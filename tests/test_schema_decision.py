# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
"""Tests for input schema checks and the unified policy decision."""

import pytest

from gatewaystack.identity import IdentityClaims
from gatewaystack.policy import (
    DecisionOptions,
    PolicyCondition,
    PolicyRequest,
    PolicyRule,
    PolicySet,
    check_schema,
    decision,
)

SEARCH_SCHEMA = {
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string"},
        "limit": {"type": "number"},
        "mode": {"type": "string", "enum": ["fast", "deep"]},
        "tags": {"type": "array"},
    },
}


class TestCheckSchema:
    """Tests for the lightweight schema validator."""

    def test_valid(self):
        result = check_schema({"query": "x", "limit": 5, "mode": "fast"}, SEARCH_SCHEMA)
        assert result.valid is True
        assert result.errors == []

    def test_not_an_object(self):
        for value in ("x", [1], None, 3):
            result = check_schema(value, SEARCH_SCHEMA)
            assert result.valid is False
            assert result.errors == ["Expected an object"]

    def test_missing_required(self):
        result = check_schema({}, SEARCH_SCHEMA)
        assert result.errors == ["Missing required field: query"]

    def test_errors_accumulate(self):
        result = check_schema({"limit": "ten", "mode": "slow", "tags": {}}, SEARCH_SCHEMA)
        assert result.errors == [
            "Missing required field: query",
            "limit: expected number, got string",
            "mode: must be one of [fast, deep]",
            "tags: expected array, got object",
        ]

    def test_array_is_not_object(self):
        schema = {"type": "object", "properties": {"opts": {"type": "object"}}}
        result = check_schema({"opts": [1, 2]}, schema)
        assert result.errors == ["opts: expected object, got array"]

    def test_boolean_is_not_number(self):
        result = check_schema({"query": "x", "limit": True}, SEARCH_SCHEMA)
        assert result.errors == ["limit: expected number, got boolean"]

    def test_present_null_is_not_missing(self):
        result = check_schema({"query": None}, SEARCH_SCHEMA)
        assert result.errors == ["query: expected string, got null"]

    def test_top_level_non_object_schema(self):
        assert check_schema("hello", {"type": "string"}).valid is True
        result = check_schema(5, {"type": "string"})
        assert result.errors == ["input: expected string, got number"]

    def test_top_level_enum(self):
        result = check_schema("c", {"enum": ["a", "b"]})
        assert result.errors == ["input: must be one of [a, b]"]

    def test_enum_is_type_strict(self):
        assert check_schema(1, {"enum": ["1", 2]}).valid is False
        assert check_schema(2, {"enum": ["1", 2]}).valid is True


def make_request(**kwargs):
    defaults = {
        "identity": IdentityClaims(sub="alice", scope="tools:invoke"),
        "tool": "search",
        "input": {"query": "hi"},
    }
    defaults.update(kwargs)
    return PolicyRequest(**defaults)


ALLOW_SEARCH = PolicySet(
    rules=[
        PolicyRule(
            id="search",
            effect="allow",
            conditions=[PolicyCondition("tool", "equals", "search")],
        )
    ]
)


class TestDecision:
    """Tests for ordered permission, policy and schema checks."""

    def test_nothing_configured(self):
        result = decision(make_request(), DecisionOptions())
        assert result.allowed is True
        assert result.reason == "All checks passed"
        assert result.checks.permissions is None
        assert result.checks.policy is None
        assert result.checks.schema is None

    def test_all_pass(self):
        options = DecisionOptions(
            required_permissions=["tools:invoke"],
            policies=ALLOW_SEARCH,
            input_schema=SEARCH_SCHEMA,
        )
        result = decision(make_request(), options)
        assert result.allowed is True
        assert result.checks.permissions.allowed is True
        assert result.checks.policy.allowed is True
        assert result.checks.schema.valid is True

    def test_permission_failure_stops(self):
        options = DecisionOptions(required_permissions=["admin"], policies=ALLOW_SEARCH)
        result = decision(make_request(), options)
        assert result.allowed is False
        assert result.reason == "Missing permissions: admin"
        assert result.checks.policy is None

    def test_policy_failure_stops(self):
        options = DecisionOptions(policies=ALLOW_SEARCH, input_schema=SEARCH_SCHEMA)
        result = decision(make_request(tool="delete"), options)
        assert result.allowed is False
        assert result.reason == "No rules matched; default: deny"
        assert result.checks.schema is None

    def test_schema_failure_reason(self):
        options = DecisionOptions(input_schema=SEARCH_SCHEMA)
        result = decision(make_request(input={"limit": "x"}), options)
        assert result.allowed is False
        assert result.reason == (
            "Schema validation failed: Missing required field: query; "
            "limit: expected number, got string"
        )

    def test_schema_skipped_without_input(self):
        options = DecisionOptions(input_schema=SEARCH_SCHEMA)
        result = decision(make_request(input=None), options)
        assert result.allowed is True
        assert result.checks.schema is None

    def test_empty_permission_list_skipped(self):
        result = decision(make_request(), DecisionOptions(required_permissions=[]))
        assert result.checks.permissions is None

    @pytest.mark.parametrize("tool,allowed", [("search", True), ("write", False)])
    def test_bool(self, tool, allowed):
        result = decision(make_request(tool=tool), DecisionOptions(policies=ALLOW_SEARCH))
        assert bool(result) is allowed
