# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
"""Tests for identity claims, scopes and permission checks."""

from gatewaystack.identity import IdentityClaims
from gatewaystack.policy import (
    check_any_permission,
    check_permissions,
    get_scope_string,
    has_all_scopes,
    has_scope,
)


class TestIdentityClaims:
    """Tests for claim parsing and grant sets."""

    def test_from_dict_keeps_unknown_claims(self):
        claims = IdentityClaims.from_dict(
            {"sub": "alice", "scope": "read write", "tenant": "acme", "tier": 2}
        )
        assert claims.sub == "alice"
        assert claims.extra == {"tenant": "acme", "tier": 2}
        assert claims.get("tenant") == "acme"
        assert claims.get("missing", "x") == "x"

    def test_scope_string_or_list(self):
        assert IdentityClaims(scope="a b").scope_list() == ["a", "b"]
        assert IdentityClaims(scope=["a", "b"]).scope_list() == ["a", "b"]
        assert IdentityClaims(scope="a", scopes=["a", "c"]).scope_list() == ["a", "c"]

    def test_grants_union(self):
        claims = IdentityClaims(scope="tools:read", permissions=["tools:write"], roles=["admin"])
        assert claims.grants() == {"tools:read", "tools:write", "admin"}

    def test_single_string_permissions(self):
        claims = IdentityClaims.from_dict({"permissions": "tools:write"})
        assert claims.permissions == ["tools:write"]


class TestScopes:
    def test_get_scope_string_from_list(self):
        assert get_scope_string(IdentityClaims(scope=["a", "b"])) == "a b"

    def test_has_scope(self):
        claims = IdentityClaims(scope="read write")
        assert has_scope(claims, "read") is True
        assert has_scope(claims, "rea") is False
        assert has_all_scopes(claims, ["read", "write"]) is True
        assert has_all_scopes(claims, ["read", "admin"]) is False


class TestCheckPermissions:
    """Tests for all-of permission checks."""

    def test_nothing_required(self):
        result = check_permissions(IdentityClaims(), [])
        assert result.allowed is True
        assert result.reason == "No permissions required"

    def test_all_granted(self):
        claims = IdentityClaims(scope="a", permissions=["b"], roles=["c"])
        result = check_permissions(claims, ["a", "b", "c"])
        assert result.allowed is True
        assert result.reason == "All permissions granted"
        assert result.missing == []

    def test_missing_listed_in_order(self):
        claims = IdentityClaims(scope="a")
        result = check_permissions(claims, ["x", "a", "y"])
        assert result.allowed is False
        assert result.missing == ["x", "y"]
        assert result.reason == "Missing permissions: x, y"

    def test_scope_substring_is_not_a_grant(self):
        claims = IdentityClaims(scope="tools:readonly")
        assert check_permissions(claims, ["tools:read"]).allowed is False


class TestCheckAnyPermission:
    """Tests for any-of permission checks."""

    def test_one_match_enough(self):
        claims = IdentityClaims(roles=["editor"])
        result = check_any_permission(claims, ["admin", "editor"])
        assert result.allowed is True
        assert result.reason == "Has required permission"

    def test_none_match(self):
        result = check_any_permission(IdentityClaims(), ["admin", "editor"])
        assert result.allowed is False
        assert result.reason == "Requires one of: admin, editor"

    def test_empty_list_allowed(self):
        assert check_any_permission(IdentityClaims(), []).allowed is True
