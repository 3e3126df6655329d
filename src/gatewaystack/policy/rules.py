# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Rule-based policy evaluation.

A policy set is an ordered list of rules. Rules are sorted by priority
(lowest first, default 100, ties keep their declared order) and the first
rule whose conditions all match decides. When nothing matches the set's
default effect applies, which is ``deny`` unless configured otherwise.

Condition fields are either shorthands (``scope``, ``permissions``,
``roles``, ``org_id``, ``sub``, ``tool``, ``model``) or dotted paths into
the request, e.g. ``identity.tenant`` or ``input.path``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from gatewaystack.errors import ConfigurationError
from gatewaystack.identity import IdentityClaims

logger = logging.getLogger("gatewaystack.policy.rules")

EFFECTS = ("allow", "deny")
OPERATORS = ("equals", "contains", "in", "matches", "exists")

_MISSING = object()


@dataclass
class PolicyCondition:
    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PolicyCondition:
        operator = data.get("operator", "")
        if operator not in OPERATORS:
            raise ConfigurationError(f"Unknown policy operator: {operator!r}")
        if not data.get("field"):
            raise ConfigurationError("Policy condition is missing 'field'")
        return cls(field=data["field"], operator=operator, value=data.get("value"))


@dataclass
class PolicyRule:
    id: str
    effect: str  # "allow" or "deny"
    conditions: list[PolicyCondition] = field(default_factory=list)
    priority: int = 100  # Lower runs first
    reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PolicyRule:
        effect = data.get("effect", "")
        if effect not in EFFECTS:
            raise ConfigurationError(f"Policy rule {data.get('id')!r} has invalid effect {effect!r}")
        return cls(
            id=str(data.get("id", "")),
            effect=effect,
            conditions=[PolicyCondition.from_dict(c) for c in data.get("conditions", [])],
            priority=int(data.get("priority", 100)),
            reason=data.get("reason"),
        )


@dataclass
class PolicySet:
    rules: list[PolicyRule] = field(default_factory=list)
    default_effect: str = "deny"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PolicySet:
        default_effect = data.get("default_effect", "deny")
        if default_effect not in EFFECTS:
            raise ConfigurationError(f"Invalid policy default_effect {default_effect!r}")
        return cls(
            rules=[PolicyRule.from_dict(r) for r in data.get("rules", [])],
            default_effect=default_effect,
        )


@dataclass
class PolicyRequest:
    """What a policy is evaluated against."""

    identity: IdentityClaims
    tool: str | None = None
    model: str | None = None
    input: Any = None
    context: dict[str, Any] = field(default_factory=dict)  # Extra matchable fields

    def as_context(self) -> dict[str, Any]:
        """Request as nested dicts, for dotted-path field lookups."""
        data: dict[str, Any] = dict(self.context)
        data.update(
            {
                "identity": self.identity.to_dict(),
                "tool": self.tool,
                "model": self.model,
                "input": self.input,
            }
        )
        return data


@dataclass
class PolicyDecision:
    allowed: bool
    reason: str
    evaluated_count: int
    matched_rule: PolicyRule | None = None

    def __bool__(self) -> bool:
        return self.allowed


def apply_policies(policy_set: PolicySet, request: PolicyRequest) -> PolicyDecision:
    """Evaluate ``policy_set`` against ``request``; first matching rule wins."""
    ordered = sorted(policy_set.rules, key=lambda r: r.priority)

    for index, rule in enumerate(ordered):
        if all(_matches(c, request) for c in rule.conditions):
            logger.debug("Policy rule %s matched (%s)", rule.id, rule.effect)
            return PolicyDecision(
                allowed=rule.effect == "allow",
                reason=rule.reason or f"Matched rule: {rule.id} ({rule.effect})",
                evaluated_count=index + 1,
                matched_rule=rule,
            )

    effect = policy_set.default_effect or "deny"
    return PolicyDecision(
        allowed=effect == "allow",
        reason=f"No rules matched; default: {effect}",
        evaluated_count=len(ordered),
    )


# ---------------------------------------------------------------------------
# Condition matching
# ---------------------------------------------------------------------------


def _resolve_field(name: str, request: PolicyRequest) -> Any:
    claims = request.identity
    if name == "scope":
        return claims.scope_string()
    if name in ("permission", "permissions"):
        return list(claims.permissions)
    if name in ("role", "roles"):
        return list(claims.roles)
    if name == "org_id":
        return claims.org_id
    if name == "sub":
        return claims.sub
    if name == "tool":
        return request.tool
    if name == "model":
        return request.model

    context = request.as_context()
    if "." not in name and name not in context:
        # Bare claim names such as "tier" reach unknown claims
        return claims.get(name)

    current: Any = context
    for part in name.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            return None
        if current is _MISSING:
            return None
    return current


def _strict_equals(left: Any, right: Any) -> bool:
    # True never equals 1, "1" never equals 1
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _as_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join(_as_string(v) for v in value)
    return str(value)


def _matches(condition: PolicyCondition, request: PolicyRequest) -> bool:
    value = _resolve_field(condition.field, request)
    op = condition.operator
    target = condition.value

    if op == "equals":
        return _strict_equals(value, target)

    if op == "contains":
        if isinstance(value, str):
            return _as_string(target) in value.split()
        if isinstance(value, list):
            return any(_strict_equals(v, target) for v in value)
        return False

    if op == "in":
        if not isinstance(target, list) or value is None:
            return False
        return _as_string(value) in target

    if op == "matches":
        if not isinstance(value, str) or not isinstance(target, str):
            return False
        try:
            return re.search(target, value) is not None
        except re.error as exc:
            logger.debug("Invalid policy regex %r: %s", target, exc)
            return False

    if op == "exists":
        return (value is not None) if target else (value is None)

    return False
