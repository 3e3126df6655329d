# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Unified policy decision for a tool call.

Runs the configured checks in order and stops at the first failure:
1. Required permissions (all must be granted)
2. Rule-based policy set
3. Input schema (skipped when the request carries no input)

A decision with nothing configured allows the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from gatewaystack.policy.permissions import PermissionCheckResult, check_permissions
from gatewaystack.policy.rules import PolicyDecision, PolicyRequest, PolicySet, apply_policies
from gatewaystack.policy.schema import SchemaValidationResult, check_schema

logger = logging.getLogger("gatewaystack.policy.decision")


@dataclass
class DecisionOptions:
    required_permissions: list[str] = field(default_factory=list)
    policies: PolicySet | None = None
    input_schema: dict[str, Any] | None = None


@dataclass
class DecisionChecks:
    """Sub-results of the checks that actually ran."""

    permissions: PermissionCheckResult | None = None
    policy: PolicyDecision | None = None
    schema: SchemaValidationResult | None = None


@dataclass
class ValidationDecision:
    allowed: bool
    reason: str
    checks: DecisionChecks = field(default_factory=DecisionChecks)

    def __bool__(self) -> bool:
        return self.allowed


def decision(request: PolicyRequest, options: DecisionOptions) -> ValidationDecision:
    checks = DecisionChecks()

    if options.required_permissions:
        perms = check_permissions(request.identity, options.required_permissions)
        checks.permissions = perms
        if not perms.allowed:
            return _deny(perms.reason, checks, request)

    if options.policies is not None:
        policy = apply_policies(options.policies, request)
        checks.policy = policy
        if not policy.allowed:
            return _deny(policy.reason, checks, request)

    if options.input_schema is not None and request.input is not None:
        schema = check_schema(request.input, options.input_schema)
        checks.schema = schema
        if not schema.valid:
            return _deny(f"Schema validation failed: {'; '.join(schema.errors)}", checks, request)

    return ValidationDecision(allowed=True, reason="All checks passed", checks=checks)


def _deny(reason: str, checks: DecisionChecks, request: PolicyRequest) -> ValidationDecision:
    logger.warning(
        "Policy denied %s (tool=%s): %s",
        request.identity.sub or "anonymous",
        request.tool,
        reason,
    )
    return ValidationDecision(allowed=False, reason=reason, checks=checks)
