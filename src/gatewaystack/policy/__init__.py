# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Policy decisions: permissions, rule sets and input schemas."""

from gatewaystack.policy.decision import (
    DecisionChecks,
    DecisionOptions,
    ValidationDecision,
    decision,
)
from gatewaystack.policy.permissions import (
    PermissionCheckResult,
    check_any_permission,
    check_permissions,
)
from gatewaystack.policy.rules import (
    PolicyCondition,
    PolicyDecision,
    PolicyRequest,
    PolicyRule,
    PolicySet,
    apply_policies,
)
from gatewaystack.policy.schema import SchemaValidationResult, check_schema
from gatewaystack.policy.scopes import get_scope_string, has_all_scopes, has_scope

__all__ = [
    "DecisionChecks",
    "DecisionOptions",
    "PermissionCheckResult",
    "PolicyCondition",
    "PolicyDecision",
    "PolicyRequest",
    "PolicyRule",
    "PolicySet",
    "SchemaValidationResult",
    "ValidationDecision",
    "apply_policies",
    "check_any_permission",
    "check_permissions",
    "check_schema",
    "decision",
    "get_scope_string",
    "has_all_scopes",
    "has_scope",
]
