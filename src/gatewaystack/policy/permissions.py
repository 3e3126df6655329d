# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Permission checks against a caller's grants (scopes, permissions, roles)."""

from __future__ import annotations

from dataclasses import dataclass, field

from gatewaystack.identity import IdentityClaims


@dataclass
class PermissionCheckResult:
    allowed: bool
    reason: str
    missing: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.allowed


def check_permissions(claims: IdentityClaims, required: list[str]) -> PermissionCheckResult:
    """Every permission in ``required`` must be granted."""
    if not required:
        return PermissionCheckResult(allowed=True, reason="No permissions required")

    grants = claims.grants()
    missing = [p for p in required if p not in grants]
    if missing:
        return PermissionCheckResult(
            allowed=False,
            reason=f"Missing permissions: {', '.join(missing)}",
            missing=missing,
        )
    return PermissionCheckResult(allowed=True, reason="All permissions granted")


def check_any_permission(claims: IdentityClaims, any_of: list[str]) -> PermissionCheckResult:
    """At least one permission in ``any_of`` must be granted."""
    if not any_of:
        return PermissionCheckResult(allowed=True, reason="No permissions required")

    grants = claims.grants()
    if any(p in grants for p in any_of):
        return PermissionCheckResult(allowed=True, reason="Has required permission")
    return PermissionCheckResult(
        allowed=False,
        reason=f"Requires one of: {', '.join(any_of)}",
        missing=list(any_of),
    )
