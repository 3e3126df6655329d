# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Verified caller identity and the admission-control key derived from it.

Token verification happens upstream of GatewayStack; the pipeline only
ever sees claims that have already been checked. Unknown claims are kept
in ``extra`` so that policy rules can still reach them by dotted path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

_KNOWN_CLAIMS = ("sub", "scope", "scopes", "permissions", "roles", "org_id")


@dataclass
class IdentityClaims:
    """Claims of an authenticated caller."""

    sub: str | None = None
    scope: str | list[str] | None = None  # OAuth "scope" claim, string or list
    scopes: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    org_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IdentityClaims:
        """Build claims from a decoded token payload."""
        return cls(
            sub=data.get("sub"),
            scope=data.get("scope"),
            scopes=_as_list(data.get("scopes")),
            permissions=_as_list(data.get("permissions")),
            roles=_as_list(data.get("roles")),
            org_id=data.get("org_id"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_CLAIMS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "sub": self.sub,
                "scope": self.scope,
                "scopes": list(self.scopes),
                "permissions": list(self.permissions),
                "roles": list(self.roles),
                "org_id": self.org_id,
            }
        )
        return data

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a claim by name, falling back to unknown claims."""
        if name in _KNOWN_CLAIMS:
            value = getattr(self, name)
            return default if value is None else value
        return self.extra.get(name, default)

    def scope_list(self) -> list[str]:
        """Scopes from the ``scope`` claim (space-delimited or list) and ``scopes``."""
        if isinstance(self.scope, str):
            scopes = self.scope.split()
        elif isinstance(self.scope, (list, tuple)):
            scopes = [s for s in self.scope if isinstance(s, str)]
        else:
            scopes = []
        for s in self.scopes:
            if s not in scopes:
                scopes.append(s)
        return scopes

    def scope_string(self) -> str:
        return " ".join(self.scope_list())

    def grants(self) -> set[str]:
        """Every scope, permission and role this caller holds."""
        return set(self.scope_list()) | set(self.permissions) | set(self.roles)


@dataclass(frozen=True)
class LimitKey:
    """Identity facts used to bucket admission-control state."""

    sub: str | None = None
    org_id: str | None = None
    ip: str | None = None
    tenant_id: str | None = None


def resolve_key(key: LimitKey) -> str:
    """Collapse a LimitKey into the string used to index limiter state.

    The most specific identity wins (user, then org, then IP). A tenant
    id, when present, is prefixed so tenants never share buckets.
    """
    parts: list[str] = []
    if key.tenant_id:
        parts.append(f"t:{key.tenant_id}")

    if key.sub:
        parts.append(f"u:{key.sub}")
    elif key.org_id:
        parts.append(f"o:{key.org_id}")
    elif key.ip:
        parts.append(f"ip:{key.ip}")
    else:
        parts.append("anonymous")

    return "|".join(parts)


def limit_key_from_claims(
    claims: IdentityClaims | None,
    ip: str | None = None,
    tenant_id: str | None = None,
) -> LimitKey:
    """Derive the admission key for a (possibly anonymous) caller."""
    if claims is None:
        return LimitKey(ip=ip, tenant_id=tenant_id)
    return LimitKey(sub=claims.sub, org_id=claims.org_id, ip=ip, tenant_id=tenant_id)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [v for v in value if isinstance(v, str)]
