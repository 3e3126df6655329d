# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""OAuth scope helpers."""

from __future__ import annotations

from gatewaystack.identity import IdentityClaims


def get_scope_string(claims: IdentityClaims) -> str:
    """Space-delimited scope string, whether the claim was a string or a list."""
    return claims.scope_string()


def has_scope(claims: IdentityClaims, scope: str) -> bool:
    return scope in claims.scope_list()


def has_all_scopes(claims: IdentityClaims, scopes: list[str]) -> bool:
    held = set(claims.scope_list())
    return all(s in held for s in scopes)
