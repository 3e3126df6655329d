# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Upstream credential resolution.

Maps a provider's auth mode plus the per-request context to the concrete
credential that will be injected into the outbound request. OAuth tokens
for ``service_oauth`` and ``user_oauth`` must be loaded by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from gatewaystack.errors import AuthModeError

AUTH_MODES = ("api_key", "forward_bearer", "service_oauth", "user_oauth", "none")


@dataclass(frozen=True)
class ApiKeyAuth:
    header_name: str
    value: str
    kind: str = "api_key"


@dataclass(frozen=True)
class BearerAuth:
    token: str
    kind: str = "bearer"


@dataclass(frozen=True)
class NoAuth:
    kind: str = "none"


ResolvedAuth = Union[ApiKeyAuth, BearerAuth, NoAuth]


@dataclass
class AuthModeConfig:
    mode: str = "none"
    api_key_header: str | None = None
    api_key_value: str | None = None


@dataclass
class AuthContext:
    """Tokens available for the current request."""

    bearer_token: str | None = None  # From the inbound Authorization header
    service_token: str | None = None
    user_token: str | None = None


def resolve_auth(config: AuthModeConfig, ctx: AuthContext) -> ResolvedAuth:
    mode = config.mode

    if mode == "api_key":
        header = (config.api_key_header or "").strip()
        value = (config.api_key_value or "").strip()
        if not header or not value:
            raise AuthModeError("API key auth configured but api_key_header/api_key_value missing")
        return ApiKeyAuth(header_name=header, value=value)

    if mode == "forward_bearer":
        if not ctx.bearer_token:
            raise AuthModeError("forward_bearer mode requires a Bearer token on the incoming request")
        return BearerAuth(token=ctx.bearer_token)

    if mode == "service_oauth":
        if not ctx.service_token:
            raise AuthModeError("service_oauth mode requires a pre-loaded service token")
        return BearerAuth(token=ctx.service_token)

    if mode == "user_oauth":
        if not ctx.user_token:
            raise AuthModeError("user_oauth mode requires a pre-loaded user token")
        return BearerAuth(token=ctx.user_token)

    if mode == "none":
        return NoAuth()

    raise AuthModeError(f"Unknown auth mode: {mode}")


def bearer_from_header(value: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` value."""
    if not value:
        return None
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
