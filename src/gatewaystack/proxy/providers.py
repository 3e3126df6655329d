# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Upstream provider registry."""

from __future__ import annotations

from dataclasses import dataclass, field

from gatewaystack.errors import ProviderNotFoundError
from gatewaystack.proxy.auth_modes import AuthModeConfig


@dataclass
class ProviderConfig:
    """One upstream the gateway may forward to."""

    key: str
    base_url: str
    auth: AuthModeConfig = field(default_factory=AuthModeConfig)
    allowed_hosts: list[str] = field(default_factory=list)
    timeout_ms: int | None = None
    max_response_bytes: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    allow_http: bool = False


@dataclass
class ProviderRegistry:
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    default_provider: str | None = None


def resolve_provider(registry: ProviderRegistry, key: str | None = None) -> ProviderConfig:
    """Return the named provider, or the registry default when ``key`` is None."""
    name = key or registry.default_provider
    if not name:
        raise ProviderNotFoundError("No provider key specified and no default provider configured")

    provider = registry.providers.get(name)
    if provider is None:
        available = ", ".join(registry.providers) or "(none)"
        raise ProviderNotFoundError(f'Provider "{name}" not found. Available: {available}')
    return provider
