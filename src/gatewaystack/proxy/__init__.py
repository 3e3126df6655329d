# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Egress proxy: credential injection, SSRF guard and bounded forwarding."""

from gatewaystack.proxy.auth_modes import (
    ApiKeyAuth,
    AuthContext,
    AuthModeConfig,
    BearerAuth,
    NoAuth,
    ResolvedAuth,
    bearer_from_header,
    resolve_auth,
)
from gatewaystack.proxy.execute import ProxyRequestConfig, ProxyResponse, execute_proxy_request
from gatewaystack.proxy.providers import ProviderConfig, ProviderRegistry, resolve_provider
from gatewaystack.proxy.security import (
    BLOCKED_HEADERS,
    UrlSafetyConfig,
    assert_url_safe,
    sanitize_header_value,
)

__all__ = [
    "BLOCKED_HEADERS",
    "ApiKeyAuth",
    "AuthContext",
    "AuthModeConfig",
    "BearerAuth",
    "NoAuth",
    "ProviderConfig",
    "ProviderRegistry",
    "ProxyRequestConfig",
    "ProxyResponse",
    "ResolvedAuth",
    "UrlSafetyConfig",
    "assert_url_safe",
    "bearer_from_header",
    "execute_proxy_request",
    "resolve_auth",
    "resolve_provider",
    "sanitize_header_value",
]
