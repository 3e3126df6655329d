# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Exceptions raised by GatewayStack.

Governance decisions (rate limited, over budget, policy deny, ...) are
never raised -- they come back as result objects. Exceptions are reserved
for misconfiguration and for faults while talking to an upstream.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for all GatewayStack errors."""

    code = "gateway_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ConfigurationError(GatewayError):
    """A component or config file was given invalid settings."""

    code = "configuration_error"


class AuthModeError(GatewayError):
    """Upstream credentials could not be resolved for the configured auth mode."""

    code = "auth_mode_error"


class ProviderNotFoundError(GatewayError):
    """The requested upstream provider is not registered."""

    code = "provider_not_found"


class UnsafeUrlError(GatewayError):
    """An upstream URL was rejected by the SSRF guard."""

    code = "unsafe_url"


class UpstreamError(GatewayError):
    """The upstream answered with a non-2xx status."""

    code = "upstream_error"

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Upstream error {status}: {body}", {"status": status})
        self.status = status
        self.body = body


class UpstreamRedirectError(UpstreamError):
    """The upstream answered with a redirect, which is never followed."""

    code = "upstream_redirect"

    def __init__(self, status: int, location: str) -> None:
        GatewayError.__init__(
            self,
            f"Upstream redirect blocked ({status}). Location={location}",
            {"status": status, "location": location},
        )
        self.status = status
        self.body = ""
        self.location = location


class UpstreamTimeoutError(GatewayError):
    """The upstream did not complete within the request timeout."""

    code = "upstream_timeout"

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(
            f"Upstream request timed out after {timeout_ms}ms",
            {"timeout_ms": timeout_ms},
        )
        self.timeout_ms = timeout_ms


class UpstreamConnectionError(GatewayError):
    """The upstream could not be reached (DNS, connect or protocol failure)."""

    code = "upstream_unreachable"
