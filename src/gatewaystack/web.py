# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""FastAPI binding for the governance pipeline.

No routes are registered here. The host application owns its routes and
calls these helpers to turn pipeline outcomes into HTTP responses:

  - ``raise_for_result``            denial -> 429 (rate limit) / 403
  - ``rate_limit_headers``          X-RateLimit-* headers for allowed calls
  - ``install_exception_handlers``  GatewayError -> 500 / 502 / 504
  - ``require_permissions``         route dependency for static permission checks
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gatewaystack.errors import (
    AuthModeError,
    ConfigurationError,
    GatewayError,
    ProviderNotFoundError,
    UpstreamTimeoutError,
)
from gatewaystack.identity import IdentityClaims
from gatewaystack.pipeline import (
    STAGE_ADMISSION,
    STAGE_CONTENT,
    STAGE_POLICY,
    PipelineResult,
)
from gatewaystack.policy.permissions import check_permissions

logger = logging.getLogger("gatewaystack.web")

WORKFLOW_HEADER = "x-workflow-id"

_ERROR_CODES = {
    STAGE_ADMISSION: "limit_exceeded",
    STAGE_POLICY: "policy_denied",
    STAGE_CONTENT: "content_blocked",
}

# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class DenialBody(BaseModel):
    error: str
    message: str
    stage: str = ""
    details: dict[str, Any] = {}


class ErrorBody(BaseModel):
    error: str
    message: str
    details: dict[str, Any] = {}


class ProtectedResourceMetadata(BaseModel):
    """OAuth protected resource metadata document."""

    authorization_servers: list[str]
    scopes_supported: list[str]
    resource: str | None = None


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def workflow_id(request: Request) -> str | None:
    return request.headers.get(WORKFLOW_HEADER) or None


# ---------------------------------------------------------------------------
# Outcome mapping
# ---------------------------------------------------------------------------


def _denial_details(result: PipelineResult) -> dict[str, Any]:
    details: dict[str, Any] = {}
    pre = result.preflight
    if result.stage == STAGE_ADMISSION and pre is not None:
        if pre.rate_limit is not None:
            details["remaining"] = pre.rate_limit.remaining
            details["reset_at"] = pre.rate_limit.reset_at
        if pre.budget is not None:
            details["current_spend"] = pre.budget.current_spend
            details["max_spend"] = pre.budget.max_spend
        if pre.agent_guard is not None:
            details["tool_call_count"] = pre.agent_guard.tool_call_count
    if result.stage == STAGE_POLICY and result.validation is not None:
        perms = result.validation.checks.permissions
        if perms is not None and perms.missing:
            details["missing"] = perms.missing
        schema = result.validation.checks.schema
        if schema is not None and schema.errors:
            details["schema_errors"] = schema.errors
    if result.stage == STAGE_CONTENT and result.transform is not None:
        details["risk_score"] = result.transform.classification.risk_score
        details["labels"] = [label.category for label in result.transform.classification.labels]
    return details


def raise_for_result(result: PipelineResult) -> None:
    """Raise an HTTPException for a denied result; do nothing if allowed."""
    if result.allowed:
        return

    body = DenialBody(
        error=_ERROR_CODES.get(result.stage, "denied"),
        message=result.reason,
        stage=result.stage,
        details=_denial_details(result),
    )

    if result.rate_limited:
        headers = {}
        retry_after = result.preflight.rate_limit.retry_after_sec
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        raise HTTPException(status_code=429, detail=body.model_dump(), headers=headers)

    raise HTTPException(status_code=403, detail=body.model_dump())


def rate_limit_headers(result: PipelineResult) -> dict[str, str]:
    """X-RateLimit headers for a call that passed the rate limiter."""
    if result.preflight is None or result.preflight.rate_limit is None:
        return {}
    rl = result.preflight.rate_limit
    return {
        "X-RateLimit-Remaining": str(rl.remaining),
        "X-RateLimit-Reset": str(int(rl.reset_at)),
    }


def status_for_error(exc: GatewayError) -> int:
    if isinstance(exc, UpstreamTimeoutError):
        return 504
    if isinstance(exc, (ConfigurationError, ProviderNotFoundError, AuthModeError)):
        return 500
    return 502


def install_exception_handlers(app: FastAPI) -> None:
    """Map GatewayError subclasses to JSON error responses."""

    @app.exception_handler(GatewayError)
    async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        status = status_for_error(exc)
        logger.error("%s %s failed (%d): %s", request.method, request.url.path, status, exc.message)
        body = ErrorBody(error=exc.code, message=exc.message, details=exc.details)
        return JSONResponse(status_code=status, content=body.model_dump())


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def require_permissions(*permissions: str) -> Callable[[Request], IdentityClaims]:
    """Route dependency that requires every listed permission.

    Expects verified claims on ``request.state.claims`` (set by the host's
    authentication layer).
    """

    def dependency(request: Request) -> IdentityClaims:
        claims = getattr(request.state, "claims", None)
        if claims is None:
            raise HTTPException(
                status_code=401,
                detail=ErrorBody(error="unauthenticated", message="No verified identity").model_dump(),
            )
        if isinstance(claims, dict):
            claims = IdentityClaims.from_dict(claims)
        result = check_permissions(claims, list(permissions))
        if not result.allowed:
            raise HTTPException(
                status_code=403,
                detail=ErrorBody(
                    error="insufficient_permissions",
                    message=result.reason,
                    details={"missing": result.missing},
                ).model_dump(),
            )
        return claims

    return dependency


def protected_resource_metadata(
    issuer: str,
    scopes: list[str],
    audience: str | None = None,
) -> dict[str, Any]:
    """Body for ``/.well-known/oauth-protected-resource``."""
    doc = ProtectedResourceMetadata(
        authorization_servers=[issuer],
        scopes_supported=list(scopes),
        resource=audience,
    )
    return doc.model_dump(exclude_none=True)
