# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Governance pipeline -- every tool call through every stage, in order.

Stages:
1. admission  rate limit, budget, agent workflow guard
2. policy     required permissions, policy rules, input schema
3. content    PII detection and classification; optional risk block
4. egress     provider lookup, credentials, SSRF-guarded forwarding

Each stage may stop the call; later stages never run after a deny.
Denials come back as a PipelineResult. Failures while talking to the
upstream are audited and then raised to the caller unchanged.

Usage is not recorded automatically: the caller knows the real cost of a
call only after it completes, and reports it with ``record_usage``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from gatewaystack.audit import AuditEntry, AuditLogger
from gatewaystack.config import GatewayConfig, load_config
from gatewaystack.content.transform import TransformResult, exceeds_threshold, transform_content
from gatewaystack.errors import GatewayError, UpstreamError
from gatewaystack.identity import IdentityClaims, LimitKey, limit_key_from_claims, resolve_key
from gatewaystack.limits.budget import UsageRecord
from gatewaystack.limits.preflight import AdmissionEngine, PreflightResult
from gatewaystack.policy.decision import DecisionOptions, ValidationDecision, decision
from gatewaystack.policy.rules import PolicyRequest
from gatewaystack.proxy.auth_modes import AuthContext, resolve_auth
from gatewaystack.proxy.execute import ProxyRequestConfig, ProxyResponse, execute_proxy_request
from gatewaystack.proxy.providers import resolve_provider
from gatewaystack.scheduling import Clock, system_clock

logger = logging.getLogger("gatewaystack.pipeline")

STAGE_ADMISSION = "admission"
STAGE_POLICY = "policy"
STAGE_CONTENT = "content"
STAGE_EGRESS = "egress"
STAGE_COMPLETE = "complete"


@dataclass
class ToolCall:
    """One inbound tool invocation, after identity verification."""

    claims: IdentityClaims | None = None
    tool: str | None = None
    model: str | None = None
    input: Any = None
    ip: str | None = None
    tenant_id: str | None = None
    workflow_id: str | None = None
    estimated_cost: float | None = None
    # Egress
    provider: str | None = None
    path: str = "/"
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    auth_context: AuthContext = field(default_factory=AuthContext)
    # Extra fields visible to policy conditions
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def limit_key(self) -> LimitKey:
        return limit_key_from_claims(self.claims, ip=self.ip, tenant_id=self.tenant_id)


@dataclass
class PipelineResult:
    allowed: bool
    stage: str  # Where the call stopped, or "complete"
    reason: str
    preflight: PreflightResult | None = None
    validation: ValidationDecision | None = None
    transform: TransformResult | None = None
    response: ProxyResponse | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def rate_limited(self) -> bool:
        """Denied by the rate limiter specifically (vs. budget or guard)."""
        return (
            not self.allowed
            and self.stage == STAGE_ADMISSION
            and self.preflight is not None
            and self.preflight.rate_limit is not None
            and not self.preflight.rate_limit.allowed
        )


def content_text(value: Any) -> str:
    """Text that the content stage inspects for a tool input."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class GovernancePipeline:
    """Composes the four governance stages for one gateway."""

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        auto_sweep: bool = True,
    ) -> None:
        self.config = config or GatewayConfig()
        self.audit = audit
        self._clock = clock or system_clock
        self._transport = transport
        self.admission = AdmissionEngine(self.config.admission, clock=clock, auto_sweep=auto_sweep)
        self._decision_options = DecisionOptions(
            required_permissions=self.config.required_permissions,
            policies=self.config.policies,
            input_schema=self.config.input_schema,
        )

    @classmethod
    def from_config(cls, path: Path | str | None = None, **kwargs: Any) -> GovernancePipeline:
        """Load config from YAML and audit to the configured log path."""
        config = load_config(path)
        kwargs.setdefault("audit", AuditLogger(config.audit_log_path))
        return cls(config, **kwargs)

    async def handle(self, call: ToolCall) -> PipelineResult:
        key = call.limit_key
        key_str = resolve_key(key)

        # --- 1. Admission ---
        preflight = self.admission.preflight(
            key,
            workflow_id=call.workflow_id,
            estimated_cost=call.estimated_cost,
            model=call.model,
        )
        if not preflight.allowed:
            return await self._deny(STAGE_ADMISSION, preflight.reason, call, key_str, preflight=preflight)

        # --- 2. Policy ---
        request = PolicyRequest(
            identity=call.claims or IdentityClaims(),
            tool=call.tool,
            model=call.model,
            input=call.input,
            context=call.context,
        )
        validation = decision(request, self._decision_options)
        if not validation.allowed:
            return await self._deny(
                STAGE_POLICY,
                validation.reason,
                call,
                key_str,
                preflight=preflight,
                validation=validation,
            )

        # --- 3. Content ---
        content_cfg = self.config.content
        transform: TransformResult | None = None
        body = call.input
        if call.input is not None:
            transform = transform_content(content_text(call.input), content_cfg)
            if exceeds_threshold(transform, content_cfg):
                reason = (
                    f"Content risk score ({transform.classification.risk_score}) "
                    f"exceeds threshold ({content_cfg.block_threshold})"
                )
                return await self._deny(
                    STAGE_CONTENT,
                    reason,
                    call,
                    key_str,
                    preflight=preflight,
                    validation=validation,
                    transform=transform,
                )
            if content_cfg.redact_body and transform.transformed:
                body = _redacted_body(call.input, transform.content)

        risk = transform.classification.risk_score if transform else 0
        pii_types = transform.metadata.pii_types_detected if transform else []

        # --- 4. Egress ---
        registry = self.config.providers
        if not (call.provider or registry.default_provider):
            await self._log(
                AuditEntry.allowed(
                    key_str,
                    tool=call.tool or "",
                    model=call.model or "",
                    risk_score=risk,
                    pii_types=pii_types,
                )
            )
            return PipelineResult(
                allowed=True,
                stage=STAGE_COMPLETE,
                reason="All checks passed",
                preflight=preflight,
                validation=validation,
                transform=transform,
            )

        provider_key = call.provider or registry.default_provider or ""
        start_time = time.time()
        try:
            provider = resolve_provider(registry, call.provider)
            provider_key = provider.key
            auth = resolve_auth(provider.auth, call.auth_context)
            headers = dict(provider.headers)
            headers.update(call.headers)
            response = await execute_proxy_request(
                ProxyRequestConfig(
                    base_url=provider.base_url,
                    path=call.path,
                    method=call.method,
                    auth=auth,
                    allowed_hosts=provider.allowed_hosts,
                    headers=headers,
                    body=body,
                    timeout_ms=provider.timeout_ms,
                    max_response_bytes=provider.max_response_bytes,
                    allow_http=provider.allow_http,
                ),
                transport=self._transport,
            )
        except GatewayError as exc:
            await self._log(
                AuditEntry.failed(
                    key_str,
                    provider_key,
                    exc.message,
                    status_code=exc.status if isinstance(exc, UpstreamError) else 0,
                    duration_ms=(time.time() - start_time) * 1000,
                    tool=call.tool or "",
                    model=call.model or "",
                )
            )
            raise

        await self._log(
            AuditEntry.proxied(
                key_str,
                provider_key,
                response.status,
                (time.time() - start_time) * 1000,
                tool=call.tool or "",
                model=call.model or "",
                risk_score=risk,
                pii_types=pii_types,
            )
        )
        return PipelineResult(
            allowed=True,
            stage=STAGE_COMPLETE,
            reason="All checks passed",
            preflight=preflight,
            validation=validation,
            transform=transform,
            response=response,
        )

    def record_usage(self, call: ToolCall, cost: float, tokens: int | None = None) -> None:
        """Account the actual cost of a completed call."""
        usage = UsageRecord(
            timestamp=self._clock(),
            cost=cost,
            tokens=tokens,
            model=call.model,
            tool=call.tool,
        )
        self.admission.record_usage(call.limit_key, usage, workflow_id=call.workflow_id)

    def end_workflow(self, workflow_id: str) -> None:
        self.admission.end_workflow(workflow_id)

    def close(self) -> None:
        """Stop background sweeps and close the audit log."""
        self.admission.destroy()
        if self.audit is not None:
            self.audit.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ---------------------------------------------------------------
    # Helper methods
    # ---------------------------------------------------------------
    async def _deny(
        self,
        stage: str,
        reason: str,
        call: ToolCall,
        key_str: str,
        **results: Any,
    ) -> PipelineResult:
        transform: TransformResult | None = results.get("transform")
        logger.warning("Denied %s at %s: %s", key_str, stage, reason)
        await self._log(
            AuditEntry.denied(
                stage,
                key_str,
                reason,
                tool=call.tool or "",
                model=call.model or "",
                risk_score=transform.classification.risk_score if transform else 0,
                pii_types=transform.metadata.pii_types_detected if transform else [],
            )
        )
        return PipelineResult(allowed=False, stage=stage, reason=reason, **results)

    async def _log(self, entry: AuditEntry) -> None:
        # File writes run off the event loop
        if self.audit is not None:
            await asyncio.to_thread(self.audit.log, entry)


def _redacted_body(original: Any, redacted: str) -> Any:
    if isinstance(original, str):
        return redacted
    try:
        return json.loads(redacted)
    except json.JSONDecodeError:
        return redacted
