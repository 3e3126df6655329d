# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Gateway configuration schema.

Config location: ~/.gatewaystack/gateway.yaml
  - GATEWAYSTACK_HOME moves the directory
  - GATEWAYSTACK_CONFIG points at a specific file

A missing file gives the defaults (no admission limits, no policy, content
analysis on, no upstream providers). A file that exists but cannot be
parsed is an error: the gateway refuses to start rather than run with
weaker rules than intended.

Example::

    rate_limit:
      window_ms: 60000
      max_requests: 100
    budget:
      max_spend: 50
      period_ms: 86400000
      model_limits:
        gpt-4o: 20
    agent_guard:
      max_tool_calls: 25
    required_permissions: ["tools:invoke"]
    policies:
      default_effect: deny
      rules:
        - id: allow-search
          effect: allow
          conditions:
            - {field: tool, operator: equals, value: search}
    content:
      block_threshold: 70
      redaction: {mode: placeholder}
    providers:
      openai:
        base_url: https://api.openai.com/v1
        allowed_hosts: [api.openai.com]
        auth: {mode: api_key, api_key_header: Authorization, api_key_value: "Bearer sk-..."}
    default_provider: openai
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gatewaystack.content.detect import compile_custom_pattern
from gatewaystack.content.redact import REDACTION_MODES, RedactionConfig
from gatewaystack.content.transform import ContentConfig
from gatewaystack.errors import ConfigurationError
from gatewaystack.limits.agent_guard import AgentGuardConfig
from gatewaystack.limits.budget import BudgetConfig
from gatewaystack.limits.preflight import AdmissionConfig
from gatewaystack.limits.rate_limiter import RateLimitConfig
from gatewaystack.policy.rules import PolicySet
from gatewaystack.proxy.auth_modes import AUTH_MODES, AuthModeConfig
from gatewaystack.proxy.providers import ProviderConfig, ProviderRegistry

logger = logging.getLogger("gatewaystack.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------
GATEWAYSTACK_HOME = Path(os.environ.get("GATEWAYSTACK_HOME", Path.home() / ".gatewaystack"))
DEFAULT_CONFIG_PATH = GATEWAYSTACK_HOME / "gateway.yaml"
DEFAULT_AUDIT_LOG_PATH = GATEWAYSTACK_HOME / "audit.log"


@dataclass
class GatewayConfig:
    """Everything a GovernancePipeline needs."""

    admission: AdmissionConfig = field(default_factory=AdmissionConfig)
    required_permissions: list[str] = field(default_factory=list)
    policies: PolicySet | None = None
    input_schema: dict[str, Any] | None = None
    content: ContentConfig = field(default_factory=ContentConfig)
    providers: ProviderRegistry = field(default_factory=ProviderRegistry)
    audit_log_path: str = str(DEFAULT_AUDIT_LOG_PATH)
    log_level: str = "INFO"


def default_config_path() -> Path:
    override = os.environ.get("GATEWAYSTACK_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config(path: Path | str | None = None) -> GatewayConfig:
    """Load the gateway configuration from a YAML file."""
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        logger.info("No gateway config at %s -- using defaults", config_path)
        return GatewayConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to load gateway config {config_path}: {exc}") from exc

    if raw is None:
        return GatewayConfig()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Invalid gateway config {config_path}: expected a mapping")

    config = parse_config(raw)
    logger.info("Loaded gateway config from %s", config_path)
    return config


def parse_config(raw: dict[str, Any]) -> GatewayConfig:
    """Parse a raw config mapping (as loaded from YAML or JSON)."""
    try:
        return _parse_config(raw)
    except ConfigurationError:
        raise
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigurationError(f"Invalid gateway config: {exc}") from exc


def _section(raw: dict[str, Any], name: str) -> dict[str, Any] | None:
    value = raw.get(name)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    return value


def _parse_config(raw: dict[str, Any]) -> GatewayConfig:
    admission = AdmissionConfig()

    rl = _section(raw, "rate_limit")
    if rl is not None:
        admission.rate_limit = RateLimitConfig(
            window_ms=int(rl.get("window_ms", 60_000)),
            max_requests=int(rl.get("max_requests", 0)),
        )

    budget = _section(raw, "budget")
    if budget is not None:
        admission.budget = BudgetConfig(
            max_spend=float(budget.get("max_spend", 0)),
            period_ms=int(budget.get("period_ms", 86_400_000)),
            model_limits={str(k): float(v) for k, v in (budget.get("model_limits") or {}).items()},
        )

    guard = _section(raw, "agent_guard")
    if guard is not None:
        defaults = AgentGuardConfig()
        admission.agent_guard = AgentGuardConfig(
            max_tool_calls=int(guard.get("max_tool_calls", defaults.max_tool_calls)),
            max_workflow_cost=float(guard.get("max_workflow_cost", defaults.max_workflow_cost)),
            max_duration_ms=int(guard.get("max_duration_ms", defaults.max_duration_ms)),
        )

    required = raw.get("required_permissions") or []
    if not isinstance(required, list):
        raise ConfigurationError("required_permissions must be a list")

    policies_raw = _section(raw, "policies")
    policies = PolicySet.from_dict(policies_raw) if policies_raw is not None else None

    input_schema = _section(raw, "input_schema")

    return GatewayConfig(
        admission=admission,
        required_permissions=[str(p) for p in required],
        policies=policies,
        input_schema=input_schema,
        content=_parse_content(_section(raw, "content") or {}),
        providers=_parse_providers(raw),
        audit_log_path=str(raw.get("audit_log_path", DEFAULT_AUDIT_LOG_PATH)),
        log_level=str(raw.get("log_level", "INFO")).upper(),
    )


def _parse_content(raw: dict[str, Any]) -> ContentConfig:
    redaction_raw = raw.get("redaction") or {}
    mode = redaction_raw.get("mode", "mask")
    if mode not in REDACTION_MODES:
        raise ConfigurationError(f"Unknown redaction mode: {mode!r}")
    redaction = RedactionConfig(
        mode=mode,
        placeholder=redaction_raw.get("placeholder"),
        types=redaction_raw.get("types"),
        mask_char=str(redaction_raw.get("mask_char", "*")),
        mask_keep=int(redaction_raw.get("mask_keep", 2)),
    )

    custom = []
    for entry in raw.get("custom_patterns") or []:
        if not isinstance(entry, dict) or "type" not in entry or "pattern" not in entry:
            raise ConfigurationError("custom_patterns entries need 'type' and 'pattern'")
        pii_type = str(entry["type"])
        custom.append((pii_type, compile_custom_pattern(pii_type, str(entry["pattern"]))))

    threshold = raw.get("block_threshold")
    return ContentConfig(
        redaction=redaction,
        classify=bool(raw.get("classify", True)),
        extract_metadata=bool(raw.get("extract_metadata", True)),
        custom_patterns=custom,
        block_threshold=int(threshold) if threshold is not None else None,
        redact_body=bool(raw.get("redact_body", False)),
    )


def _parse_providers(raw: dict[str, Any]) -> ProviderRegistry:
    providers_raw = _section(raw, "providers") or {}
    providers: dict[str, ProviderConfig] = {}

    for key, entry in providers_raw.items():
        if not isinstance(entry, dict) or not entry.get("base_url"):
            raise ConfigurationError(f"Provider '{key}' needs a base_url")
        auth_raw = entry.get("auth") or {}
        mode = auth_raw.get("mode", "none")
        if mode not in AUTH_MODES:
            raise ConfigurationError(f"Provider '{key}' has unknown auth mode {mode!r}")
        providers[str(key)] = ProviderConfig(
            key=str(key),
            base_url=str(entry["base_url"]),
            auth=AuthModeConfig(
                mode=mode,
                api_key_header=auth_raw.get("api_key_header"),
                api_key_value=auth_raw.get("api_key_value"),
            ),
            allowed_hosts=[str(h) for h in entry.get("allowed_hosts", [])],
            timeout_ms=entry.get("timeout_ms"),
            max_response_bytes=entry.get("max_response_bytes"),
            headers={str(k): str(v) for k, v in (entry.get("headers") or {}).items()},
            allow_http=bool(entry.get("allow_http", False)),
        )

    default = raw.get("default_provider")
    if default is not None and default not in providers:
        raise ConfigurationError(f"default_provider '{default}' is not a configured provider")

    return ProviderRegistry(providers=providers, default_provider=default)
