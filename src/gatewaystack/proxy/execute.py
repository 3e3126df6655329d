# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Egress proxy executor -- one bounded, credentialed upstream call.

Steps, in order:
1. Build the URL from the provider base URL and the request path
2. SSRF guard (protocol, host allow-list, private IP literals)
3. Header hygiene (drop hop-by-hop headers, strip CR/LF, lower-case names)
4. Credential injection
5. Send with redirects disabled and an overall deadline
6. Read at most ``max_response_bytes`` of the body, then decode

Redirects and non-2xx answers raise; nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from gatewaystack import __version__
from gatewaystack.errors import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamRedirectError,
    UpstreamTimeoutError,
)
from gatewaystack.proxy.auth_modes import ApiKeyAuth, BearerAuth, NoAuth, ResolvedAuth
from gatewaystack.proxy.security import (
    BLOCKED_HEADERS,
    UrlSafetyConfig,
    assert_url_safe,
    sanitize_header_value,
)

logger = logging.getLogger("gatewaystack.proxy.execute")

DEFAULT_TIMEOUT_MS = 10_000
MIN_TIMEOUT_MS = 1_000
MAX_TIMEOUT_MS = 120_000

DEFAULT_MAX_RESPONSE_BYTES = 512_000
MIN_RESPONSE_BYTES = 10_000
MAX_RESPONSE_BYTES = 5_000_000

ERROR_BODY_LIMIT = 1200

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
_BODYLESS_METHODS = ("GET", "DELETE")

DEFAULT_HEADERS = {
    "user-agent": f"gatewaystack/{__version__}",
    "accept": "application/json, text/plain;q=0.9, */*;q=0.1",
}


@dataclass
class ProxyRequestConfig:
    base_url: str
    path: str
    method: str = "GET"
    auth: ResolvedAuth = field(default_factory=NoAuth)
    allowed_hosts: list[str] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    timeout_ms: int | None = None
    max_response_bytes: int | None = None
    allow_http: bool = False


@dataclass
class ProxyResponse:
    ok: bool
    status: int
    content_type: str
    body: Any  # Parsed JSON, or text
    bytes: int  # Bytes kept after the size cap


def clamp(value: int | None, low: int, high: int, default: int) -> int:
    if value is None:
        return default
    return max(low, min(int(value), high))


def build_url(base_url: str, path: str) -> str:
    """Join ``path`` onto the base URL, keeping any base path prefix."""
    if not path.startswith("/"):
        raise ValueError(f'Path must start with "/": {path}')
    return base_url.rstrip("/") + path


def build_headers(custom: dict[str, str], auth: ResolvedAuth) -> dict[str, str]:
    headers = dict(DEFAULT_HEADERS)

    for name, value in custom.items():
        lower = name.lower()
        if lower in BLOCKED_HEADERS:
            continue
        headers[lower] = sanitize_header_value(str(value))

    if isinstance(auth, ApiKeyAuth):
        headers[auth.header_name.lower()] = sanitize_header_value(auth.value)
    elif isinstance(auth, BearerAuth):
        headers["authorization"] = f"Bearer {sanitize_header_value(auth.token)}"

    return headers


async def execute_proxy_request(
    config: ProxyRequestConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProxyResponse:
    """Forward one request upstream and return the (size-capped) response."""
    method = config.method.upper()
    if method not in METHODS:
        raise ValueError(f"Unsupported method: {config.method}")

    url = build_url(config.base_url, config.path)
    assert_url_safe(
        url,
        UrlSafetyConfig(
            allowed_hosts=config.allowed_hosts,
            allow_http=config.allow_http,
            block_private_ips=True,
        ),
    )

    timeout_ms = clamp(config.timeout_ms, MIN_TIMEOUT_MS, MAX_TIMEOUT_MS, DEFAULT_TIMEOUT_MS)
    max_bytes = clamp(
        config.max_response_bytes,
        MIN_RESPONSE_BYTES,
        MAX_RESPONSE_BYTES,
        DEFAULT_MAX_RESPONSE_BYTES,
    )

    headers = build_headers(config.headers, config.auth)
    content: bytes | None = None
    if method not in _BODYLESS_METHODS and config.body is not None:
        headers["content-type"] = "application/json"
        content = json.dumps(config.body).encode("utf-8")

    start_time = time.time()
    try:
        status, response_headers, raw = await asyncio.wait_for(
            _send(method, url, headers, content, max_bytes, timeout_ms, transport),
            timeout=timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        logger.error("Upstream request timed out: %s %s (%dms)", method, url, timeout_ms)
        raise UpstreamTimeoutError(timeout_ms) from None
    except httpx.HTTPError as exc:
        logger.error("Upstream request failed: %s %s -- %s", method, url, exc)
        raise UpstreamConnectionError(f"Upstream request failed: {exc}") from exc
    duration_ms = (time.time() - start_time) * 1000

    if 300 <= status < 400:
        location = response_headers.get("location", "")
        logger.warning("Upstream redirect blocked (%d) from %s to %s", status, url, location)
        raise UpstreamRedirectError(status, location)

    text = raw.decode("utf-8", errors="replace")
    content_type = response_headers.get("content-type", "").lower()

    if not 200 <= status < 300:
        logger.error("Upstream error %d from %s %s", status, method, url)
        raise UpstreamError(status, text[:ERROR_BODY_LIMIT])

    body: Any = text
    if "application/json" in content_type:
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            pass

    logger.debug(
        "%s %s -> %d (%d bytes, %.0fms)", method, url, status, len(raw), duration_ms
    )
    return ProxyResponse(
        ok=True,
        status=status,
        content_type=content_type,
        body=body,
        bytes=len(raw),
    )


async def _send(
    method: str,
    url: str,
    headers: dict[str, str],
    content: bytes | None,
    max_bytes: int,
    timeout_ms: int,
    transport: httpx.AsyncBaseTransport | None,
) -> tuple[int, httpx.Headers, bytes]:
    async with httpx.AsyncClient(
        transport=transport,
        timeout=timeout_ms / 1000,
        follow_redirects=False,
    ) as client:
        async with client.stream(method, url, headers=headers, content=content) as resp:
            chunks: list[bytes] = []
            received = 0
            if not 300 <= resp.status_code < 400:
                async for chunk in resp.aiter_bytes():
                    chunks.append(chunk)
                    received += len(chunk)
                    if received >= max_bytes:
                        break
            return resp.status_code, resp.headers, b"".join(chunks)[:max_bytes]
