# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""SSRF guard and header hygiene for outbound requests.

``assert_url_safe`` inspects the URL only: IP-literal hosts are checked
against private ranges, but hostnames are not resolved. A hostname on the
allow-list that resolves to a private address is NOT caught here.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from gatewaystack.errors import UnsafeUrlError

logger = logging.getLogger("gatewaystack.proxy.security")

# Hop-by-hop and proxy-control headers never forwarded upstream
BLOCKED_HEADERS: frozenset[str] = frozenset(
    {
        "host",
        "connection",
        "keep-alive",
        "transfer-encoding",
        "te",
        "trailer",
        "upgrade",
        "proxy-authorization",
        "proxy-connection",
    }
)

_PRIVATE_V4_NETS = [
    ipaddress.ip_network(n)
    for n in (
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "0.0.0.0/8",
    )
]
_PRIVATE_V6_NETS = [
    ipaddress.ip_network(n)
    for n in (
        "::1/128",
        "fc00::/7",  # Unique local
        "fe80::/10",  # Link local
    )
]

_DOTTED_QUAD = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
_CRLF = re.compile(r"[\r\n]+")


@dataclass
class UrlSafetyConfig:
    allowed_hosts: list[str] = field(default_factory=list)
    allow_http: bool = False  # HTTPS only unless set
    block_private_ips: bool = True


def _normalize_host(host: str) -> str:
    return host.strip().lower()


def is_private_ipv4(host: str) -> bool:
    try:
        addr = ipaddress.IPv4Address(host)
    except ValueError:
        # Unparsable dotted quads (e.g. 999.1.1.1) fail closed
        return True
    return any(addr in net for net in _PRIVATE_V4_NETS)


def is_private_ipv6(host: str) -> bool:
    try:
        addr = ipaddress.IPv6Address(host.split("%", 1)[0])
    except ValueError:
        return True
    if addr.ipv4_mapped is not None:
        return is_private_ipv4(str(addr.ipv4_mapped))
    return any(addr in net for net in _PRIVATE_V6_NETS)


def assert_url_safe(url: str, config: UrlSafetyConfig) -> None:
    """Raise UnsafeUrlError unless ``url`` may be forwarded to."""
    parsed = urlparse(url)

    scheme = parsed.scheme.lower()
    if scheme != "https" and not (config.allow_http and scheme == "http"):
        raise UnsafeUrlError(f"Blocked protocol: {scheme}:")

    host = _normalize_host(parsed.hostname or "")
    allowed = {_normalize_host(h) for h in config.allowed_hosts}
    if host not in allowed:
        logger.warning("Blocked upstream host %s (not in allowed_hosts)", host)
        raise UnsafeUrlError(f"Blocked host: {host} (not in allowedHosts)")

    if config.block_private_ips:
        if _DOTTED_QUAD.match(host) and is_private_ipv4(host):
            logger.warning("Blocked private IPv4 upstream %s", host)
            raise UnsafeUrlError(f"Blocked private IPv4 host: {host}")
        if ":" in host and is_private_ipv6(host):
            logger.warning("Blocked private IPv6 upstream %s", host)
            raise UnsafeUrlError(f"Blocked private IPv6 host: {host}")


def sanitize_header_value(value: str) -> str:
    """Collapse CR/LF runs to a space so a value cannot inject headers."""
    return _CRLF.sub(" ", value).strip()
