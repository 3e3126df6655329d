# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""PII detection -- regex matchers for personal data in tool-call content.

Every matcher runs independently over the whole text. Results are sorted
by start offset; overlapping matches from different matchers are all
reported.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from gatewaystack.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Built-in PII patterns.
# ---------------------------------------------------------------------------
PII_PATTERNS: dict[str, re.Pattern] = {
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
    # US numbers; the area code is required so bare 7-digit runs are ignored
    "phone": re.compile(
        r"(?<![\d+])(?:\+1[-.\s]?)?(?:\(\d{3}\)\s?|\d{3}[-.\s]?)\d{3}[-.\s]?\d{4}(?!\d)"
    ),
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    # Visa, Mastercard, Discover (4-4-4-4) and Amex (4-6-5)
    "credit_card": re.compile(
        r"\b(?:(?:4\d{3}|5[1-5]\d{2}|6(?:011|5\d{2}))[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}"
        r"|3[47]\d{2}[-\s]?\d{6}[-\s]?\d{5})\b"
    ),
    "ip_address": re.compile(
        r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b"
    ),
    "date_of_birth": re.compile(r"\b(?:\d{1,2}[/-]\d{1,2}[/-]\d{4}|\d{4}-\d{2}-\d{2})\b"),
}

CustomPattern = tuple[str, Union[str, re.Pattern]]


@dataclass
class PiiMatch:
    type: str
    value: str
    start: int
    end: int  # Exclusive


def compile_custom_pattern(pii_type: str, pattern: str | re.Pattern) -> re.Pattern:
    """Compile a user-supplied matcher, rejecting malformed regexes."""
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Invalid custom pattern for {pii_type}: {exc}") from exc


def detect_pii(
    text: str,
    custom_patterns: list[CustomPattern] | None = None,
) -> list[PiiMatch]:
    """Find every PII occurrence in ``text``, sorted by start offset."""
    patterns = list(PII_PATTERNS.items())
    for pii_type, pattern in custom_patterns or []:
        patterns.append((pii_type, compile_custom_pattern(pii_type, pattern)))

    matches: list[PiiMatch] = []
    for pii_type, pattern in patterns:
        for m in pattern.finditer(text):
            if m.end() > m.start():
                matches.append(PiiMatch(type=pii_type, value=m.group(0), start=m.start(), end=m.end()))

    matches.sort(key=lambda m: m.start)
    return matches
