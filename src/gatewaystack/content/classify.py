# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Content classification -- safety risks and regulatory exposure.

Safety labels come from case-insensitive pattern families (prompt
injection, jailbreak attempts, code injection); at most one label is
emitted per family. Regulatory labels are derived from the PII types
found in the content. Both feed a 0-100 risk score.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from gatewaystack.content.detect import PiiMatch

logger = logging.getLogger("gatewaystack.content.classify")

# Safety patterns -- case-insensitive
SAFETY_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "prompt_injection": [
        re.compile(r"ignore\s+(all\s+)?previous\s+instructions", re.IGNORECASE),
        re.compile(r"disregard\s+(all\s+)?prior\s+(instructions|context)", re.IGNORECASE),
        re.compile(r"you\s+are\s+now\s+(?:a|an)\s+\w+", re.IGNORECASE),
        re.compile(r"system\s*:\s*you\s+are", re.IGNORECASE),
        re.compile(r"\bdo\s+anything\s+now\b", re.IGNORECASE),
        re.compile(r"\bDAN\s+mode\b", re.IGNORECASE),
    ],
    "jailbreak_attempt": [
        re.compile(
            r"bypass\s+(?:your\s+)?(?:safety|content|moderation)\s+"
            r"(?:filters?|guidelines?|restrictions?)",
            re.IGNORECASE,
        ),
        re.compile(
            r"pretend\s+(?:you\s+)?(?:have\s+)?no\s+(?:restrictions?|limitations?|rules?)",
            re.IGNORECASE,
        ),
        re.compile(
            r"act\s+as\s+(?:if\s+)?(?:you\s+)?(?:have|had)\s+no\s+(?:ethics|morals|guidelines)",
            re.IGNORECASE,
        ),
    ],
    "code_injection": [
        re.compile(r"(?:exec|eval|system)\s*\(", re.IGNORECASE),
        re.compile(r"__import__\s*\(", re.IGNORECASE),
        re.compile(r"os\.(?:system|popen|exec)", re.IGNORECASE),
        re.compile(r"subprocess\.(?:run|call|Popen)", re.IGNORECASE),
    ],
}

# Regulatory regimes implicated by each PII type
REGULATORY_MAP: dict[str, list[str]] = {
    "ssn": ["pci", "gdpr"],
    "credit_card": ["pci"],
    "email": ["gdpr", "coppa"],
    "phone": ["gdpr"],
    "date_of_birth": ["gdpr", "coppa", "hipaa"],
    "ip_address": ["gdpr"],
}

SAFETY_CATEGORIES = frozenset(SAFETY_PATTERNS)
REGULATORY_CATEGORIES = frozenset(c for regimes in REGULATORY_MAP.values() for c in regimes)


@dataclass
class ClassificationLabel:
    category: str
    confidence: str  # "low", "medium" or "high"
    detail: str = ""


@dataclass
class ClassificationResult:
    labels: list[ClassificationLabel] = field(default_factory=list)
    risk_score: int = 0
    has_safety_risk: bool = False
    has_regulatory_content: bool = False


def classify_content(text: str, matches: list[PiiMatch]) -> ClassificationResult:
    labels: list[ClassificationLabel] = []

    for category, patterns in SAFETY_PATTERNS.items():
        for pattern in patterns:
            if pattern.search(text):
                labels.append(
                    ClassificationLabel(
                        category=category,
                        confidence="medium",
                        detail=f"Matched pattern: {pattern.pattern[:50]}",
                    )
                )
                break

    pii_types = list(dict.fromkeys(m.type for m in matches))
    regimes: dict[str, list[str]] = {}
    for pii_type in pii_types:
        for regime in REGULATORY_MAP.get(pii_type, []):
            regimes.setdefault(regime, []).append(pii_type)
    for regime, types in regimes.items():
        labels.append(
            ClassificationLabel(
                category=regime,
                confidence="high",
                detail=f"PII detected: {', '.join(types)}",
            )
        )

    has_safety = any(label.category in SAFETY_CATEGORIES for label in labels)
    has_regulatory = bool(regimes)

    score = 0
    if has_safety:
        score += 50
    if has_regulatory:
        score += 20
    score += min(len(matches) * 5, 30)
    score = min(score, 100)

    if has_safety:
        logger.warning(
            "Safety risk in content: %s",
            ", ".join(label.category for label in labels if label.category in SAFETY_CATEGORIES),
        )

    return ClassificationResult(
        labels=labels,
        risk_score=score,
        has_safety_risk=has_safety,
        has_regulatory_content=has_regulatory,
    )
