# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Content metadata attached to a transform result for audit and routing."""

from __future__ import annotations

from dataclasses import dataclass, field

from gatewaystack.content.classify import ClassificationLabel, ClassificationResult
from gatewaystack.content.detect import PiiMatch


@dataclass
class ContentMetadata:
    content_length: int
    pii_types_detected: list[str] = field(default_factory=list)
    pii_match_count: int = 0
    risk_score: int = 0
    labels: list[ClassificationLabel] = field(default_factory=list)


def extract_metadata(
    content: str,
    matches: list[PiiMatch],
    classification: ClassificationResult | None = None,
) -> ContentMetadata:
    return ContentMetadata(
        content_length=len(content),
        pii_types_detected=list(dict.fromkeys(m.type for m in matches)),
        pii_match_count=len(matches),
        risk_score=classification.risk_score if classification else 0,
        labels=list(classification.labels) if classification else [],
    )
