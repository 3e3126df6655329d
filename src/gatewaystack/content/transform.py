# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Content safety transform: detect, classify, redact, describe.

Classification always looks at the original content, so redaction never
hides a risk from the score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gatewaystack.content.classify import ClassificationResult, classify_content
from gatewaystack.content.detect import (
    CustomPattern,
    PiiMatch,
    compile_custom_pattern,
    detect_pii,
)
from gatewaystack.content.metadata import ContentMetadata, extract_metadata
from gatewaystack.content.redact import RedactionConfig, redact_pii

logger = logging.getLogger("gatewaystack.content.transform")


@dataclass
class ContentConfig:
    redaction: RedactionConfig = field(default_factory=RedactionConfig)
    classify: bool = True
    extract_metadata: bool = True
    custom_patterns: list[CustomPattern] = field(default_factory=list)
    block_threshold: int | None = None  # Deny when risk_score >= this
    redact_body: bool = False  # Forward the redacted content upstream

    def __post_init__(self) -> None:
        # Malformed regexes fail here, not on the first request
        self.custom_patterns = [
            (pii_type, compile_custom_pattern(pii_type, pattern))
            for pii_type, pattern in self.custom_patterns
        ]


@dataclass
class TransformResult:
    content: str
    pii_matches: list[PiiMatch]
    classification: ClassificationResult
    metadata: ContentMetadata
    transformed: bool


def transform_content(text: str, config: ContentConfig | None = None) -> TransformResult:
    config = config or ContentConfig()
    matches = detect_pii(text, config.custom_patterns)

    if config.classify:
        classification = classify_content(text, matches)
    else:
        classification = ClassificationResult()

    redacted = redact_pii(text, matches, config.redaction) if matches else text

    if config.extract_metadata:
        metadata = extract_metadata(text, matches, classification)
    else:
        metadata = ContentMetadata(content_length=len(text))

    if matches:
        logger.debug(
            "Detected %d PII match(es): %s",
            len(matches),
            ", ".join(sorted({m.type for m in matches})),
        )

    return TransformResult(
        content=redacted,
        pii_matches=matches,
        classification=classification,
        metadata=metadata,
        transformed=redacted != text,
    )


def exceeds_threshold(result: TransformResult, config: ContentConfig) -> bool:
    """True when the configured block threshold rejects this content."""
    return (
        config.block_threshold is not None
        and result.classification.risk_score >= config.block_threshold
    )
