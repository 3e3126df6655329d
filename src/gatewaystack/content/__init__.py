# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Content safety: PII detection, redaction and classification."""

from gatewaystack.content.classify import (
    ClassificationLabel,
    ClassificationResult,
    classify_content,
)
from gatewaystack.content.detect import PII_PATTERNS, PiiMatch, detect_pii
from gatewaystack.content.metadata import ContentMetadata, extract_metadata
from gatewaystack.content.redact import RedactionConfig, redact_pii
from gatewaystack.content.transform import (
    ContentConfig,
    TransformResult,
    exceeds_threshold,
    transform_content,
)

__all__ = [
    "PII_PATTERNS",
    "ClassificationLabel",
    "ClassificationResult",
    "ContentConfig",
    "ContentMetadata",
    "PiiMatch",
    "RedactionConfig",
    "TransformResult",
    "classify_content",
    "detect_pii",
    "exceeds_threshold",
    "extract_metadata",
    "redact_pii",
    "transform_content",
]
