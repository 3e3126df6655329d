# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""PII redaction.

Three modes:
    mask         keep a few characters at each end, mask the rest
    remove       delete the value entirely
    placeholder  replace with ``[TYPE]`` or a custom ``{TYPE}`` template

Edits are applied from the end of the text towards the start so that the
offsets of earlier matches stay valid.
"""

from __future__ import annotations

from dataclasses import dataclass

from gatewaystack.content.detect import PiiMatch

REDACTION_MODES = ("mask", "remove", "placeholder")


@dataclass
class RedactionConfig:
    mode: str = "mask"
    placeholder: str | None = None  # e.g. "<redacted:{TYPE}>"
    types: list[str] | None = None  # Only redact these PII types
    mask_char: str = "*"
    mask_keep: int = 2  # Characters kept visible at each end


def _mask(value: str, config: RedactionConfig) -> str:
    keep = max(config.mask_keep, 0)
    if len(value) <= keep * 2:
        return config.mask_char * len(value)
    hidden = len(value) - keep * 2
    return value[:keep] + config.mask_char * hidden + value[len(value) - keep :]


def _replacement(value: str, pii_type: str, config: RedactionConfig) -> str:
    if config.mode == "remove":
        return ""
    if config.mode == "placeholder":
        if config.placeholder:
            return config.placeholder.replace("{TYPE}", pii_type.upper())
        return f"[{pii_type.upper()}]"
    return _mask(value, config)


def _coalesce(matches: list[PiiMatch], text: str) -> list[PiiMatch]:
    """Merge overlapping spans so each character is edited at most once."""
    merged: list[PiiMatch] = []
    for m in sorted(matches, key=lambda m: (m.start, -m.end)):
        if merged and m.start < merged[-1].end:
            last = merged[-1]
            if m.end > last.end:
                merged[-1] = PiiMatch(
                    type=last.type,
                    value=text[last.start : m.end],
                    start=last.start,
                    end=m.end,
                )
            continue
        merged.append(m)
    return merged


def redact_pii(text: str, matches: list[PiiMatch], config: RedactionConfig | None = None) -> str:
    """Return ``text`` with the given matches redacted."""
    config = config or RedactionConfig()
    if config.types is not None:
        allowed = set(config.types)
        matches = [m for m in matches if m.type in allowed]
    if not matches:
        return text

    result = text
    for m in reversed(_coalesce(matches, text)):
        value = text[m.start : m.end]
        result = result[: m.start] + _replacement(value, m.type, config) + result[m.end :]
    return result
