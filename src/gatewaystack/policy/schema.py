# GatewayStack
# Copyright (C) 2025 GatewayStack contributors. All Rights Reserved.
#
# This file is part of GatewayStack.
#
# GatewayStack is free software: you can redistribute it and/or modify it
# under the terms of the GNU Affero General Public License v3.0 (AGPL-3.0).
# See LICENSE for the full text.
"""Lightweight input schema checks for tool-call payloads.

Covers the subset of JSON Schema that tool definitions actually use:
``type`` (string, number, boolean, object, array), ``required``,
``properties`` one level deep, and ``enum``. All violations are reported,
not just the first one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SchemaValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def type_name(value: Any) -> str:
    """JSON type name of a decoded value."""
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if value is None:
        return "null"
    return type(value).__name__


def _in_enum(value: Any, options: list[Any]) -> bool:
    for option in options:
        if isinstance(option, bool) != isinstance(value, bool):
            continue
        if type_name(option) == type_name(value) and option == value:
            return True
    return False


def _validate_value(value: Any, schema: dict[str, Any], path: str) -> list[str]:
    errors: list[str] = []

    expected = schema.get("type")
    if expected:
        actual = type_name(value)
        if actual != expected:
            errors.append(f"{path}: expected {expected}, got {actual}")

    options = schema.get("enum")
    if options is not None and not _in_enum(value, options):
        errors.append(f"{path}: must be one of [{', '.join(str(o) for o in options)}]")

    return errors


def check_schema(input: Any, schema: dict[str, Any]) -> SchemaValidationResult:
    """Validate ``input`` against a simple JSON-Schema-like dict."""
    if schema.get("type") != "object":
        errors = _validate_value(input, schema, "input")
        return SchemaValidationResult(valid=not errors, errors=errors)

    if not isinstance(input, dict):
        return SchemaValidationResult(valid=False, errors=["Expected an object"])

    errors = []
    for name in schema.get("required", []):
        if name not in input:
            errors.append(f"Missing required field: {name}")

    for name, prop_schema in schema.get("properties", {}).items():
        if name in input:
            errors.extend(_validate_value(input[name], prop_schema, name))

    return SchemaValidationResult(valid=not errors, errors=errors)
