from __future__ import annotations

from typing import Optional

from metalineage.errors import ValidationError

from .types import NODE_TYPES


def validate_label(label: Optional[str]) -> str:
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("Node label must be a non-empty string.")
    return label


def validate_node_type(node_type: Optional[str]) -> str:
    if node_type not in NODE_TYPES:
        allowed = ", ".join(NODE_TYPES)
        raise ValidationError(f"Invalid node type {node_type!r}; expected one of: {allowed}.")
    return node_type


def validate_property_key(key: Optional[str]) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("Property key must be a non-empty string.")
    return key


def validate_property_map(values: dict, *, field_name: str) -> dict[str, str]:
    """Check a str -> str mapping; dict keys are unique by construction."""
    result: dict[str, str] = {}
    for key, value in values.items():
        validate_property_key(key)
        if not isinstance(value, str):
            raise ValidationError(f"{field_name}[{key!r}] must be a string.")
        result[key] = value
    return result
