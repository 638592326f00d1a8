from __future__ import annotations

import json
import uuid
from typing import Any, Optional, Union

from metalineage.errors import LineageImportError, ValidationError

from .types import DEFAULT_NODE_TYPE, NODE_ID_MAX, NODE_ID_MIN, Edge, Node, Version
from .validation import validate_label, validate_node_type, validate_property_map

Payload = Union[dict, str, bytes, bytearray]


def load_payload(blob: Payload) -> dict[str, Any]:
    """Accept an already-decoded dict or a JSON document; the result must be an object."""
    if isinstance(blob, (bytes, bytearray)):
        try:
            blob = blob.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise LineageImportError(f"Payload is not valid UTF-8: {exc}") from exc
    if isinstance(blob, str):
        try:
            blob = json.loads(blob)
        except json.JSONDecodeError as exc:
            raise LineageImportError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(blob, dict):
        raise LineageImportError("Payload root must be a JSON object.")
    return blob


def version_from_dict(raw: Any) -> Version:
    if not isinstance(raw, dict):
        raise LineageImportError("Version entries must be objects.")
    version_id = raw.get("id")
    if not isinstance(version_id, str) or not version_id:
        raise LineageImportError("Version entry is missing a string id.")
    for name in ("timestamp", "path", "description"):
        if not isinstance(raw.get(name, ""), str):
            raise LineageImportError(f"Version {version_id!r}: {name} must be a string.")
    metadata = raw.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise LineageImportError(f"Version {version_id!r}: metadata must be an object.")
    return Version(
        id=version_id,
        timestamp=raw.get("timestamp", ""),
        path=raw.get("path", ""),
        description=raw.get("description", ""),
        metadata=dict(metadata) if metadata is not None else None,
    )


def versions_from_list(raw: Any, current: Any) -> tuple[list[Version], Optional[str]]:
    """Parse a version list plus pointer, enforcing unique ids and a resolvable pointer."""
    if not isinstance(raw, list):
        raise LineageImportError("'versions' must be an array.")
    versions = [version_from_dict(item) for item in raw]
    ids = [v.id for v in versions]
    if len(set(ids)) != len(ids):
        raise LineageImportError("Version ids must be unique.")
    if current is not None:
        if not isinstance(current, str) or current not in ids:
            raise LineageImportError(f"Current version {current!r} is not in the version list.")
    return versions, current


def node_from_dict(raw: Any) -> Node:
    if not isinstance(raw, dict):
        raise LineageImportError("Node entries must be objects.")
    node_id = raw.get("id")
    if not is_node_id(node_id):
        raise LineageImportError(f"Node id must be a 64-bit integer, got {node_id!r}.")
    try:
        label = validate_label(raw.get("label"))
        node_type = validate_node_type(raw.get("type") or DEFAULT_NODE_TYPE)
        properties = validate_property_map(_as_dict(raw, "properties"), field_name="properties")
        path_properties = validate_property_map(
            _as_dict(raw, "pathProperties"), field_name="pathProperties"
        )
    except ValidationError as exc:
        raise LineageImportError(f"Node {node_id}: {exc}") from exc

    description = raw.get("description") or ""
    if not isinstance(description, str):
        raise LineageImportError(f"Node {node_id}: description must be a string.")

    try:
        versions, current = versions_from_list(
            raw.get("datasetVersions") or [], raw.get("currentVersionId")
        )
    except LineageImportError as exc:
        raise LineageImportError(f"Node {node_id}: {exc}") from exc

    return Node(
        id=node_id,
        label=label,
        description=description,
        type=node_type,
        properties=properties,
        path_properties=path_properties,
        dataset_versions=versions,
        current_version_id=current,
    )


def edge_from_dict(raw: Any) -> Edge:
    if not isinstance(raw, dict):
        raise LineageImportError("Edge entries must be objects.")
    source, target = raw.get("from"), raw.get("to")
    for name, value in (("from", source), ("to", target)):
        if not is_node_id(value):
            raise LineageImportError(f"Edge '{name}' must be a node id, got {value!r}.")
    edge_id = raw.get("id")
    if edge_id is None:
        edge_id = new_edge_id()
    elif isinstance(edge_id, bool) or not isinstance(edge_id, (str, int)):
        raise LineageImportError(f"Edge id must be a string or integer, got {edge_id!r}.")
    return Edge(id=edge_id, source=source, target=target)


def is_node_id(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return NODE_ID_MIN <= value <= NODE_ID_MAX


def new_edge_id() -> str:
    return str(uuid.uuid4())


def _as_dict(raw: dict, key: str) -> dict:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{key} must be an object.")
    return value
