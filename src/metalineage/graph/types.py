from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

NodeType = Literal["source", "transform", "output"]
NODE_TYPES: tuple[str, ...] = ("source", "transform", "output")
DEFAULT_NODE_TYPE: NodeType = "transform"

EdgeId = Union[str, int]

# node ids are stored as SQLite INTEGER, a signed 64-bit value
NODE_ID_MIN = -(2**63)
NODE_ID_MAX = 2**63 - 1


@dataclass(slots=True, frozen=True)
class Version:
    """One immutable dataset version in a source node's ledger."""

    id: str
    timestamp: str
    path: str
    description: str
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "path": self.path,
            "description": self.description,
            "metadata": dict(self.metadata) if self.metadata is not None else None,
        }


@dataclass(slots=True)
class Node:
    id: int
    label: str
    description: str = ""
    type: str = DEFAULT_NODE_TYPE
    properties: dict[str, str] = field(default_factory=dict)
    path_properties: dict[str, str] = field(default_factory=dict)
    dataset_versions: list[Version] = field(default_factory=list)
    current_version_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "type": self.type,
            "properties": dict(self.properties),
            "pathProperties": dict(self.path_properties),
            "datasetVersions": [v.to_dict() for v in self.dataset_versions],
            "currentVersionId": self.current_version_id,
        }


@dataclass(slots=True)
class Edge:
    id: EdgeId
    source: int
    target: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "from": self.source, "to": self.target}


@dataclass(slots=True)
class NodeDraft:
    """Payload for creating a node; the store assigns the id."""

    label: str
    description: str = ""
    type: str = DEFAULT_NODE_TYPE
    properties: dict[str, str] = field(default_factory=dict)
    path_properties: dict[str, str] = field(default_factory=dict)


# Distinguishes "leave unchanged" from an explicit None for current_version_id.
UNSET: Any = object()


@dataclass(slots=True)
class NodePatch:
    """Partial update. Scalars replace; property maps merge per key, a None value drops the key."""

    label: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    properties: Optional[dict[str, Optional[str]]] = None
    path_properties: Optional[dict[str, Optional[str]]] = None
    dataset_versions: Optional[list[Version]] = None
    current_version_id: Any = UNSET
