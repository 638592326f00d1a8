from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from metalineage.errors import NotFoundError, ValidationError
from metalineage.ledger.service import VersionLedger

from .serialization import Payload
from .service import GraphStore
from .types import EdgeId, NodeDraft, NodePatch


@dataclass(slots=True, frozen=True)
class AddNode:
    draft: NodeDraft


@dataclass(slots=True, frozen=True)
class UpdateNode:
    node_id: int
    patch: NodePatch


@dataclass(slots=True, frozen=True)
class DeleteNode:
    node_id: int


@dataclass(slots=True, frozen=True)
class AddEdge:
    source_id: int
    target_id: int
    edge_id: Optional[EdgeId] = None


@dataclass(slots=True, frozen=True)
class DeleteEdge:
    edge_id: EdgeId


@dataclass(slots=True, frozen=True)
class CreateVersion:
    node_id: int
    path: str
    description: str
    metadata: Optional[dict[str, Any]] = None


@dataclass(slots=True, frozen=True)
class SwitchVersion:
    node_id: int
    version_id: str


@dataclass(slots=True, frozen=True)
class DeleteVersion:
    node_id: int
    version_id: str


@dataclass(slots=True, frozen=True)
class ImportGraph:
    payload: Payload


Command = Union[
    AddNode,
    UpdateNode,
    DeleteNode,
    AddEdge,
    DeleteEdge,
    CreateVersion,
    SwitchVersion,
    DeleteVersion,
    ImportGraph,
]

LEDGER_COMMANDS = (CreateVersion, SwitchVersion, DeleteVersion)


def dispatch(store: GraphStore, command: Command) -> Any:
    """
    Apply one user intent to the store and return what it produced.

    Every payload is validated before the store is touched; a failing command
    leaves the store as it was.
    """

    if isinstance(command, AddNode):
        return store.add_node(command.draft)
    if isinstance(command, UpdateNode):
        return store.update_node(command.node_id, command.patch)
    if isinstance(command, DeleteNode):
        store.delete_node(command.node_id)
        return None
    if isinstance(command, AddEdge):
        return store.add_edge(command.source_id, command.target_id, command.edge_id)
    if isinstance(command, DeleteEdge):
        store.delete_edge(command.edge_id)
        return None
    if isinstance(command, ImportGraph):
        store.import_graph(command.payload)
        return None
    if isinstance(command, LEDGER_COMMANDS):
        return _apply_ledger_command(store, command)
    raise TypeError(f"Unsupported command: {type(command).__name__}")


def _apply_ledger_command(store: GraphStore, command: Any):
    node = store.get_node(command.node_id)
    if node is None:
        raise NotFoundError(f"Node not found for id={command.node_id}")
    if node.type != "source":
        raise ValidationError(
            f"Dataset versions are only tracked on source nodes (node {node.id} is {node.type!r})."
        )
    ledger = VersionLedger.from_node(node)
    if isinstance(command, CreateVersion):
        result = ledger.create_version(command.path, command.description, command.metadata)
    elif isinstance(command, SwitchVersion):
        result = ledger.switch_version(command.version_id)
    else:
        result = ledger.delete_version(command.version_id)
    store.update_node(command.node_id, ledger.to_patch())
    return result
