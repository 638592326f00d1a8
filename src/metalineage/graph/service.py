from __future__ import annotations

import json
import logging
import time
from collections import deque
from typing import Any, Optional

from metalineage.errors import LineageError, LineageImportError, NotFoundError, ValidationError
from metalineage.store.models import LineageEdge, LineageNode
from metalineage.store.repo import LineageRepository, edge_key

from .serialization import Payload, edge_from_dict, load_payload, new_edge_id, node_from_dict
from .types import NODE_ID_MAX, UNSET, Edge, EdgeId, Node, NodeDraft, NodePatch, Version
from .validation import validate_label, validate_node_type, validate_property_map

logger = logging.getLogger(__name__)


class GraphStore:
    """Authoritative API for lineage graph mutations and queries."""

    def __init__(self, repo: LineageRepository):
        self.repo = repo
        self._last_issued_id = 0

    # Node operations
    def add_node(self, draft: NodeDraft) -> Node:
        label = validate_label(draft.label)
        node_type = validate_node_type(draft.type)
        properties = validate_property_map(draft.properties, field_name="properties")
        path_properties = validate_property_map(
            draft.path_properties, field_name="pathProperties"
        )
        record = self.repo.add_node(
            node_id=self._next_node_id(),
            label=label,
            description=draft.description or "",
            node_type=node_type,
            properties=properties,
            path_properties=path_properties,
        )
        logger.debug("Added node id=%s label=%r", record.id, record.label)
        return self._to_node(record)

    def get_node(self, node_id: int) -> Optional[Node]:
        record = self.repo.get_node(node_id)
        if not record:
            return None
        return self._to_node(record)

    def list_nodes(self) -> list[Node]:
        return [self._to_node(n) for n in self.repo.list_nodes()]

    def update_node(self, node_id: int, patch: NodePatch) -> Node:
        record = self._require_node(node_id)
        fields: dict[str, Any] = {}

        if patch.label is not None:
            fields["label"] = validate_label(patch.label)
        if patch.description is not None:
            fields["description"] = patch.description
        if patch.type is not None:
            fields["node_type"] = validate_node_type(patch.type)
        if patch.properties is not None:
            fields["properties"] = _merge_map(record.properties, patch.properties, "properties")
        if patch.path_properties is not None:
            fields["path_properties"] = _merge_map(
                record.path_properties, patch.path_properties, "pathProperties"
            )

        versions = (
            [v.to_dict() for v in patch.dataset_versions]
            if patch.dataset_versions is not None
            else list(record.dataset_versions or [])
        )
        current = (
            record.current_version_id
            if patch.current_version_id is UNSET
            else patch.current_version_id
        )
        if current is not None and current not in {v["id"] for v in versions}:
            raise ValidationError(
                f"Current version {current!r} is not in the version list of node {node_id}."
            )
        if patch.dataset_versions is not None:
            fields["dataset_versions"] = versions
        if patch.current_version_id is not UNSET:
            fields["current_version_id"] = current

        updated = self.repo.update_node(node_id, **fields)
        if not updated:
            raise NotFoundError(f"Node not found for id={node_id}")
        return self._to_node(updated)

    def delete_node(self, node_id: int) -> None:
        if not self.repo.delete_node(node_id):
            raise NotFoundError(f"Node not found for id={node_id}")
        logger.debug("Deleted node id=%s with incident edges", node_id)

    # Edge operations
    def add_edge(self, source_id: int, target_id: int, edge_id: Optional[EdgeId] = None) -> Edge:
        self._require_node(source_id)
        self._require_node(target_id)
        ext_id = edge_id if edge_id is not None else new_edge_id()
        if self.repo.get_edge(ext_id):
            raise ValidationError(f"Edge id {ext_id!r} is already in use.")
        record = self.repo.add_edge(ext_id, source_id, target_id)
        if not record:
            raise NotFoundError(f"Edge endpoints not found: {source_id} -> {target_id}")
        return self._to_edge(record)

    def get_edge(self, edge_id: EdgeId) -> Optional[Edge]:
        record = self.repo.get_edge(edge_id)
        if not record:
            return None
        return self._to_edge(record)

    def list_edges(self) -> list[Edge]:
        return [self._to_edge(e) for e in self.repo.list_edges()]

    def delete_edge(self, edge_id: EdgeId) -> None:
        if not self.repo.delete_edge(edge_id):
            raise NotFoundError(f"Edge not found for id={edge_id!r}")

    # Lineage traversal
    def get_outgoing_neighbors(self, node_id: int) -> list[Node]:
        self._require_node(node_id)
        return [self._to_node(e.target) for e in self.repo.get_edges_for_source(node_id)]

    def get_incoming_neighbors(self, node_id: int) -> list[Node]:
        self._require_node(node_id)
        return [self._to_node(e.source) for e in self.repo.get_edges_for_target(node_id)]

    def get_subgraph(
        self, start_id: int, max_hops: int, directed: bool = True
    ) -> tuple[list[Node], list[Edge]]:
        if max_hops < 0:
            raise ValueError("max_hops must be non-negative")
        start = self._require_node(start_id)
        visited_nodes: dict[int, LineageNode] = {start.id: start}
        visited_edges: dict[int, LineageEdge] = {}
        queue: deque[tuple[int, int]] = deque()
        queue.append((start.id, 0))

        while queue:
            node_id, depth = queue.popleft()
            if depth >= max_hops:
                continue
            # Directed: downstream only. Undirected: upstream and downstream.
            if directed:
                edges_to_walk = list(self.repo.get_edges_for_source(node_id))
            else:
                edges_to_walk = list(self.repo.get_edges_touching(node_id))

            for edge in edges_to_walk:
                visited_edges.setdefault(edge.pk, edge)
                if directed:
                    neighbor_id = edge.target_id
                else:
                    neighbor_id = edge.target_id if edge.source_id == node_id else edge.source_id
                if neighbor_id not in visited_nodes:
                    neighbor = self.repo.get_node(neighbor_id)
                    if neighbor:
                        visited_nodes[neighbor_id] = neighbor
                        queue.append((neighbor_id, depth + 1))

        nodes = [self._to_node(n) for n in visited_nodes.values()]
        edges = [self._to_edge(e) for _, e in sorted(visited_edges.items())]
        return nodes, edges

    # Export / import
    def export_graph(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.list_nodes()],
            "edges": [edge.to_dict() for edge in self.list_edges()],
        }

    def export_graph_json(self) -> str:
        return json.dumps(self.export_graph(), indent=2, ensure_ascii=False)

    def import_graph(self, blob: Payload) -> None:
        """Replace the whole graph with ``blob``; on any error the store is left untouched."""
        try:
            nodes, edges = self.parse_graph(blob)
        except LineageImportError as exc:
            logger.warning("Graph import rejected: %s", exc)
            raise

        self.repo.replace_all(
            [
                {
                    "node_id": node.id,
                    "label": node.label,
                    "description": node.description,
                    "node_type": node.type,
                    "properties": node.properties,
                    "path_properties": node.path_properties,
                    "dataset_versions": [v.to_dict() for v in node.dataset_versions],
                    "current_version_id": node.current_version_id,
                }
                for node in nodes
            ],
            [(edge.id, edge.source, edge.target) for edge in edges],
        )
        logger.info("Imported graph with %d nodes and %d edges", len(nodes), len(edges))

    # Helpers
    def parse_graph(self, blob: Payload) -> tuple[list[Node], list[Edge]]:
        payload = load_payload(blob)
        raw_nodes, raw_edges = payload.get("nodes"), payload.get("edges")
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise LineageImportError("Graph payload needs 'nodes' and 'edges' arrays.")

        nodes = [node_from_dict(item) for item in raw_nodes]
        node_ids: set[int] = set()
        for node in nodes:
            if node.id in node_ids:
                raise LineageImportError(f"Duplicate node id {node.id}.")
            node_ids.add(node.id)

        edges = [edge_from_dict(item) for item in raw_edges]
        edge_keys: set[str] = set()
        for edge in edges:
            if edge.source not in node_ids or edge.target not in node_ids:
                raise LineageImportError(
                    f"Edge {edge.id!r} references a missing node ({edge.source} -> {edge.target})."
                )
            key = edge_key(edge.id)
            if key in edge_keys:
                raise LineageImportError(f"Duplicate edge id {edge.id!r}.")
            edge_keys.add(key)
        return nodes, edges

    def _next_node_id(self) -> int:
        # millisecond clock, bumped past anything already issued or stored
        candidate = time.time_ns() // 1_000_000
        floor = max(self._last_issued_id, self.repo.max_node_id() or 0)
        if candidate <= floor:
            candidate = floor + 1
        if candidate > NODE_ID_MAX:
            raise LineageError("Node id space exhausted; import a graph with smaller ids.")
        self._last_issued_id = candidate
        return candidate

    def _require_node(self, node_id: int) -> LineageNode:
        record = self.repo.get_node(node_id)
        if not record:
            raise NotFoundError(f"Node not found for id={node_id}")
        return record

    @staticmethod
    def _to_node(record: LineageNode) -> Node:
        return Node(
            id=record.id,
            label=record.label,
            description=record.description or "",
            type=record.node_type,
            properties=dict(record.properties or {}),
            path_properties=dict(record.path_properties or {}),
            dataset_versions=[
                Version(
                    id=raw["id"],
                    timestamp=raw.get("timestamp", ""),
                    path=raw.get("path", ""),
                    description=raw.get("description", ""),
                    metadata=raw.get("metadata"),
                )
                for raw in record.dataset_versions or []
            ],
            current_version_id=record.current_version_id,
        )

    @staticmethod
    def _to_edge(record: LineageEdge) -> Edge:
        return Edge(id=record.edge_id, source=record.source_id, target=record.target_id)


def _merge_map(
    current: Optional[dict[str, str]], patch: dict[str, Optional[str]], field_name: str
) -> dict[str, str]:
    merged = dict(current or {})
    for key, value in patch.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return validate_property_map(merged, field_name=field_name)
