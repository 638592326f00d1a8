from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .models import LineageEdge, LineageNode


def edge_key(edge_id: Any) -> str:
    """Canonical lookup key for an edge id, keeping int 1 and str "1" apart."""
    if isinstance(edge_id, bool) or not isinstance(edge_id, (int, str)):
        raise TypeError(f"Edge id must be str or int, got {type(edge_id).__name__}")
    prefix = "i" if isinstance(edge_id, int) else "s"
    return f"{prefix}:{edge_id}"


class LineageRepository:
    """Row-level CRUD for the lineage store. Callers own validation."""

    def __init__(self, session: Session):
        self.session = session

    # LineageNode
    def add_node(
        self,
        node_id: int,
        label: str,
        description: str = "",
        node_type: str = "transform",
        properties: Optional[dict[str, str]] = None,
        path_properties: Optional[dict[str, str]] = None,
        dataset_versions: Optional[list[dict[str, Any]]] = None,
        current_version_id: Optional[str] = None,
    ) -> LineageNode:
        node = self._new_node(
            node_id,
            label,
            description,
            node_type,
            properties,
            path_properties,
            dataset_versions,
            current_version_id,
            position=self._next_position(),
        )
        self.session.add(node)
        return self._commit_and_refresh(node)

    def get_node(self, node_id: int) -> Optional[LineageNode]:
        return self.session.get(LineageNode, node_id)

    def list_nodes(self) -> Iterable[LineageNode]:
        return self.session.scalars(select(LineageNode).order_by(LineageNode.position)).all()

    def list_node_ids(self) -> list[int]:
        return list(self.session.scalars(select(LineageNode.id)).all())

    def max_node_id(self) -> Optional[int]:
        return self.session.scalar(select(func.max(LineageNode.id)))

    def update_node(self, node_id: int, **fields: Any) -> Optional[LineageNode]:
        node = self.session.get(LineageNode, node_id)
        if not node:
            return None
        for name, value in fields.items():
            setattr(node, name, value)
        return self._commit_and_refresh(node)

    def delete_node(self, node_id: int) -> bool:
        node = self.session.get(LineageNode, node_id)
        if not node:
            return False
        # incident edges go with the node through the relationship cascade
        self.session.delete(node)
        self._commit()
        return True

    # LineageEdge
    def add_edge(self, edge_id: Any, source_id: int, target_id: int) -> Optional[LineageEdge]:
        source = self.session.get(LineageNode, source_id)
        target = self.session.get(LineageNode, target_id)
        if not source or not target:
            return None
        edge = LineageEdge(
            edge_key=edge_key(edge_id), edge_id=edge_id, source=source, target=target
        )
        self.session.add(edge)
        return self._commit_and_refresh(edge)

    def get_edge(self, edge_id: Any) -> Optional[LineageEdge]:
        return self.session.scalar(
            select(LineageEdge).where(LineageEdge.edge_key == edge_key(edge_id))
        )

    def list_edges(self) -> Iterable[LineageEdge]:
        return self.session.scalars(select(LineageEdge).order_by(LineageEdge.pk)).all()

    def get_edges_for_source(self, node_id: int) -> Iterable[LineageEdge]:
        return self.session.scalars(
            select(LineageEdge).where(LineageEdge.source_id == node_id).order_by(LineageEdge.pk)
        ).all()

    def get_edges_for_target(self, node_id: int) -> Iterable[LineageEdge]:
        return self.session.scalars(
            select(LineageEdge).where(LineageEdge.target_id == node_id).order_by(LineageEdge.pk)
        ).all()

    def get_edges_touching(self, node_id: int) -> Iterable[LineageEdge]:
        return self.session.scalars(
            select(LineageEdge)
            .where(or_(LineageEdge.source_id == node_id, LineageEdge.target_id == node_id))
            .order_by(LineageEdge.pk)
        ).all()

    def delete_edge(self, edge_id: Any) -> bool:
        edge = self.get_edge(edge_id)
        if not edge:
            return False
        self.session.delete(edge)
        self._commit()
        return True

    # Bulk
    def replace_all(
        self, nodes: list[dict[str, Any]], edges: list[tuple[Any, int, int]]
    ) -> None:
        """Swap the whole graph in one transaction; prior rows survive any failure."""
        try:
            for edge in self.session.scalars(select(LineageEdge)).all():
                self.session.delete(edge)
            for node in self.session.scalars(select(LineageNode)).all():
                self.session.delete(node)
            self.session.flush()

            by_id: dict[int, LineageNode] = {}
            for position, fields in enumerate(nodes):
                node = self._new_node(position=position, **fields)
                self.session.add(node)
                by_id[node.id] = node
            self.session.flush()

            for ext_id, source_id, target_id in edges:
                self.session.add(
                    LineageEdge(
                        edge_key=edge_key(ext_id),
                        edge_id=ext_id,
                        source=by_id[source_id],
                        target=by_id[target_id],
                    )
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # Helpers
    def _next_position(self) -> int:
        current = self.session.scalar(select(func.max(LineageNode.position)))
        return 0 if current is None else current + 1

    @staticmethod
    def _new_node(
        node_id: int,
        label: str,
        description: str = "",
        node_type: str = "transform",
        properties: Optional[dict[str, str]] = None,
        path_properties: Optional[dict[str, str]] = None,
        dataset_versions: Optional[list[dict[str, Any]]] = None,
        current_version_id: Optional[str] = None,
        *,
        position: int,
    ) -> LineageNode:
        return LineageNode(
            id=node_id,
            position=position,
            label=label,
            description=description,
            node_type=node_type,
            properties=dict(properties or {}),
            path_properties=dict(path_properties or {}),
            dataset_versions=list(dataset_versions or []),
            current_version_id=current_version_id,
        )

    def _commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _commit_and_refresh(self, obj):
        try:
            self.session.commit()
            self.session.refresh(obj)
            return obj
        except Exception:
            self.session.rollback()
            raise
