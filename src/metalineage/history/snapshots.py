from __future__ import annotations

import copy
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from metalineage.errors import LineageImportError, NotFoundError
from metalineage.graph.serialization import Payload, load_payload
from metalineage.graph.service import GraphStore
from metalineage.ledger.service import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GraphSnapshot:
    id: str
    timestamp: str
    description: str
    graph: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "description": self.description,
            "graph": copy.deepcopy(self.graph),
        }


class GraphHistory:
    """Whole-graph snapshots of a store with a current-snapshot pointer."""

    def __init__(
        self,
        store: GraphStore,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self._snapshots: list[GraphSnapshot] = []
        self._current: Optional[str] = None
        self._clock = clock

    @property
    def snapshots(self) -> list[GraphSnapshot]:
        return list(self._snapshots)

    @property
    def current_snapshot_id(self) -> Optional[str]:
        return self._current

    def commit(self, description: str) -> GraphSnapshot:
        snapshot = GraphSnapshot(
            id=str(uuid.uuid4()),
            timestamp=utc_timestamp(self._clock()),
            description=description,
            graph=self.store.export_graph(),
        )
        self._snapshots.append(snapshot)
        self._current = snapshot.id
        return snapshot

    def switch(self, snapshot_id: str) -> GraphSnapshot:
        """Restore the store to ``snapshot_id`` and make it current."""
        snapshot = self._find(snapshot_id)
        if snapshot is None:
            raise NotFoundError(f"Snapshot not found for id={snapshot_id}")
        self.store.import_graph(copy.deepcopy(snapshot.graph))
        self._current = snapshot.id
        return snapshot

    def export_history(self) -> dict[str, Any]:
        return {
            "snapshots": [s.to_dict() for s in self._snapshots],
            "currentSnapshot": self._current,
        }

    def export_history_json(self) -> str:
        return json.dumps(self.export_history(), indent=2, ensure_ascii=False)

    def import_history(self, blob: Payload) -> None:
        try:
            payload = load_payload(blob)
            snapshots, current = self._parse(payload)
        except LineageImportError as exc:
            logger.warning("History import rejected: %s", exc)
            raise
        self._snapshots = snapshots
        self._current = current

    def _parse(self, payload: dict[str, Any]) -> tuple[list[GraphSnapshot], Optional[str]]:
        raw = payload.get("snapshots")
        if not isinstance(raw, list):
            raise LineageImportError("'snapshots' must be an array.")
        snapshots: list[GraphSnapshot] = []
        for item in raw:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str):
                raise LineageImportError("Snapshot entries must be objects with a string id.")
            graph = item.get("graph")
            if not isinstance(graph, dict):
                raise LineageImportError(f"Snapshot {item['id']!r} has no graph object.")
            # a bad snapshot fails here rather than on switch
            self.store.parse_graph(graph)
            snapshots.append(
                GraphSnapshot(
                    id=item["id"],
                    timestamp=str(item.get("timestamp", "")),
                    description=str(item.get("description", "")),
                    graph=graph,
                )
            )
        ids = [s.id for s in snapshots]
        if len(set(ids)) != len(ids):
            raise LineageImportError("Snapshot ids must be unique.")
        current = payload.get("currentSnapshot")
        if current is not None and current not in ids:
            raise LineageImportError(f"Current snapshot {current!r} is not in the history.")
        return snapshots, current

    def _find(self, snapshot_id: str) -> Optional[GraphSnapshot]:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None
