from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from metalineage.errors import LineageImportError, NotFoundError
from metalineage.graph.serialization import Payload, load_payload, versions_from_list
from metalineage.graph.types import Node, NodePatch, Version

logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class VersionLedger:
    """
    Ordered dataset versions of one source node plus the current-version pointer.

    Versions are immutable; only the pointer moves. "Latest" always means the
    last entry in list order, never the newest timestamp.
    """

    def __init__(
        self,
        versions: Optional[Iterable[Version]] = None,
        current_version: Optional[str] = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._versions: list[Version] = list(versions or [])
        if current_version is not None and self._find(current_version) is None:
            raise NotFoundError(f"Version not found for id={current_version}")
        self._current: Optional[str] = current_version
        self._clock = clock
        self._id_factory = id_factory

    @classmethod
    def from_node(cls, node: Node, **kwargs: Any) -> "VersionLedger":
        return cls(node.dataset_versions, node.current_version_id, **kwargs)

    @property
    def versions(self) -> list[Version]:
        return list(self._versions)

    @property
    def current_version_id(self) -> Optional[str]:
        return self._current

    @property
    def current_version(self) -> Optional[Version]:
        if self._current is None:
            return None
        return self._find(self._current)

    def __len__(self) -> int:
        return len(self._versions)

    def get_version(self, version_id: str) -> Optional[Version]:
        return self._find(version_id)

    def create_version(
        self, path: str, description: str, metadata: Optional[dict[str, Any]] = None
    ) -> Version:
        version_id = self._id_factory()
        while self._find(version_id) is not None:
            version_id = self._id_factory()
        version = Version(
            id=version_id,
            timestamp=utc_timestamp(self._clock()),
            path=path,
            description=description,
            metadata=dict(metadata) if metadata is not None else None,
        )
        self._versions.append(version)
        self._current = version.id
        return version

    def switch_version(self, version_id: str) -> Version:
        version = self._find(version_id)
        if version is None:
            raise NotFoundError(f"Version not found for id={version_id}")
        self._current = version.id
        return version

    def delete_version(self, version_id: str) -> Version:
        version = self._find(version_id)
        if version is None:
            raise NotFoundError(f"Version not found for id={version_id}")
        self._versions = [v for v in self._versions if v.id != version_id]
        if self._current == version_id:
            self._current = self._versions[-1].id if self._versions else None
        return version

    def export_ledger(self) -> dict[str, Any]:
        return {
            "versions": [v.to_dict() for v in self._versions],
            "currentVersion": self._current,
        }

    def export_ledger_json(self) -> str:
        return json.dumps(self.export_ledger(), indent=2, ensure_ascii=False)

    def import_ledger(self, blob: Payload) -> None:
        """Replace versions and pointer together; a rejected payload changes nothing."""
        try:
            payload = load_payload(blob)
            versions, current = versions_from_list(
                payload.get("versions"), payload.get("currentVersion")
            )
        except LineageImportError as exc:
            logger.warning("Ledger import rejected: %s", exc)
            raise
        self._versions = versions
        self._current = current

    def apply_to(self, node: Node) -> Node:
        """Write versions and pointer onto ``node`` in place."""
        node.dataset_versions = self.versions
        node.current_version_id = self._current
        return node

    def to_patch(self) -> NodePatch:
        return NodePatch(dataset_versions=self.versions, current_version_id=self._current)

    def _find(self, version_id: str) -> Optional[Version]:
        for version in self._versions:
            if version.id == version_id:
                return version
        return None
