from __future__ import annotations

import copy
import logging
from typing import Any, Optional

from metalineage.errors import NotFoundError, ValidationError
from metalineage.graph.service import GraphStore
from metalineage.graph.types import Node, NodePatch
from metalineage.graph.validation import validate_label, validate_node_type, validate_property_key
from metalineage.ledger.service import VersionLedger
from metalineage.pathcheck.checker import LocalPathChecker, PathChecker
from metalineage.pathcheck.client import check_path_state_async
from metalineage.pathcheck.tracker import PathCheckTicket, PathCheckTracker
from metalineage.pathcheck.types import PathState

logger = logging.getLogger(__name__)


class EditSession:
    """
    Private working copy of one node (and its ledger) until :meth:`save`.

    Nothing touches the store before ``save``; ``save`` validates first and
    merges the copy back through :meth:`GraphStore.update_node`.
    """

    def __init__(
        self,
        store: GraphStore,
        node_id: int,
        *,
        checker: Optional[PathChecker] = None,
        path_check_timeout: Optional[float] = None,
    ):
        node = store.get_node(node_id)
        if node is None:
            raise NotFoundError(f"Node not found for id={node_id}")
        self.store = store
        self.checker: PathChecker = checker or LocalPathChecker()
        self.path_check_timeout = path_check_timeout
        self._original = node
        self.node: Node = copy.deepcopy(node)
        self.ledger = VersionLedger.from_node(self.node)
        self.path_states = PathCheckTracker(self.node.path_properties.keys())

    @property
    def node_id(self) -> int:
        return self.node.id

    @property
    def is_dataset_node(self) -> bool:
        return self.node.type == "source"

    # Scalar fields
    def set_label(self, label: str) -> None:
        self.node.label = label

    def set_description(self, description: str) -> None:
        self.node.description = description

    def set_type(self, node_type: str) -> None:
        self.node.type = validate_node_type(node_type)

    # Properties
    def add_property(self, key: str, value: str = "") -> None:
        _add_entry(self.node.properties, key, value)

    def set_property(self, key: str, value: str) -> None:
        _require_entry(self.node.properties, key)
        self.node.properties[key] = value

    def rename_property(self, old_key: str, new_key: str) -> None:
        self.node.properties = _rename_entry(self.node.properties, old_key, new_key)

    def remove_property(self, key: str) -> None:
        _require_entry(self.node.properties, key)
        del self.node.properties[key]

    # Path properties
    def add_path_property(self, key: str, value: str = "") -> None:
        _add_entry(self.node.path_properties, key, value)
        self.path_states.reset(key)

    def set_path_property(self, key: str, value: str) -> None:
        _require_entry(self.node.path_properties, key)
        self.node.path_properties[key] = value
        self.path_states.reset(key)

    def rename_path_property(self, old_key: str, new_key: str) -> None:
        self.node.path_properties = _rename_entry(self.node.path_properties, old_key, new_key)
        if old_key != new_key:
            self.path_states.rename(old_key, new_key)

    def remove_path_property(self, key: str) -> None:
        _require_entry(self.node.path_properties, key)
        del self.node.path_properties[key]
        self.path_states.forget(key)

    def path_state(self, key: str) -> PathState:
        return self.path_states.state(key)

    def begin_path_check(self, key: str) -> PathCheckTicket:
        _require_entry(self.node.path_properties, key)
        return self.path_states.begin(key, self.node.path_properties[key])

    def finish_path_check(self, ticket: PathCheckTicket, state: PathState) -> bool:
        return self.path_states.resolve(ticket, state)

    async def check_path(self, key: str) -> PathState:
        """Check one path property; returns the state shown for ``key`` afterwards."""
        ticket = self.begin_path_check(key)
        state = await check_path_state_async(self.checker, ticket.path, self.path_check_timeout)
        self.finish_path_check(ticket, state)
        return self.path_states.state(key)

    # Dataset versions
    def create_version(
        self, path: str, description: str, metadata: Optional[dict[str, Any]] = None
    ):
        return self.ledger.create_version(path, description, metadata)

    def switch_version(self, version_id: str):
        return self.ledger.switch_version(version_id)

    def delete_version(self, version_id: str):
        return self.ledger.delete_version(version_id)

    # Save
    def validate(self) -> None:
        validate_label(self.node.label)
        validate_node_type(self.node.type)

    def build_patch(self) -> NodePatch:
        patch = NodePatch(
            label=self.node.label,
            description=self.node.description,
            type=self.node.type,
            properties=_diff_map(self._original.properties, self.node.properties),
            path_properties=_diff_map(self._original.path_properties, self.node.path_properties),
        )
        if self.is_dataset_node:
            patch.dataset_versions = self.ledger.versions
            patch.current_version_id = self.ledger.current_version_id
        return patch

    def save(self) -> Node:
        self.validate()
        saved = self.store.update_node(self.node.id, self.build_patch())
        logger.debug("Saved edit session for node id=%s", saved.id)
        self._original = copy.deepcopy(saved)
        return saved


def _add_entry(entries: dict[str, str], key: str, value: str) -> None:
    validate_property_key(key)
    if key in entries:
        raise ValidationError(f"Property {key!r} already exists.")
    entries[key] = value


def _require_entry(entries: dict[str, str], key: str) -> None:
    if key not in entries:
        raise NotFoundError(f"Property not found: {key!r}")


def _rename_entry(entries: dict[str, str], old_key: str, new_key: str) -> dict[str, str]:
    _require_entry(entries, old_key)
    validate_property_key(new_key)
    if new_key != old_key and new_key in entries:
        raise ValidationError(f"Property {new_key!r} already exists.")
    # rebuild to keep the entry in its original position
    return {(new_key if k == old_key else k): v for k, v in entries.items()}


def _diff_map(before: dict[str, str], after: dict[str, str]) -> dict[str, Optional[str]]:
    """Key-level patch turning ``before`` into ``after``; removed keys map to None."""
    patch: dict[str, Optional[str]] = {key: None for key in before if key not in after}
    patch.update(after)
    return patch
