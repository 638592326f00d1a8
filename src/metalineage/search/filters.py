from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from metalineage.graph.types import Node

ALL_TYPES = "all"


@dataclass(slots=True, frozen=True)
class PropertyFilter:
    key: str = ""
    value: str = ""

    @property
    def is_inert(self) -> bool:
        return not self.key or not self.value


@dataclass(slots=True)
class NodeQuery:
    text_term: str = ""
    type_filter: str = ALL_TYPES
    property_filters: list[PropertyFilter] = field(default_factory=list)

    @property
    def is_identity(self) -> bool:
        return (
            not self.text_term
            and self.type_filter == ALL_TYPES
            and all(f.is_inert for f in self.property_filters)
        )


def discover_properties(nodes: Iterable[Node], active_filter_keys: Iterable[str] = ()) -> list[str]:
    """Sorted property keys seen on any node, plus keys already chosen in active filters."""
    keys: set[str] = set()
    for node in nodes:
        keys.update(node.properties.keys())
    keys.update(k for k in active_filter_keys if k)
    return sorted(keys)


def matches_text(node: Node, text_term: str) -> bool:
    if not text_term:
        return True
    needle = text_term.lower()
    return needle in node.label.lower() or needle in (node.description or "").lower()


def matches_type(node: Node, type_filter: str) -> bool:
    return type_filter == ALL_TYPES or node.type == type_filter


def matches_properties(node: Node, property_filters: Sequence[PropertyFilter]) -> bool:
    for prop_filter in property_filters:
        if prop_filter.is_inert:
            continue
        actual = node.properties.get(prop_filter.key, "")
        if prop_filter.value.lower() not in actual.lower():
            return False
    return True


def query(nodes: Iterable[Node], node_query: NodeQuery) -> list[int]:
    """Ids of nodes passing the text, type and property predicates, in input order."""
    return [
        node.id
        for node in nodes
        if matches_text(node, node_query.text_term)
        and matches_type(node, node_query.type_filter)
        and matches_properties(node, node_query.property_filters)
    ]
