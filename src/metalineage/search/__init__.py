from .filters import (
    ALL_TYPES,
    NodeQuery,
    PropertyFilter,
    discover_properties,
    query,
)

__all__ = [
    "ALL_TYPES",
    "NodeQuery",
    "PropertyFilter",
    "discover_properties",
    "query",
]
