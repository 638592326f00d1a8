from __future__ import annotations


class LineageError(Exception):
    """Base class for lineage editor errors."""


class ValidationError(LineageError, ValueError):
    """A payload failed a pure validation check (empty label, relative path, ...)."""


class NotFoundError(LineageError, LookupError):
    """An id-based operation referenced a node, edge, version or snapshot that does not exist."""


class LineageImportError(LineageError, ValueError):
    """A graph, ledger or history payload was malformed; nothing was applied."""


class PathCheckFailure(LineageError):
    """Existence of a path could not be determined (distinct from "does not exist")."""
