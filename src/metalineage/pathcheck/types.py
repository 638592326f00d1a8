from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional

StorageType = Literal["local"]


class PathState(str, Enum):
    """Display state of one path property."""

    UNKNOWN = "unknown"
    VALID = "valid"
    INVALID = "invalid"


@dataclass(slots=True, frozen=True)
class PathCheckRequest:
    path: str
    type: str = "local"

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "type": self.type}


@dataclass(slots=True, frozen=True)
class PathCheckResponse:
    exists: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"exists": self.exists}
        if self.error is not None:
            payload["error"] = self.error
        return payload
