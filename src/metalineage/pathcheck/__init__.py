from .checker import (
    ABSOLUTE_PATH_REQUIRED,
    PATH_CONTAINS_NUL,
    LocalPathChecker,
    PathChecker,
    is_absolute_path,
    require_absolute_path,
)
from .client import check_path_state, check_path_state_async
from .tracker import PathCheckTicket, PathCheckTracker
from .types import PathCheckRequest, PathCheckResponse, PathState

__all__ = [
    "ABSOLUTE_PATH_REQUIRED",
    "LocalPathChecker",
    "PATH_CONTAINS_NUL",
    "PathChecker",
    "PathCheckRequest",
    "PathCheckResponse",
    "PathCheckTicket",
    "PathCheckTracker",
    "PathState",
    "check_path_state",
    "check_path_state_async",
    "is_absolute_path",
    "require_absolute_path",
]
