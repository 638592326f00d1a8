from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath, PureWindowsPath
from typing import Protocol

from metalineage.errors import PathCheckFailure, ValidationError

from .types import PathCheckRequest, PathCheckResponse

logger = logging.getLogger(__name__)

ABSOLUTE_PATH_REQUIRED = (
    "Absolute path is required. Example: /home/user/file.txt or C:\\Users\\user\\file.txt"
)
PATH_CONTAINS_NUL = "Path must not contain NUL characters."
SUPPORTED_STORAGE_TYPES = ("local",)


class PathChecker(Protocol):
    def check(self, request: PathCheckRequest) -> PathCheckResponse: ...


def is_absolute_path(path: str) -> bool:
    """True for POSIX (/home/x) and Windows (C:\\x, \\\\server\\share\\x) absolute forms."""
    if not path:
        return False
    return PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute()


def require_absolute_path(path: str) -> str:
    if not isinstance(path, str) or not is_absolute_path(path):
        raise ValidationError(ABSOLUTE_PATH_REQUIRED)
    if "\x00" in path:
        raise ValidationError(PATH_CONTAINS_NUL)
    return path


class LocalPathChecker:
    """
    Existence check against the local filesystem.

    Never raises: a relative path or unsupported storage type comes back as
    ``exists=False`` with an error message, a missing path as ``exists=False``
    without one.
    """

    def check(self, request: PathCheckRequest) -> PathCheckResponse:
        if request.type not in SUPPORTED_STORAGE_TYPES:
            msg = f"Unsupported storage type: {request.type!r}"
            logger.error(msg)
            return PathCheckResponse(exists=False, error=msg)

        try:
            path = require_absolute_path(request.path)
        except ValidationError as exc:
            logger.warning("Path check rejected %r: %s", request.path, exc)
            return PathCheckResponse(exists=False, error=str(exc))

        try:
            exists = self._probe(path)
        except PathCheckFailure as exc:
            logger.error("Path check failed for %s: %s", path, exc)
            return PathCheckResponse(exists=False, error=str(exc))

        logger.debug("Path check result: path=%s exists=%s", path, exists)
        return PathCheckResponse(exists=exists)

    @staticmethod
    def _probe(path: str) -> bool:
        try:
            os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            raise PathCheckFailure(f"Cannot access {path}: {exc.strerror or exc}") from exc
        except ValueError as exc:
            raise PathCheckFailure(f"Cannot access {path!r}: {exc}") from exc
        return True
