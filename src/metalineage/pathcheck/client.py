from __future__ import annotations

import asyncio
import logging
from typing import Optional

from metalineage.errors import PathCheckFailure

from .checker import PathChecker, is_absolute_path
from .types import PathCheckRequest, PathState

logger = logging.getLogger(__name__)


def check_path_state(checker: PathChecker, path: str) -> PathState:
    """
    Ask ``checker`` about ``path`` and fold the answer into a display state.

    Always returns a value: relative paths are ``INVALID`` without calling the
    checker, error responses are ``INVALID``, and failures to reach an answer
    are ``UNKNOWN``.
    """

    if not is_absolute_path(path or ""):
        logger.info("Path %r is not absolute; skipping existence check", path)
        return PathState.INVALID

    try:
        response = checker.check(PathCheckRequest(path=path, type="local"))
    except PathCheckFailure as exc:
        logger.error("Path check could not complete for %s: %s", path, exc)
        return PathState.UNKNOWN
    except Exception as exc:
        logger.error("Path checker raised for %s: %s", path, exc)
        return PathState.UNKNOWN

    if response.error:
        logger.warning("Path check error for %s: %s", path, response.error)
        return PathState.INVALID
    return PathState.VALID if response.exists else PathState.INVALID


async def check_path_state_async(
    checker: PathChecker, path: str, timeout: Optional[float] = None
) -> PathState:
    """Run :func:`check_path_state` off the event loop, ``UNKNOWN`` on timeout."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(check_path_state, checker, path), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.error("Path check timed out after %ss for %s", timeout, path)
        return PathState.UNKNOWN
