from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .types import PathState

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PathCheckTicket:
    key: str
    generation: int
    path: str


class PathCheckTracker:
    """
    Per-key tri-state display for path properties.

    Every edit or new check bumps the key's generation; a result is applied
    only if its ticket still carries the latest generation, so a late answer
    for a superseded value never overwrites a reset.
    """

    def __init__(self, keys: Iterable[str] = ()):
        self._states: dict[str, PathState] = {}
        self._generations: dict[str, int] = {}
        for key in keys:
            self._states[key] = PathState.UNKNOWN
            self._generations[key] = 0

    def state(self, key: str) -> PathState:
        return self._states.get(key, PathState.UNKNOWN)

    def states(self) -> dict[str, PathState]:
        return dict(self._states)

    def begin(self, key: str, path: str) -> PathCheckTicket:
        generation = self._bump(key)
        return PathCheckTicket(key=key, generation=generation, path=path)

    def resolve(self, ticket: PathCheckTicket, state: PathState) -> bool:
        if self._generations.get(ticket.key) != ticket.generation:
            logger.debug(
                "Dropping stale path check result for %r (generation %s)",
                ticket.key,
                ticket.generation,
            )
            return False
        self._states[ticket.key] = state
        return True

    def reset(self, key: str) -> None:
        self._bump(key)
        self._states[key] = PathState.UNKNOWN

    def rename(self, old_key: str, new_key: str) -> None:
        self.forget(old_key)
        self.reset(new_key)

    def forget(self, key: str) -> None:
        # keep the generation so in-flight tickets for this key stay stale
        self._generations[key] = self._generations.get(key, 0) + 1
        self._states.pop(key, None)

    def _bump(self, key: str) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation
