"""
Tri-state readiness signal for the embedding worker.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Readiness(str, Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    ERROR = "error"


ReadinessListener = Callable[[Readiness, Optional[str]], None]


class ReadinessSignal:
    """
    Holds the current readiness and notifies listeners on transitions.

    Listeners that subscribe after the signal settled are told the current
    state immediately, so nobody waits on a transition that already fired.
    ``NOT_READY -> READY -> ERROR`` and ``NOT_READY -> ERROR`` are the only
    transitions; each one is broadcast once.
    """

    def __init__(self) -> None:
        self._state = Readiness.NOT_READY
        self._error: str | None = None
        self._listeners: list[ReadinessListener] = []
        self._settled = asyncio.Event()

    @property
    def state(self) -> Readiness:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_ready(self) -> bool:
        return self._state is Readiness.READY

    def subscribe(self, listener: ReadinessListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)
        if self._state is not Readiness.NOT_READY:
            self._notify(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait(self) -> Readiness:
        """Return once the signal is ready or failed."""
        if self._state is Readiness.NOT_READY:
            await self._settled.wait()
        return self._state

    def set_ready(self) -> None:
        if self._state is not Readiness.NOT_READY:
            return
        self._transition(Readiness.READY, None)

    def set_error(self, message: str) -> None:
        if self._state is Readiness.ERROR:
            return
        self._transition(Readiness.ERROR, message)

    def _transition(self, state: Readiness, error: str | None) -> None:
        self._state = state
        self._error = error
        self._settled.set()
        logger.debug("Readiness changed to %s", state.value)
        for listener in list(self._listeners):
            self._notify(listener)

    def _notify(self, listener: ReadinessListener) -> None:
        try:
            listener(self._state, self._error)
        except Exception:
            logger.exception("Readiness listener %r failed", listener)
