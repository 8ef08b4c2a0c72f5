"""
Lightweight wall-clock timing for pipeline stages.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PerformanceTracker:
    """Record named durations in milliseconds and log them at INFO."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.durations: dict[str, float] = {}
        self._starts: dict[str, float] = {}

    def start(self, name: str) -> None:
        if not self.enabled:
            return
        self._starts[name] = time.perf_counter()

    def end(self, name: str) -> float | None:
        if not self.enabled or name not in self._starts:
            return None
        duration = (time.perf_counter() - self._starts.pop(name)) * 1000.0
        self.durations[name] = duration
        logger.info("%s: %.2fms", name, duration)
        return duration

    def measure(self, name: str, fn: Callable[[], T]) -> T:
        if not self.enabled:
            return fn()
        self.start(name)
        try:
            return fn()
        finally:
            self.end(name)

    async def measure_async(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        if not self.enabled:
            return await fn()
        self.start(name)
        try:
            return await fn()
        finally:
            self.end(name)
