"""Cooperative tick scheduling: one active motion task per chain.

Nothing here runs on its own. The host calls ``tick(now_ms)`` once per frame and
the active task advances by exactly one step, returning whether it wants
another tick.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Protocol

from armmotion.core.types import TimeMs

logger = logging.getLogger(__name__)


def monotonic_ms() -> TimeMs:
    """Default clock: ``time.monotonic()`` in milliseconds."""
    return time.monotonic() * 1000.0


class TickResult(Enum):
    CONTINUE = "continue"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def finished(self) -> bool:
        return self is not TickResult.CONTINUE


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


class MotionTask(Protocol):
    token: CancellationToken

    def tick(self, now: TimeMs) -> TickResult: ...

    def cancel(self, reason: str = "") -> None: ...


class MotionSlot:
    """Holds the single task allowed to write joint values on a chain.

    Starting a task cancels the one in flight first, so two writers never
    overlap on the same tick.
    """

    def __init__(self, name: str = "motion") -> None:
        self.name = name
        self._task: MotionTask | None = None

    @property
    def task(self) -> MotionTask | None:
        return self._task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.token.cancelled

    def start(self, task: MotionTask) -> MotionTask:
        previous = self._task
        if previous is not None and previous is not task:
            logger.debug("%s: replacing %r", self.name, previous)
            previous.cancel("replaced")
        self._task = task
        return task

    def cancel(self, reason: str = "stopped") -> bool:
        task, self._task = self._task, None
        if task is None:
            return False
        task.cancel(reason)
        return True

    def tick(self, now: TimeMs) -> TickResult | None:
        task = self._task
        if task is None:
            return None
        result = task.tick(now)
        if result.finished and self._task is task:
            self._task = None
        return result


__all__ = ["CancellationToken", "MotionSlot", "MotionTask", "TickResult", "monotonic_ms"]
