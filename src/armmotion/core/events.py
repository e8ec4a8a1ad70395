"""Typed notification channel between the motion core and host UI layers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

from armmotion.core.errors import MotionStatus

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    SOLVE_STARTED = "solve-started"
    SOLVE_SUCCEEDED = "solve-succeeded"
    SOLVE_FAILED = "solve-failed"
    ANIMATION_STARTED = "animation-started"
    ANIMATION_PROGRESS = "animation-progress"
    ANIMATION_COMPLETED = "animation-completed"
    ANIMATION_CANCELLED = "animation-cancelled"
    RECORDING_STARTED = "recording-started"
    FRAME_RECORDED = "frame-recorded"
    RECORDING_STOPPED = "recording-stopped"
    PLAYBACK_STARTED = "playback-started"
    FRAME_PLAYED = "frame-played"
    PLAYBACK_COMPLETED = "playback-completed"
    PLAYBACK_STOPPED = "playback-stopped"
    TOOL_ATTACHED = "tool-attached"
    TOOL_DETACHED = "tool-detached"
    TOOL_TRANSFORMED = "tool-transformed"
    JOINTS_CHANGED = "joints-changed"
    STATUS = "status"


@dataclass(frozen=True)
class MotionEvent:
    kind: EventKind
    robot_id: str
    status: MotionStatus | None = None
    payload: Mapping[str, Any] = field(default_factory=dict)


Observer: TypeAlias = Callable[[MotionEvent], None]


class EventChannel:
    """Observer registry owned by a session.

    Observers are called synchronously in registration order. An observer that
    raises is logged and skipped; it never interrupts the motion that emitted
    the event.
    """

    def __init__(self) -> None:
        self._observers: list[tuple[Observer, frozenset[EventKind] | None]] = []

    def subscribe(self, observer: Observer, kinds: Iterable[EventKind] | None = None) -> Callable[[], None]:
        entry = (observer, frozenset(kinds) if kinds is not None else None)
        self._observers.append(entry)

        def unsubscribe() -> None:
            if entry in self._observers:
                self._observers.remove(entry)

        return unsubscribe

    def emit(
        self,
        kind: EventKind,
        robot_id: str,
        status: MotionStatus | None = None,
        **payload: Any,
    ) -> MotionEvent:
        event = MotionEvent(kind=kind, robot_id=robot_id, status=status, payload=payload)
        for observer, kinds in list(self._observers):
            if kinds is not None and kind not in kinds:
                continue
            try:
                observer(event)
            except Exception:
                logger.exception("Observer %r failed on %s", observer, kind)
        return event

    def __len__(self) -> int:
        return len(self._observers)


__all__ = ["EventKind", "MotionEvent", "Observer", "EventChannel"]
