"""Replay recorded trajectories against host time.

Playback goes through up to three phases before it is done: an optional
alignment animation to the first frame, a short settling pause, then frame
playback proper where each tick writes the latest frame whose timestamp has
been reached at the session's speed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import StrEnum

import numpy as np

from armmotion.control.animator import AnimationTask, JointAnimator
from armmotion.control.scheduler import CancellationToken, MotionSlot, TickResult
from armmotion.core.errors import MotionStatus, TrajectoryEmptyOrMalformed
from armmotion.core.events import EventChannel, EventKind
from armmotion.core.types import JointValues, TimeMs
from armmotion.model.chain import KinematicChain, joint_values_close
from armmotion.trajectory.model import Trajectory, TrajectoryFrame

logger = logging.getLogger(__name__)

ALIGN_TOLERANCE = 1e-3  # rad
SETTLE_MS = 200.0

FrameCallback = Callable[[TrajectoryFrame, float], None]
CompleteCallback = Callable[[], None]


class PlaybackPhase(StrEnum):
    ALIGNING = "aligning"
    SETTLING = "settling"
    PLAYING = "playing"
    DONE = "done"


class PlaybackSession:
    def __init__(
        self,
        player: "TrajectoryPlayer",
        chain: KinematicChain,
        trajectory: Trajectory,
        speed: float = 1.0,
        loop: bool = False,
        on_frame: FrameCallback | None = None,
        on_complete: CompleteCallback | None = None,
        interpolate: bool = False,
    ) -> None:
        frames = trajectory.valid_frames()
        if not frames:
            raise TrajectoryEmptyOrMalformed(f"trajectory {trajectory.name!r} has no frames with joint data")
        if not speed > 0.0:
            raise ValueError(f"playback speed must be positive, got {speed}")
        self.player = player
        self.chain = chain
        self.trajectory = trajectory
        self.speed = float(speed)
        self.loop = loop
        self.on_frame = on_frame
        self.on_complete = on_complete
        self.interpolate = interpolate
        self.token = CancellationToken()
        self.phase = PlaybackPhase.PLAYING
        self.start_time: TimeMs | None = None
        self.cursor = -1
        self.loops = 0
        self.align_task: AnimationTask | None = None
        self.settle_until: TimeMs = 0.0
        self.frames = frames
        self.times = np.array([f.timestamp for f in frames], dtype=float)

    @property
    def robot_id(self) -> str:
        return self.chain.robot_id

    @property
    def active(self) -> bool:
        return self.phase is not PlaybackPhase.DONE and not self.token.cancelled

    def elapsed(self, now: TimeMs) -> float:
        """Trajectory time reached at ``now``, in ms."""
        if self.start_time is None:
            return 0.0
        return max(0.0, now - self.start_time) * self.speed

    def tick(self, now: TimeMs) -> TickResult:
        return self.player.advance(self, now)

    def cancel(self, reason: str = "") -> None:
        if not self.active:
            return
        self.token.cancel(reason)
        if self.align_task is not None:
            self.align_task.cancel(reason)
        self.phase = PlaybackPhase.DONE
        logger.info("Playback of %r on %s stopped", self.trajectory.name, self.robot_id)
        self.player.emit(EventKind.PLAYBACK_STOPPED, self, MotionStatus.OK, reason=reason)

    def __repr__(self) -> str:
        return f"PlaybackSession({self.trajectory.name!r}, phase={self.phase}, cursor={self.cursor})"


class TrajectoryPlayer:
    def __init__(
        self,
        animator: JointAnimator | None = None,
        events: EventChannel | None = None,
        align_tolerance: float = ALIGN_TOLERANCE,
        settle_ms: float = SETTLE_MS,
        align: bool = True,
    ) -> None:
        self.animator = animator or JointAnimator(events=events)
        self.events = events if events is not None else self.animator.events
        self.align_tolerance = align_tolerance
        self.settle_ms = settle_ms
        self.align = align

    @property
    def slot(self) -> MotionSlot:
        return self.animator.slot

    def emit(self, kind: EventKind, session: PlaybackSession, status: MotionStatus | None = None, **payload: object) -> None:
        if self.events is not None:
            self.events.emit(kind, session.robot_id, status, trajectory=session.trajectory.name, **payload)

    def play(
        self,
        chain: KinematicChain,
        trajectory: Trajectory,
        speed: float = 1.0,
        loop: bool = False,
        on_frame: FrameCallback | None = None,
        on_complete: CompleteCallback | None = None,
        interpolate: bool = False,
    ) -> PlaybackSession:
        """Start playback in the chain's motion slot, replacing whatever runs there.

        Raises :class:`TrajectoryEmptyOrMalformed` before touching the chain when
        the trajectory has no frame with joint data.
        """
        session = PlaybackSession(self, chain, trajectory, speed, loop, on_frame, on_complete, interpolate)
        first = session.frames[0].joint_values
        current = chain.joint_values()
        if self.align and not joint_values_close(current, first, self.align_tolerance):
            session.align_task = self.animator.create_task(chain, current, first)
            session.phase = PlaybackPhase.ALIGNING
            logger.debug("Aligning %s to the first frame of %r", chain.robot_id, trajectory.name)
        self.slot.start(session)
        logger.info(
            "Playing %r on %s (%d frames, %.0f ms, speed %.2f%s)",
            trajectory.name, chain.robot_id, len(session.frames), trajectory.duration, speed,
            ", loop" if loop else "",
        )
        self.emit(EventKind.PLAYBACK_STARTED, session, speed=speed, loop=loop)
        return session

    def stop(self, session: PlaybackSession | None = None) -> bool:
        if session is None or self.slot.task is session:
            return self.slot.cancel("stopped")
        if session.active:
            session.cancel("stopped")
            return True
        return False

    def tick(self, now: TimeMs | None = None) -> TickResult | None:
        return self.slot.tick(self.animator.clock() if now is None else now)

    def progress(self, session: PlaybackSession, now: TimeMs) -> float:
        if session.phase is PlaybackPhase.DONE:
            return 1.0
        if session.phase is not PlaybackPhase.PLAYING or session.start_time is None:
            return 0.0
        duration = session.trajectory.duration
        if duration <= 0.0:
            return 1.0
        return min(1.0, session.elapsed(now) / duration)

    # ---- stepping ----
    def advance(self, session: PlaybackSession, now: TimeMs) -> TickResult:
        if session.token.cancelled or session.phase is PlaybackPhase.DONE:
            return TickResult.CANCELLED if session.token.cancelled else TickResult.DONE

        if session.phase is PlaybackPhase.ALIGNING:
            assert session.align_task is not None
            if session.align_task.tick(now) is not TickResult.DONE:
                return TickResult.CONTINUE
            session.settle_until = now + self.settle_ms
            session.phase = PlaybackPhase.SETTLING
            return TickResult.CONTINUE

        if session.phase is PlaybackPhase.SETTLING:
            if now < session.settle_until:
                return TickResult.CONTINUE
            session.phase = PlaybackPhase.PLAYING

        if session.start_time is None:
            session.start_time = now
        elapsed = session.elapsed(now)
        duration = session.trajectory.duration
        last = len(session.frames) - 1

        if elapsed >= duration:
            if session.cursor != last or session.interpolate:
                self._apply(session, last, session.frames[last].joint_values, elapsed)
            if session.loop and duration > 0.0:
                session.start_time = now
                session.cursor = -1
                session.loops += 1
                logger.debug("Playback of %r looped (%d)", session.trajectory.name, session.loops)
                return TickResult.CONTINUE
            return self._complete(session)

        idx = max(0, int(np.searchsorted(session.times, elapsed, side="right")) - 1)
        if session.interpolate and idx < last:
            values = self._interpolated(session, idx, elapsed)
            self._apply(session, idx, values, elapsed, notify=idx != session.cursor)
        elif idx != session.cursor:
            self._apply(session, idx, session.frames[idx].joint_values, elapsed)
        return TickResult.CONTINUE

    def _interpolated(self, session: PlaybackSession, idx: int, elapsed: float) -> JointValues:
        a, b = session.frames[idx], session.frames[idx + 1]
        span = b.timestamp - a.timestamp
        t = 0.0 if span <= 0.0 else min(1.0, (elapsed - a.timestamp) / span)
        return {
            name: float(v) + (float(b.joint_values.get(name, v)) - float(v)) * t
            for name, v in a.joint_values.items()
        }

    def _apply(
        self,
        session: PlaybackSession,
        idx: int,
        values: Mapping[str, float],
        elapsed: float,
        notify: bool = True,
    ) -> None:
        session.chain.set_joint_values(values)
        session.cursor = idx
        if not notify:
            return
        duration = session.trajectory.duration
        progress = 1.0 if duration <= 0.0 else min(1.0, elapsed / duration)
        frame = session.frames[idx]
        if session.on_frame is not None:
            try:
                session.on_frame(frame, progress)
            except Exception:
                logger.exception("on_frame callback failed during playback of %r", session.trajectory.name)
        self.emit(EventKind.FRAME_PLAYED, session, index=idx, timestamp=frame.timestamp, progress=progress)

    def _complete(self, session: PlaybackSession) -> TickResult:
        session.phase = PlaybackPhase.DONE
        logger.info("Playback of %r on %s complete", session.trajectory.name, session.robot_id)
        if session.on_complete is not None:
            try:
                session.on_complete()
            except Exception:
                logger.exception("on_complete callback failed for %r", session.trajectory.name)
        self.emit(EventKind.PLAYBACK_COMPLETED, session, MotionStatus.OK)
        return TickResult.DONE


__all__ = ["ALIGN_TOLERANCE", "PlaybackPhase", "PlaybackSession", "SETTLE_MS", "TrajectoryPlayer"]
