"""Sample a chain's joint state into a trajectory while the host ticks."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from armmotion.control.scheduler import monotonic_ms
from armmotion.core.events import EventChannel, EventKind
from armmotion.core.types import TimeMs
from armmotion.model.chain import KinematicChain
from armmotion.solvers.end_effector import EndEffectorResolver, ToolOffset
from armmotion.trajectory.model import Trajectory, TrajectoryFrame, build_trajectory, sample_from_pose

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL_MS = 100.0
MAX_FRAMES = 30_000


@dataclass
class RecordingSession:
    name: str
    chain: KinematicChain
    sample_interval: float
    start_time: TimeMs
    tool: ToolOffset | None = None
    frames: list[TrajectoryFrame] = field(default_factory=list)
    next_due: TimeMs = 0.0
    active: bool = True
    dropped: int = 0
    trajectory: Trajectory | None = None

    @property
    def robot_id(self) -> str:
        return self.chain.robot_id

    @property
    def last_timestamp(self) -> float:
        return self.frames[-1].timestamp if self.frames else 0.0


class TrajectoryRecorder:
    """Read-only observer of a chain; never writes joint values."""

    def __init__(
        self,
        resolver: EndEffectorResolver | None = None,
        events: EventChannel | None = None,
        clock: Callable[[], TimeMs] = monotonic_ms,
        max_frames: int = MAX_FRAMES,
    ) -> None:
        self.resolver = resolver or EndEffectorResolver()
        self.events = events
        self.clock = clock
        self.max_frames = max_frames

    def _emit(self, kind: EventKind, session: RecordingSession, **payload: object) -> None:
        if self.events is not None:
            self.events.emit(kind, session.robot_id, **payload)

    def start(
        self,
        name: str,
        chain: KinematicChain,
        sample_interval_ms: float = DEFAULT_SAMPLE_INTERVAL_MS,
        now: TimeMs | None = None,
        tool: ToolOffset | None = None,
    ) -> RecordingSession:
        if not name:
            raise ValueError("a recording needs a name")
        if not sample_interval_ms > 0.0:
            raise ValueError(f"sample interval must be positive, got {sample_interval_ms}")
        now = self.clock() if now is None else now
        session = RecordingSession(
            name=name,
            chain=chain,
            sample_interval=float(sample_interval_ms),
            start_time=now,
            tool=tool,
            next_due=now + sample_interval_ms,
        )
        logger.info("Recording %r on %s every %.0f ms", name, chain.robot_id, sample_interval_ms)
        self._emit(EventKind.RECORDING_STARTED, session, name=name, interval=session.sample_interval)
        self._append(session, chain.joint_values(), 0.0)
        return session

    def _append(self, session: RecordingSession, values: Mapping[str, float], timestamp: float) -> TrajectoryFrame | None:
        if not values:
            logger.debug("No joint data on %s at %.0f ms; frame skipped", session.robot_id, timestamp)
            return None
        if len(session.frames) >= self.max_frames:
            session.dropped += 1
            if session.dropped == 1:
                logger.warning("Recording %r reached %d frames; further samples are dropped", session.name, self.max_frames)
            return None
        timestamp = max(float(timestamp), session.last_timestamp)
        sample = None
        frame_ee = self.resolver.resolve(session.chain, session.tool)
        if frame_ee is not None:
            sample = sample_from_pose(timestamp, frame_ee.position, frame_ee.orientation)
        frame = TrajectoryFrame(timestamp=timestamp, joint_values=dict(values), end_effector=sample)
        session.frames.append(frame)
        self._emit(EventKind.FRAME_RECORDED, session, index=len(session.frames) - 1, timestamp=timestamp)
        return frame

    def tick(self, session: RecordingSession, now: TimeMs | None = None) -> TrajectoryFrame | None:
        """Append at most one frame once the next sample time has passed."""
        if not session.active:
            return None
        now = self.clock() if now is None else now
        if now < session.next_due:
            return None
        while session.next_due <= now:
            session.next_due += session.sample_interval
        return self._append(session, session.chain.joint_values(), now - session.start_time)

    def record_frame(
        self,
        session: RecordingSession,
        values: Mapping[str, float] | None = None,
        now: TimeMs | None = None,
    ) -> TrajectoryFrame | None:
        """Add a keyframe outside the sampling cadence."""
        if not session.active:
            return None
        now = self.clock() if now is None else now
        snapshot = session.chain.joint_values() if values is None else values
        return self._append(session, snapshot, now - session.start_time)

    def stop(self, session: RecordingSession, now: TimeMs | None = None) -> Trajectory:
        if not session.active and session.trajectory is not None:
            return session.trajectory
        now = self.clock() if now is None else now
        session.active = False
        duration = max(now - session.start_time, session.last_timestamp)
        trajectory = build_trajectory(session.name, session.robot_id, session.frames, duration)
        session.trajectory = trajectory
        logger.info(
            "Stopped recording %r on %s: %d frames over %.0f ms",
            session.name, session.robot_id, trajectory.frame_count, trajectory.duration,
        )
        self._emit(EventKind.RECORDING_STOPPED, session, name=session.name, frames=trajectory.frame_count,
                   duration=trajectory.duration)
        return trajectory


__all__ = ["DEFAULT_SAMPLE_INTERVAL_MS", "MAX_FRAMES", "RecordingSession", "TrajectoryRecorder"]
