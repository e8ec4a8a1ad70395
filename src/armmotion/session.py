"""Per-chain session tying the motion components together.

A :class:`RobotSession` owns one chain and everything that acts on it: the
end-effector resolver, the IK solver, the animator and player (sharing one
motion slot so only one of them writes joints at a time), the recorder and an
event channel for the host UI. Nothing raised by the motion core escapes the
session's public methods; failures are logged, reported as ``STATUS`` events
and surfaced as ``False``/``None`` return values.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from armmotion.control.animator import AnimationTask, JointAnimator
from armmotion.control.scheduler import MotionSlot, TickResult, monotonic_ms
from armmotion.core.config import MotionConfig
from armmotion.core.errors import MotionError, MotionStatus, NoEndEffectorFound, RobotNotReady
from armmotion.core.events import EventChannel, EventKind
from armmotion.core.types import JointValues, TimeMs
from armmotion.model.chain import KinematicChain
from armmotion.solvers.end_effector import EndEffectorFrame, EndEffectorResolver, ToolOffset
from armmotion.solvers.ik_solver import IKOptions, IKSolution, IKSolver, IKTarget
from armmotion.trajectory.model import Trajectory
from armmotion.trajectory.player import CompleteCallback, FrameCallback, PlaybackSession, TrajectoryPlayer
from armmotion.trajectory.recorder import RecordingSession, TrajectoryRecorder
from armmotion.trajectory.store import TrajectoryStore

logger = logging.getLogger(__name__)


class RobotSession:
    def __init__(
        self,
        chain: KinematicChain | None,
        config: MotionConfig | None = None,
        *,
        store: TrajectoryStore | None = None,
        clock: Callable[[], TimeMs] = monotonic_ms,
        events: EventChannel | None = None,
    ) -> None:
        self.chain = chain
        self.config = config or MotionConfig()
        self.store = store
        self.clock = clock
        self.events = events or EventChannel()
        self.tool: ToolOffset | None = None
        self.resolver = EndEffectorResolver()
        self.solver = IKSolver(self.resolver, self.config.ik)
        anim = self.config.animation
        self.slot = MotionSlot(f"{self.robot_id}:motion")
        self.animator = JointAnimator(
            self.slot,
            clock=clock,
            events=self.events,
            default_profile=anim.profile,
            constraints=anim.constraints(),
            min_duration_ms=anim.min_duration_ms,
        )
        pb = self.config.playback
        self.player = TrajectoryPlayer(
            self.animator,
            self.events,
            align_tolerance=pb.align_tolerance,
            settle_ms=pb.settle_ms,
            align=pb.align,
        )
        self.recorder = TrajectoryRecorder(
            self.resolver, self.events, clock=clock, max_frames=self.config.recording.max_frames
        )
        self.recording: RecordingSession | None = None
        self.last_trajectory: Trajectory | None = None

    @property
    def robot_id(self) -> str:
        return self.chain.robot_id if self.chain is not None else "<none>"

    def subscribe(self, observer: Callable[..., None], kinds: Any = None) -> Callable[[], None]:
        return self.events.subscribe(observer, kinds)

    def _require_chain(self) -> KinematicChain:
        if self.chain is None:
            raise RobotNotReady("no chain loaded")
        return self.chain

    def _report(self, exc: MotionError) -> None:
        if exc.status is MotionStatus.ANIMATION_CANCELLED:
            logger.info("%s: %s", self.robot_id, exc)
        else:
            logger.warning("%s: %s (%s)", self.robot_id, exc, exc.status)
        self.events.emit(EventKind.STATUS, self.robot_id, exc.status, message=str(exc))

    # ---- tool attachment ----
    def attach_tool(self, tool: ToolOffset) -> None:
        self.tool = tool
        self.events.emit(EventKind.TOOL_ATTACHED, self.robot_id, tool=tool.to_dict())

    def update_tool(self, tool: ToolOffset) -> None:
        self.tool = tool
        self.events.emit(EventKind.TOOL_TRANSFORMED, self.robot_id, tool=tool.to_dict())

    def detach_tool(self) -> bool:
        if self.tool is None:
            return False
        self.tool = None
        self.events.emit(EventKind.TOOL_DETACHED, self.robot_id)
        return True

    # ---- state ----
    def end_effector(self) -> EndEffectorFrame | None:
        frame = self.resolver.resolve(self.chain, self.tool)
        if frame is None:
            self._report(NoEndEffectorFound(f"{self.robot_id}: no end-effector link"))
        return frame

    def joint_values(self) -> JointValues:
        return self.chain.joint_values() if self.chain is not None else {}

    def jog(self, values: Mapping[str, float]) -> bool:
        """Manual joint write; stops any animation or playback first."""
        try:
            chain = self._require_chain()
        except MotionError as exc:
            self._report(exc)
            return False
        self.slot.cancel("jog")
        changed = chain.set_joint_values(values)
        if changed:
            self.events.emit(EventKind.JOINTS_CHANGED, self.robot_id, values=chain.joint_values())
        return changed

    # ---- inverse kinematics ----
    def solve(
        self,
        position: Any,
        orientation: Any = None,
        options: IKOptions | None = None,
    ) -> IKSolution | None:
        self.events.emit(EventKind.SOLVE_STARTED, self.robot_id)
        try:
            target = IKTarget.create(position, orientation)
            solution = self.solver.solve(self._require_chain(), target, options, self.tool)
            if solution is None:
                raise NoEndEffectorFound(f"{self.robot_id}: no end-effector link")
        except MotionError as exc:
            self._report(exc)
            self.events.emit(EventKind.SOLVE_FAILED, self.robot_id, exc.status, message=str(exc))
            return None
        kind = EventKind.SOLVE_SUCCEEDED if solution.converged else EventKind.SOLVE_FAILED
        self.events.emit(
            kind, self.robot_id, solution.status,
            distance=solution.distance, iterations=solution.iterations, values=solution.as_dict(),
        )
        return solution

    def animate_to(
        self,
        goal: Mapping[str, float],
        duration_ms: float | None = None,
        profile: str | None = None,
    ) -> AnimationTask | None:
        try:
            chain = self._require_chain()
            duration = duration_ms if duration_ms is not None else self.config.animation.duration_ms
            return self.animator.animate(chain, chain.joint_values(), goal, duration, profile)
        except MotionError as exc:
            self._report(exc)
            return None

    def move_to(
        self,
        position: Any,
        orientation: Any = None,
        duration_ms: float | None = None,
        profile: str | None = None,
    ) -> AnimationTask | None:
        """Solve for ``position`` and animate toward the result, converged or not."""
        solution = self.solve(position, orientation)
        if solution is None:
            return None
        return self.animate_to(solution, duration_ms, profile)

    # ---- recording ----
    def start_recording(
        self, name: str, sample_interval_ms: float | None = None, now: TimeMs | None = None
    ) -> RecordingSession | None:
        try:
            chain = self._require_chain()
        except MotionError as exc:
            self._report(exc)
            return None
        if self.recording is not None and self.recording.active:
            logger.warning("%s: already recording %r", self.robot_id, self.recording.name)
            return None
        interval = sample_interval_ms or self.config.recording.sample_interval_ms
        self.recording = self.recorder.start(name, chain, interval, now=now, tool=self.tool)
        return self.recording

    def stop_recording(self, now: TimeMs | None = None) -> Trajectory | None:
        session = self.recording
        if session is None:
            return None
        trajectory = self.recorder.stop(session, now)
        self.recording = None
        self.last_trajectory = trajectory
        if self.store is not None:
            try:
                self.store.save(trajectory)
            except MotionError as exc:
                self._report(exc)
        return trajectory

    # ---- playback ----
    def play(
        self,
        trajectory: Trajectory,
        speed: float | None = None,
        loop: bool | None = None,
        on_frame: FrameCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> PlaybackSession | None:
        pb = self.config.playback
        try:
            return self.player.play(
                self._require_chain(),
                trajectory,
                speed=pb.speed if speed is None else speed,
                loop=pb.loop if loop is None else loop,
                on_frame=on_frame,
                on_complete=on_complete,
                interpolate=pb.interpolate,
            )
        except MotionError as exc:
            self._report(exc)
            return None

    def play_stored(self, trajectory_id: str, **kwargs: Any) -> PlaybackSession | None:
        if self.store is None:
            logger.warning("%s: no trajectory store configured", self.robot_id)
            return None
        try:
            trajectory = self.store.load(trajectory_id)
        except MotionError as exc:
            self._report(exc)
            return None
        return self.play(trajectory, **kwargs)

    # ---- stepping ----
    def stop(self) -> bool:
        """Cancel the animation or playback in flight, leaving joints where they are."""
        return self.slot.cancel("stopped")

    @property
    def busy(self) -> bool:
        return self.slot.active

    def tick(self, now: TimeMs | None = None) -> TickResult | None:
        now = self.clock() if now is None else now
        result = self.slot.tick(now)
        if self.recording is not None and self.recording.active:
            self.recorder.tick(self.recording, now)
        return result


__all__ = ["RobotSession"]
