"""Tick-driven joint animation between two joint-value sets."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Future

from armmotion.control.profiles import (
    DEFAULT_PROFILE,
    EASINGS,
    RATE_LIMITED,
    JointConstraints,
    SynchronizedPlan,
    SynchronizedProfile,
    check_profile,
)
from armmotion.control.scheduler import CancellationToken, MotionSlot, TickResult, monotonic_ms
from armmotion.core.errors import AnimationCancelled, MotionStatus
from armmotion.core.events import EventChannel, EventKind
from armmotion.core.types import JointValues, TimeMs
from armmotion.model.chain import KinematicChain

logger = logging.getLogger(__name__)

MIN_SUGGESTED_DURATION_MS = 800.0


class AnimationTask:
    """One interpolation from ``start`` to ``goal`` over ``duration`` ms.

    ``result`` resolves to ``True`` when the goal is written, or fails with
    :class:`AnimationCancelled` when the task is stopped first. A cancelled
    task leaves the chain at whatever it wrote last.
    """

    def __init__(
        self,
        chain: KinematicChain,
        start: Mapping[str, float],
        goal: Mapping[str, float],
        duration: float,
        profile: str = DEFAULT_PROFILE,
        *,
        start_time: TimeMs | None = None,
        constraints: JointConstraints | None = None,
        events: EventChannel | None = None,
    ) -> None:
        if not duration > 0.0:
            raise ValueError(f"animation duration must be positive, got {duration}")
        self.chain = chain
        self.goal: JointValues = {k: float(v) for k, v in goal.items()}
        self.start: JointValues = {k: float(start.get(k, v)) for k, v in self.goal.items()}
        self.profile = check_profile(profile)
        self.start_time = start_time
        self.events = events
        self.token = CancellationToken()
        self.result: Future[bool] = Future()
        self.progress = 0.0
        self.last_values: JointValues = {}

        self._plan: SynchronizedPlan | None = None
        if self.profile in RATE_LIMITED:
            sync = SynchronizedProfile.for_chain(self.profile, chain, constraints)
            self._plan = sync.plan(self.start, self.goal)
            duration = max(duration, self._plan.total_time * 1000.0)
        self.duration = float(duration)

    @property
    def robot_id(self) -> str:
        return self.chain.robot_id

    @property
    def done(self) -> bool:
        return self.result.done()

    def values_at(self, progress: float) -> JointValues:
        p = min(1.0, max(0.0, progress))
        if p >= 1.0:
            return dict(self.goal)
        if self._plan is not None:
            return self._plan.values_at(p * self._plan.total_time)
        eased = EASINGS[self.profile](p)
        return {name: s + (self.goal[name] - s) * eased for name, s in self.start.items()}

    def _emit(self, kind: EventKind, status: MotionStatus | None = None, **payload: object) -> None:
        if self.events is not None:
            self.events.emit(kind, self.robot_id, status, **payload)

    def tick(self, now: TimeMs) -> TickResult:
        if self.token.cancelled:
            return TickResult.CANCELLED
        if self.start_time is None:
            self.start_time = now
        elapsed = max(0.0, now - self.start_time)
        self.progress = min(1.0, elapsed / self.duration)
        values = self.values_at(self.progress)
        self.chain.set_joint_values(values)
        self.last_values = values
        self._emit(EventKind.ANIMATION_PROGRESS, progress=self.progress, values=dict(values))
        if self.progress < 1.0:
            return TickResult.CONTINUE
        logger.debug("Animation on %s finished after %.0f ms", self.robot_id, elapsed)
        self.result.set_result(True)
        self._emit(EventKind.ANIMATION_COMPLETED, MotionStatus.OK)
        return TickResult.DONE

    def cancel(self, reason: str = "") -> None:
        if self.result.done():
            return
        self.token.cancel(reason)
        self.result.set_exception(AnimationCancelled(f"animation on {self.robot_id} cancelled ({reason or 'stop'})"))
        logger.debug("Animation on %s cancelled at progress %.3f", self.robot_id, self.progress)
        self._emit(EventKind.ANIMATION_CANCELLED, MotionStatus.ANIMATION_CANCELLED, progress=self.progress)

    def __repr__(self) -> str:
        return f"AnimationTask({self.robot_id!r}, profile={self.profile!r}, duration={self.duration:.0f}, progress={self.progress:.3f})"


class JointAnimator:
    """Starts animations in a chain's motion slot and advances them on ``tick``."""

    def __init__(
        self,
        slot: MotionSlot | None = None,
        clock: Callable[[], TimeMs] = monotonic_ms,
        events: EventChannel | None = None,
        default_profile: str = DEFAULT_PROFILE,
        constraints: JointConstraints | None = None,
        min_duration_ms: float = MIN_SUGGESTED_DURATION_MS,
    ) -> None:
        self.slot = slot or MotionSlot("animator")
        self.clock = clock
        self.events = events
        self.default_profile = check_profile(default_profile)
        self.constraints = constraints or JointConstraints()
        self.min_duration_ms = min_duration_ms

    def suggest_duration(self, chain: KinematicChain, start: Mapping[str, float], goal: Mapping[str, float]) -> float:
        """Slowest joint's travel time at its velocity cap, in ms, never below the floor."""
        longest = 0.0
        for name, target in goal.items():
            if not chain.has_joint(name):
                continue
            vmax = chain.joint(name).max_velocity or self.constraints.max_velocity
            longest = max(longest, abs(float(target) - float(start.get(name, target))) / vmax)
        return max(longest * 1000.0, self.min_duration_ms)

    def create_task(
        self,
        chain: KinematicChain,
        start: Mapping[str, float],
        goal: Mapping[str, float],
        duration_ms: float | None = None,
        profile: str | None = None,
        start_time: TimeMs | None = None,
    ) -> AnimationTask:
        """Build a task without scheduling it; the caller ticks it."""
        if duration_ms is None:
            duration_ms = self.suggest_duration(chain, start, goal)
        return AnimationTask(
            chain,
            start,
            goal,
            duration_ms,
            profile or self.default_profile,
            start_time=start_time,
            constraints=self.constraints,
            events=self.events,
        )

    def animate(
        self,
        chain: KinematicChain,
        start: Mapping[str, float],
        goal: Mapping[str, float],
        duration_ms: float | None = None,
        profile: str | None = None,
        start_time: TimeMs | None = None,
    ) -> AnimationTask:
        task = self.create_task(chain, start, goal, duration_ms, profile, start_time)
        self.slot.start(task)
        logger.info("Animating %d joints on %s over %.0f ms (%s)", len(task.goal), chain.robot_id, task.duration, task.profile)
        if self.events is not None:
            self.events.emit(EventKind.ANIMATION_STARTED, chain.robot_id, duration=task.duration, profile=task.profile)
        return task

    def tick(self, now: TimeMs | None = None) -> TickResult | None:
        return self.slot.tick(self.clock() if now is None else now)

    def stop(self) -> bool:
        return self.slot.cancel("stopped")


__all__ = ["AnimationTask", "JointAnimator", "MIN_SUGGESTED_DURATION_MS"]
