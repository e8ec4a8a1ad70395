"""Status taxonomy and exception types for the motion core.

Every failure the core can report maps to a :class:`MotionStatus` code. The
codes are plain strings so UI layers can display or match on them without
importing this module.
"""

from __future__ import annotations

from enum import StrEnum


class MotionStatus(StrEnum):
    OK = "ok"
    SOLVE_SUCCEEDED = "solve-succeeded"
    SOLVE_NOT_CONVERGED = "solve-not-converged"
    NO_END_EFFECTOR_FOUND = "no-end-effector-found"
    INVALID_TARGET = "invalid-target"
    ROBOT_NOT_READY = "robot-not-ready"
    ANIMATION_CANCELLED = "animation-cancelled"
    TRAJECTORY_EMPTY_OR_MALFORMED = "trajectory-empty-or-malformed"
    TRAJECTORY_PERSISTENCE_FAILURE = "trajectory-persistence-failure"


class MotionError(Exception):
    """Base class for every error the motion core raises on purpose."""

    status: MotionStatus = MotionStatus.OK

    def __init__(self, message: str = "", *, status: MotionStatus | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if status is not None:
            self.status = status


class NoEndEffectorFound(MotionError):
    status = MotionStatus.NO_END_EFFECTOR_FOUND


class SolveNotConverged(MotionError):
    status = MotionStatus.SOLVE_NOT_CONVERGED


class InvalidTarget(MotionError, ValueError):
    status = MotionStatus.INVALID_TARGET


class RobotNotReady(MotionError):
    status = MotionStatus.ROBOT_NOT_READY


class AnimationCancelled(MotionError):
    """Outcome of an explicit stop; callers should not treat it as a failure."""

    status = MotionStatus.ANIMATION_CANCELLED


class TrajectoryEmptyOrMalformed(MotionError, ValueError):
    status = MotionStatus.TRAJECTORY_EMPTY_OR_MALFORMED


class TrajectoryPersistenceFailure(MotionError):
    status = MotionStatus.TRAJECTORY_PERSISTENCE_FAILURE


__all__ = [
    "MotionStatus",
    "MotionError",
    "NoEndEffectorFound",
    "SolveNotConverged",
    "InvalidTarget",
    "RobotNotReady",
    "AnimationCancelled",
    "TrajectoryEmptyOrMalformed",
    "TrajectoryPersistenceFailure",
]
