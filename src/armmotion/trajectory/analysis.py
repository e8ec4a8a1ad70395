"""Summary statistics for recorded trajectories."""

from __future__ import annotations

from typing import Any, NamedTuple

import numpy as np
from numpy.typing import NDArray

from armmotion.trajectory.model import Trajectory


class JointStats(NamedTuple):
    min: float
    max: float
    range: float
    final: float


class EndEffectorStats(NamedTuple):
    total_distance: float  # m
    max_velocity: float  # m/s
    average_velocity: float  # m/s
    bounds_min: tuple[float, float, float] | None
    bounds_max: tuple[float, float, float] | None


class TrajectoryAnalysis(NamedTuple):
    name: str
    robot_id: str
    frame_count: int
    duration: float
    joints: dict[str, JointStats]
    end_effector: EndEffectorStats

    def to_dict(self) -> dict[str, Any]:
        ee = self.end_effector
        return {
            "name": self.name,
            "robotId": self.robot_id,
            "frameCount": self.frame_count,
            "duration": self.duration,
            "jointStats": {k: v._asdict() for k, v in self.joints.items()},
            "endEffectorStats": {
                "totalDistance": ee.total_distance,
                "maxVelocity": ee.max_velocity,
                "averageVelocity": ee.average_velocity,
                "bounds": None if ee.bounds_min is None else {"min": ee.bounds_min, "max": ee.bounds_max},
            },
        }


def joint_stats(trajectory: Trajectory) -> dict[str, JointStats]:
    out: dict[str, JointStats] = {}
    for name in trajectory.joint_names:
        values = np.array([f.joint_values[name] for f in trajectory.frames if name in f.joint_values], dtype=float)
        if values.size == 0:
            continue
        lo, hi = float(values.min()), float(values.max())
        out[name] = JointStats(min=lo, max=hi, range=hi - lo, final=float(values[-1]))
    return out


def path_positions(trajectory: Trajectory) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """End-effector path as ``(timestamps_ms, positions)`` arrays of shape (N,) and (N, 3)."""
    path = trajectory.end_effector_path
    times = np.array([s.timestamp for s in path], dtype=float)
    points = np.array([s.position for s in path], dtype=float).reshape(-1, 3)
    return times, points


def end_effector_stats(trajectory: Trajectory) -> EndEffectorStats:
    times, points = path_positions(trajectory)
    if len(points) == 0:
        return EndEffectorStats(0.0, 0.0, 0.0, None, None)
    lo = tuple(float(v) for v in points.min(axis=0))
    hi = tuple(float(v) for v in points.max(axis=0))
    if len(points) < 2:
        return EndEffectorStats(0.0, 0.0, 0.0, lo, hi)  # type: ignore[arg-type]
    steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
    dt = np.diff(times) / 1000.0
    moving = dt > 0.0
    velocities = steps[moving] / dt[moving]
    return EndEffectorStats(
        total_distance=float(steps.sum()),
        max_velocity=float(velocities.max()) if velocities.size else 0.0,
        average_velocity=float(velocities.mean()) if velocities.size else 0.0,
        bounds_min=lo,  # type: ignore[arg-type]
        bounds_max=hi,  # type: ignore[arg-type]
    )


def analyze_trajectory(trajectory: Trajectory) -> TrajectoryAnalysis:
    return TrajectoryAnalysis(
        name=trajectory.name,
        robot_id=trajectory.robot_id,
        frame_count=trajectory.frame_count,
        duration=trajectory.duration,
        joints=joint_stats(trajectory),
        end_effector=end_effector_stats(trajectory),
    )


__all__ = [
    "EndEffectorStats",
    "JointStats",
    "TrajectoryAnalysis",
    "analyze_trajectory",
    "end_effector_stats",
    "joint_stats",
    "path_positions",
]
