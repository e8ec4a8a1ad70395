"""
Inverse kinematics by cyclic coordinate descent (CCD).

Design goals
------------
- Work on any chain the resolver can find a tip for, not one fixed arm
- Bounded, synchronous solve: at most ``max_iterations`` passes over the joints
- Best effort: the final joint map is returned whether or not it converged,
  and callers read ``IKSolution.converged`` / ``distance`` to decide

Notes
-----
Each pass walks the movable joints on the path from the end-effector link
back toward the base; joints on side branches are never touched. A
revolute joint turns by the signed angle between "joint to end effector" and
"joint to target" measured in the plane normal to its axis; a prismatic joint
slides by the position error projected on its axis. The step is scaled by the
damping factor (boosted by 1.5 far from the target, taken in full within
0.1 m when ``adaptive_damping`` is on) and clamped to ``max_step_angle``
before the joint's own limits are applied, so one pass never moves a joint
further than that.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple

import numpy as np

from armmotion.core.errors import InvalidTarget, MotionStatus, RobotNotReady
from armmotion.core.types import JointValues, Quaternion, Vector3
from armmotion.model.chain import JointType, KinematicChain
from armmotion.model.transforms import (
    as_quaternion,
    as_vector3,
    quaternion_matrix,
    rotation_angle,
    rotation_error_vector,
    rotation_part,
)
from armmotion.solvers.end_effector import EndEffectorFrame, EndEffectorResolver, ToolOffset

logger = logging.getLogger(__name__)

# Vectors shorter than this give no usable direction for a joint.
_MIN_LEVER = 1e-3
# Beyond this distance the per-joint step is boosted and stalls are detected;
# inside it adaptive damping takes the full CCD step.
_FAR_DISTANCE = 0.1


class IKOptions(NamedTuple):
    max_iterations: int = 10
    tolerance: float = 0.01  # metres
    damping_factor: float = 0.5
    max_step_angle: float = 0.2  # rad (metres for prismatic joints)
    orientation_weight: float = 0.0  # 0 ignores target orientation
    orientation_tolerance: float = 0.05  # rad
    adaptive_damping: bool = True
    restore: bool = True


@dataclass(frozen=True, eq=False)
class IKTarget:
    position: Vector3
    orientation: Quaternion | None = None

    @classmethod
    def create(cls, position: Any, orientation: Any = None) -> "IKTarget":
        """Validate and normalise a target.

        ``position`` may be a 3-sequence or a mapping with ``x``, ``y``, ``z``;
        ``orientation`` a quaternion ``(x, y, z, w)`` sequence or mapping.
        """
        try:
            if isinstance(position, Mapping):
                position = [position["x"], position["y"], position["z"]]
            pos = as_vector3(position)
            quat = None
            if orientation is not None:
                if isinstance(orientation, Mapping):
                    orientation = [orientation["x"], orientation["y"], orientation["z"], orientation["w"]]
                quat = as_quaternion(orientation)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTarget(f"malformed IK target: {exc}") from exc
        if not np.all(np.isfinite(pos)):
            raise InvalidTarget(f"IK target position must be finite, got {pos.tolist()}")
        if quat is not None and not np.all(np.isfinite(quat)):
            raise InvalidTarget("IK target orientation must be finite")
        return cls(position=pos, orientation=quat)


class IKSolution(Mapping[str, float]):
    """Read-only joint-name to goal-value map plus solve diagnostics."""

    def __init__(
        self,
        values: Mapping[str, float],
        *,
        distance: float,
        iterations: int,
        converged: bool,
        orientation_error: float | None = None,
        position: Vector3 | None = None,
    ) -> None:
        self._values = dict(values)
        self.distance = float(distance)
        self.iterations = int(iterations)
        self.converged = bool(converged)
        self.orientation_error = orientation_error
        self.position = position

    def __getitem__(self, key: str) -> float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def status(self) -> MotionStatus:
        return MotionStatus.SOLVE_SUCCEEDED if self.converged else MotionStatus.SOLVE_NOT_CONVERGED

    def as_dict(self) -> JointValues:
        return dict(self._values)

    def __repr__(self) -> str:
        return (
            f"IKSolution(converged={self.converged}, distance={self.distance:.4g}, "
            f"iterations={self.iterations}, values={self._values!r})"
        )


class ChainAnalysis(NamedTuple):
    dof: int
    max_reach: float
    max_iterations: int
    tolerance: float
    damping_factor: float
    joint_weights: tuple[float, ...]


def tip_path_joints(chain: KinematicChain, resolver: EndEffectorResolver | None = None) -> list[int]:
    """Movable joints between the base and the end-effector link, base first.

    Joints on side branches do not move the tip and are left out.
    """
    tip = (resolver or EndEffectorResolver()).tip_link(chain)
    if tip is None:
        return []
    return [j for j in chain.ancestor_joints(tip) if chain.joints[j].movable]


def max_reach(chain: KinematicChain, resolver: EndEffectorResolver | None = None) -> float:
    """Sum of distances between consecutive movable joints on the tip path plus the last one to the tip."""
    resolver = resolver or EndEffectorResolver()
    movable = tip_path_joints(chain, resolver)
    if not movable:
        return 0.0
    points = [chain.joint_world_position(j) for j in movable]
    frame = resolver.resolve(chain)
    if frame is not None:
        points.append(frame.position)
    return float(sum(np.linalg.norm(b - a) for a, b in zip(points, points[1:])))


def is_reachable(chain: KinematicChain, position: Sequence[float] | np.ndarray,
                 resolver: EndEffectorResolver | None = None) -> bool:
    base = chain.link_world(0)[:3, 3]
    return float(np.linalg.norm(as_vector3(position) - base)) <= max_reach(chain, resolver)


def analyze_chain(chain: KinematicChain, resolver: EndEffectorResolver | None = None) -> ChainAnalysis:
    """Derive solver parameters from the chain's size.

    More joints means more iterations, a tighter tolerance and lower damping.
    Joint weights fall from 1.0 at the base to 0.5 at the tip.
    """
    dof = len(tip_path_joints(chain, resolver))
    if dof == 0:
        return ChainAnalysis(0, 0.0, 25, 0.01, 0.8, ())
    complexity = min(1.0, dof / 7)
    weights = tuple(1.0 - 0.5 * (i / max(1, dof - 1)) for i in range(dof))
    return ChainAnalysis(
        dof=dof,
        max_reach=max_reach(chain, resolver),
        max_iterations=max(10, min(30, round(10 + dof * 2))),
        tolerance=max(0.001, min(0.02, 0.01 / complexity)),
        damping_factor=max(0.2, min(0.8, 0.7 - complexity * 0.4)),
        joint_weights=weights,
    )


def tuned_options(chain: KinematicChain, base: IKOptions | None = None) -> IKOptions:
    analysis = analyze_chain(chain)
    return (base or IKOptions())._replace(
        max_iterations=analysis.max_iterations,
        tolerance=analysis.tolerance,
        damping_factor=analysis.damping_factor,
    )


def signed_angle_about(axis: Vector3, a: Vector3, b: Vector3) -> float | None:
    """Signed angle turning ``a`` onto ``b`` about ``axis``, in the plane normal to it.

    Returns ``None`` when either projected vector is too short to define a direction.
    """
    a_p = a - axis * float(axis @ a)
    b_p = b - axis * float(axis @ b)
    if np.linalg.norm(a_p) < _MIN_LEVER or np.linalg.norm(b_p) < _MIN_LEVER:
        return None
    return math.atan2(float(axis @ np.cross(a_p, b_p)), float(a_p @ b_p))


class IKSolver:
    def __init__(self, resolver: EndEffectorResolver | None = None, options: IKOptions | None = None) -> None:
        self.resolver = resolver or EndEffectorResolver()
        self.options = options or IKOptions()

    def _orientation_error(self, frame: EndEffectorFrame, target: IKTarget) -> float | None:
        if target.orientation is None:
            return None
        return rotation_angle(rotation_part(frame.matrix), quaternion_matrix(target.orientation))

    def _converged(self, distance: float, ori_err: float | None, opts: IKOptions, use_orientation: bool) -> bool:
        if distance >= opts.tolerance:
            return False
        if use_orientation and ori_err is not None:
            return ori_err < opts.orientation_tolerance
        return True

    def _joint_step(
        self,
        chain: KinematicChain,
        j_idx: int,
        frame: EndEffectorFrame,
        target: IKTarget,
        opts: IKOptions,
        use_orientation: bool,
    ) -> float | None:
        joint = chain.joints[j_idx]
        axis = chain.joint_world_axis(j_idx)
        if joint.joint_type is JointType.PRISMATIC:
            return float(axis @ (target.position - frame.position))

        pivot = chain.joint_world_position(j_idx)
        to_end = frame.position - pivot
        to_target = target.position - pivot
        if np.linalg.norm(to_end) < _MIN_LEVER or np.linalg.norm(to_target) < _MIN_LEVER:
            return None
        angle = signed_angle_about(axis, to_end, to_target)
        if use_orientation and target.orientation is not None:
            rot_err = rotation_error_vector(rotation_part(frame.matrix), quaternion_matrix(target.orientation))
            w = opts.orientation_weight
            angle = (1.0 - w) * (angle or 0.0) + w * float(rot_err @ axis)
        return angle

    def solve(
        self,
        chain: KinematicChain | None,
        target: IKTarget,
        options: IKOptions | None = None,
        tool: ToolOffset | None = None,
    ) -> IKSolution | None:
        """Run CCD toward ``target`` and return the goal joint values.

        Returns ``None`` when the chain has no resolvable end effector. Raises
        :class:`RobotNotReady` when there is no chain or nothing to move.
        """
        opts = options or self.options
        if chain is None:
            raise RobotNotReady("no chain loaded")
        order = list(reversed(tip_path_joints(chain, self.resolver)))
        if not order:
            raise RobotNotReady(f"{chain.robot_id}: no movable joints between base and end effector")
        frame = self.resolver.resolve(chain, tool)
        if frame is None:
            logger.warning("No end effector found on %s; skipping solve", chain.robot_id)
            return None

        if not is_reachable(chain, target.position, self.resolver):
            logger.warning(
                "Target %s may be out of reach for %s (max reach %.3f)",
                np.round(target.position, 4).tolist(), chain.robot_id, max_reach(chain, self.resolver),
            )

        use_orientation = opts.orientation_weight > 0.0 and target.orientation is not None
        start = chain.joint_values()
        damping = opts.damping_factor
        iterations = 0
        for it in range(opts.max_iterations):
            frame = self.resolver.resolve(chain, tool)
            assert frame is not None
            distance = float(np.linalg.norm(target.position - frame.position))
            ori_err = self._orientation_error(frame, target)
            logger.debug("Iteration %d: distance = %.4f", it, distance)
            if self._converged(distance, ori_err, opts, use_orientation):
                break
            if opts.adaptive_damping and it > 10 and distance > _FAR_DISTANCE:
                damping = min(1.0, damping * 1.1)

            for j_idx in order:
                frame = self.resolver.resolve(chain, tool)
                assert frame is not None
                step = self._joint_step(chain, j_idx, frame, target, opts, use_orientation)
                if step is None:
                    continue
                gain = damping
                if opts.adaptive_damping:
                    gain = min(1.0, damping * 1.5) if distance > _FAR_DISTANCE else 1.0
                step = float(np.clip(step * gain, -opts.max_step_angle, opts.max_step_angle))
                joint = chain.joints[j_idx]
                joint.set_angle(joint.get_angle() + step)
            iterations = it + 1

        frame = self.resolver.resolve(chain, tool)
        assert frame is not None
        distance = float(np.linalg.norm(target.position - frame.position))
        ori_err = self._orientation_error(frame, target)
        converged = self._converged(distance, ori_err, opts, use_orientation)
        goal = chain.joint_values()
        if opts.restore:
            chain.set_joint_values(start)

        if converged:
            logger.info("IK converged on %s after %d iterations (distance %.4g)", chain.robot_id, iterations, distance)
        else:
            logger.info("IK did not converge on %s after %d iterations (distance %.4g)",
                        chain.robot_id, iterations, distance)
        return IKSolution(
            goal,
            distance=distance,
            iterations=iterations,
            converged=converged,
            orientation_error=ori_err,
            position=frame.position,
        )


__all__ = [
    "ChainAnalysis",
    "IKOptions",
    "IKSolution",
    "IKSolver",
    "IKTarget",
    "analyze_chain",
    "is_reachable",
    "max_reach",
    "signed_angle_about",
    "tuned_options",
]
