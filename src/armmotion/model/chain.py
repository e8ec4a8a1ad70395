"""Kinematic chain stored as an arena of links and joints addressed by index.

Links and joints refer to each other through integer indices only, so a
chain holds no reference cycles and can be copied or compared cheaply. The
base link is always index 0.

Joint values are written through :meth:`Joint.set_angle` (or the chain-level
:meth:`KinematicChain.set_joint_values` batch) and world transforms are
recomputed lazily on the next read.
"""

from __future__ import annotations

import copy
import logging
import math
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

import numpy as np

from armmotion.core.types import JointValues, Matrix44, Vector3
from armmotion.model.transforms import as_vector3, axis_angle, translation

logger = logging.getLogger(__name__)


class JointType(StrEnum):
    REVOLUTE = "revolute"
    CONTINUOUS = "continuous"
    PRISMATIC = "prismatic"
    FIXED = "fixed"


@dataclass
class Link:
    name: str
    parent_joint: int | None = None
    child_joints: list[int] = field(default_factory=list)


@dataclass(eq=False)
class Joint:
    name: str
    joint_type: JointType
    parent: int
    child: int
    origin: Matrix44 = field(default_factory=lambda: np.eye(4, dtype=float))
    axis: Vector3 = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    lower: float | None = None
    upper: float | None = None
    unbounded: bool = False
    max_velocity: float | None = None
    max_acceleration: float | None = None
    max_jerk: float | None = None
    angle: float = 0.0

    def __post_init__(self) -> None:
        self.joint_type = JointType(self.joint_type)
        axis = as_vector3(self.axis)
        norm = float(np.linalg.norm(axis))
        if self.joint_type is not JointType.FIXED and norm < 1e-12:
            raise ValueError(f"joint {self.name!r} needs a non-zero axis")
        self.axis = axis / norm if norm >= 1e-12 else axis
        self.origin = np.array(self.origin, dtype=float)
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ValueError(f"joint {self.name!r}: lower limit {self.lower} exceeds upper {self.upper}")
        self.angle = self.clamp(float(self.angle))

    @property
    def movable(self) -> bool:
        return self.joint_type is not JointType.FIXED

    @property
    def limited(self) -> bool:
        return not self.unbounded and self.joint_type is not JointType.CONTINUOUS

    def clamp(self, value: float) -> float:
        if not self.limited:
            return value
        if self.lower is not None:
            value = max(self.lower, value)
        if self.upper is not None:
            value = min(self.upper, value)
        return value

    def within_limits(self, value: float, eps: float = 1e-9) -> bool:
        if not self.limited:
            return True
        if self.lower is not None and value < self.lower - eps:
            return False
        if self.upper is not None and value > self.upper + eps:
            return False
        return True

    def get_angle(self) -> float:
        return self.angle

    def set_angle(self, value: float) -> bool:
        """Write a joint value, clamped to limits. Returns whether the value changed.

        Fixed joints ignore writes. Non-finite values raise ``ValueError``.
        """
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"joint {self.name!r}: value must be finite, got {value}")
        if not self.movable:
            return False
        value = self.clamp(value)
        if value == self.angle:
            return False
        self.angle = value
        return True

    def motion(self, value: float | None = None) -> Matrix44:
        """Transform contributed by the joint value, applied after ``origin``."""
        q = self.angle if value is None else value
        if self.joint_type in (JointType.REVOLUTE, JointType.CONTINUOUS):
            return axis_angle(self.axis, q)
        if self.joint_type is JointType.PRISMATIC:
            return translation(self.axis * q)
        return np.eye(4, dtype=float)


class KinematicChain:
    """Tree of links connected by joints, rooted at a base link."""

    def __init__(self, robot_id: str = "robot", base_link: str = "base_link",
                 base_transform: Matrix44 | None = None) -> None:
        self.robot_id = robot_id
        self.links: list[Link] = [Link(base_link)]
        self.joints: list[Joint] = []
        self.base_transform = np.eye(4, dtype=float) if base_transform is None else np.array(base_transform, dtype=float)
        self._link_index: dict[str, int] = {base_link: 0}
        self._joint_index: dict[str, int] = {}
        self._order: list[int] = []
        self._depth: list[int] = [0]
        self.structure_version = 0
        self._cache_key: tuple[float, ...] | None = None
        self._link_world: list[Matrix44] = []

    # ---- construction ----
    def add_joint(
        self,
        name: str,
        parent: str,
        child: str,
        joint_type: JointType | str = JointType.REVOLUTE,
        *,
        origin: Matrix44 | None = None,
        axis: Sequence[float] = (0.0, 0.0, 1.0),
        lower: float | None = None,
        upper: float | None = None,
        unbounded: bool = False,
        max_velocity: float | None = None,
        max_acceleration: float | None = None,
        max_jerk: float | None = None,
        angle: float = 0.0,
    ) -> Joint:
        if name in self._joint_index:
            raise ValueError(f"duplicate joint name {name!r}")
        if parent not in self._link_index:
            raise ValueError(f"joint {name!r}: unknown parent link {parent!r}")
        child_idx = self._link_index.get(child)
        if child_idx is None:
            child_idx = len(self.links)
            self.links.append(Link(child))
            self._link_index[child] = child_idx
        elif child_idx == 0 or self.links[child_idx].parent_joint is not None:
            raise ValueError(f"joint {name!r}: link {child!r} already has a parent")

        joint = Joint(
            name=name,
            joint_type=JointType(joint_type),
            parent=self._link_index[parent],
            child=child_idx,
            origin=np.eye(4, dtype=float) if origin is None else origin,
            axis=np.asarray(axis, dtype=float),
            lower=lower,
            upper=upper,
            unbounded=unbounded,
            max_velocity=max_velocity,
            max_acceleration=max_acceleration,
            max_jerk=max_jerk,
            angle=angle,
        )
        idx = len(self.joints)
        self.joints.append(joint)
        self._joint_index[name] = idx
        self.links[joint.parent].child_joints.append(idx)
        self.links[child_idx].parent_joint = idx
        self._rebuild_order()
        return joint

    def _rebuild_order(self) -> None:
        # Breadth-first from the base: every joint comes after its ancestors.
        order: list[int] = []
        depth = [0] * len(self.links)
        queue = deque([0])
        while queue:
            link_idx = queue.popleft()
            for j_idx in self.links[link_idx].child_joints:
                child = self.joints[j_idx].child
                depth[child] = depth[link_idx] + 1
                order.append(j_idx)
                queue.append(child)
        self._order = order
        self._depth = depth
        self.structure_version += 1
        self._cache_key = None

    def set_base_transform(self, T: Matrix44) -> None:
        self.base_transform = np.array(T, dtype=float)
        self._cache_key = None

    # ---- lookup ----
    def joint(self, name: str) -> Joint:
        try:
            return self.joints[self._joint_index[name]]
        except KeyError:
            raise KeyError(f"unknown joint {name!r}") from None

    def joint_index(self, name: str) -> int:
        return self._joint_index[name]

    def link_index(self, name: str) -> int:
        return self._link_index[name]

    def has_joint(self, name: str) -> bool:
        return name in self._joint_index

    def has_link(self, name: str) -> bool:
        return name in self._link_index

    def depth(self, link_idx: int) -> int:
        return self._depth[link_idx]

    def traversal_order(self) -> list[int]:
        """Joint indices from the base toward the tips."""
        return list(self._order)

    def movable_joints(self) -> list[int]:
        return [j for j in self._order if self.joints[j].movable]

    def leaf_links(self) -> list[int]:
        return [i for i, link in enumerate(self.links) if not link.child_joints]

    def joint_names(self, movable_only: bool = True) -> list[str]:
        idxs = self.movable_joints() if movable_only else self._order
        return [self.joints[j].name for j in idxs]

    @property
    def dof(self) -> int:
        return len(self.movable_joints())

    def ancestor_joints(self, link_idx: int) -> list[int]:
        """Joints between the base and ``link_idx``, base first."""
        chain: list[int] = []
        joint_idx = self.links[link_idx].parent_joint
        while joint_idx is not None:
            chain.append(joint_idx)
            joint_idx = self.links[self.joints[joint_idx].parent].parent_joint
        chain.reverse()
        return chain

    # ---- joint state ----
    def joint_values(self) -> JointValues:
        return {self.joints[j].name: self.joints[j].angle for j in self.movable_joints()}

    def set_joint_value(self, name: str, value: float) -> bool:
        return self.joint(name).set_angle(value)

    def set_joint_values(self, values: Mapping[str, float]) -> bool:
        """Apply a batch of joint values as one write.

        All values are validated before any joint is touched, so a bad entry
        leaves the chain unchanged. Unknown joint names are skipped.
        """
        staged: list[tuple[Joint, float]] = []
        for name, value in values.items():
            idx = self._joint_index.get(name)
            if idx is None:
                logger.debug("Ignoring value for unknown joint %r on %s", name, self.robot_id)
                continue
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"joint {name!r}: value must be finite, got {value}")
            staged.append((self.joints[idx], value))
        changed = False
        for joint, value in staged:
            changed = joint.set_angle(value) or changed
        return changed

    def within_limits(self, values: Mapping[str, float] | None = None) -> bool:
        values = self.joint_values() if values is None else values
        return all(self.joint(n).within_limits(v) for n, v in values.items() if self.has_joint(n))

    # ---- forward kinematics ----
    def _state_key(self) -> tuple[float, ...]:
        return tuple(j.angle for j in self.joints)

    def _forward(self) -> list[Matrix44]:
        key = self._state_key()
        if self._cache_key == key and len(self._link_world) == len(self.links):
            return self._link_world
        world: list[Matrix44] = [np.eye(4, dtype=float)] * len(self.links)
        world[0] = self.base_transform
        for j_idx in self._order:
            joint = self.joints[j_idx]
            world[joint.child] = world[joint.parent] @ joint.origin @ joint.motion()
        self._link_world = world
        self._cache_key = key
        return world

    def link_world(self, link_idx: int) -> Matrix44:
        return self._forward()[link_idx].copy()

    def link_world_by_name(self, name: str) -> Matrix44:
        return self.link_world(self._link_index[name])

    def joint_world(self, joint_idx: int) -> Matrix44:
        """World frame of the joint before its own motion is applied."""
        joint = self.joints[joint_idx]
        return self._forward()[joint.parent] @ joint.origin

    def joint_world_position(self, joint_idx: int) -> Vector3:
        return self.joint_world(joint_idx)[:3, 3].copy()

    def joint_world_axis(self, joint_idx: int) -> Vector3:
        R = self.joint_world(joint_idx)[:3, :3]
        axis = R @ self.joints[joint_idx].axis
        norm = float(np.linalg.norm(axis))
        return axis / norm if norm > 1e-12 else axis

    def copy(self) -> "KinematicChain":
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"KinematicChain(robot_id={self.robot_id!r}, links={len(self.links)}, dof={self.dof})"


def joint_values_close(a: Mapping[str, float], b: Mapping[str, float], tol: float) -> bool:
    """True when every joint shared by ``a`` and ``b`` differs by at most ``tol``."""
    return all(abs(float(a[name]) - float(b[name])) <= tol for name in a.keys() & b.keys())


def ordered_values(values: Mapping[str, float], names: Iterable[str]) -> np.ndarray:
    return np.array([float(values[n]) for n in names], dtype=float)


__all__ = [
    "JointType",
    "Link",
    "Joint",
    "KinematicChain",
    "joint_values_close",
    "ordered_values",
]
