"""Easing curves and rate-limited motion profiles for joint animation.

Two families are supported:

- easing curves map normalised time ``t`` in [0, 1] to normalised progress;
- trapezoidal and s-curve profiles honour per-joint velocity, acceleration and
  (for s-curves) jerk caps, and are synchronised so every joint finishes at the
  same moment.

Profile times are in seconds; the animator converts from milliseconds.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import NamedTuple

from armmotion.model.chain import Joint, KinematicChain

# Joint moves shorter than this are treated as already in place.
STATIC_EPS = 1e-4

Easing = Callable[[float], float]


def linear(t: float) -> float:
    return t


def smoothstep(t: float) -> float:
    return t * t * (3.0 - 2.0 * t)


def ease_in_out_cubic(t: float) -> float:
    return 4.0 * t * t * t if t < 0.5 else 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def quintic(t: float) -> float:
    return t * t * t * (t * (6.0 * t - 15.0) + 10.0)


EASINGS: dict[str, Easing] = {
    "ease": ease_in_out_cubic,
    "smoothstep": smoothstep,
    "quintic": quintic,
    "linear": linear,
}
RATE_LIMITED = ("trapezoidal", "s-curve")
PROFILE_NAMES: tuple[str, ...] = (*EASINGS, *RATE_LIMITED)
DEFAULT_PROFILE = "ease"


def check_profile(name: str) -> str:
    if name not in PROFILE_NAMES:
        raise ValueError(f"unknown motion profile {name!r}; choose from {list(PROFILE_NAMES)}")
    return name


class JointConstraints(NamedTuple):
    max_velocity: float = 1.0  # rad/s
    max_acceleration: float = 2.0  # rad/s^2
    max_jerk: float = 10.0  # rad/s^3

    @classmethod
    def for_joint(cls, joint: Joint, default: "JointConstraints | None" = None) -> "JointConstraints":
        base = default or cls()
        return cls(
            max_velocity=joint.max_velocity or base.max_velocity,
            max_acceleration=joint.max_acceleration or base.max_acceleration,
            max_jerk=joint.max_jerk or base.max_jerk,
        )


@dataclass(frozen=True)
class Segment:
    duration: float
    accel: float  # acceleration at segment start
    jerk: float = 0.0


@dataclass(frozen=True)
class ProfilePlan:
    """Piecewise constant-jerk motion over ``total_time`` seconds covering ``distance``."""

    kind: str
    distance: float
    total_time: float
    peak_velocity: float
    segments: tuple[Segment, ...] = ()

    def _integrate(self, t: float) -> tuple[float, float]:
        p = v = 0.0
        remaining = max(0.0, t)
        for seg in self.segments:
            dt = min(remaining, seg.duration)
            p += v * dt + 0.5 * seg.accel * dt * dt + seg.jerk * dt ** 3 / 6.0
            v += seg.accel * dt + 0.5 * seg.jerk * dt * dt
            remaining -= dt
            if remaining <= 0.0:
                break
        return p, v

    def position(self, t: float) -> float:
        """Signed displacement from the start at time ``t``."""
        if self.total_time <= 0.0 or t >= self.total_time:
            return self.distance
        p, _ = self._integrate(t)
        return math.copysign(min(p, abs(self.distance)), self.distance)

    def velocity(self, t: float) -> float:
        if self.total_time <= 0.0 or t <= 0.0 or t >= self.total_time:
            return 0.0
        _, v = self._integrate(t)
        return math.copysign(v, self.distance)

    def fraction(self, t: float) -> float:
        if abs(self.distance) < STATIC_EPS:
            return 1.0
        return self.position(t) / self.distance


def _static(kind: str, distance: float) -> ProfilePlan:
    return ProfilePlan(kind=kind, distance=distance, total_time=0.0, peak_velocity=0.0)


class TrapezoidalProfile:
    """Accelerate, cruise, decelerate; triangular when the cruise speed is never reached."""

    kind = "trapezoidal"

    def __init__(self, max_velocity: float = 1.0, max_acceleration: float = 2.0) -> None:
        if max_velocity <= 0.0 or max_acceleration <= 0.0:
            raise ValueError("velocity and acceleration limits must be positive")
        self.max_velocity = max_velocity
        self.max_acceleration = max_acceleration

    def plan(self, distance: float) -> ProfilePlan:
        d = abs(distance)
        if d < STATIC_EPS:
            return _static(self.kind, distance)
        v, a = self.max_velocity, self.max_acceleration
        t_acc = v / a
        d_acc = 0.5 * a * t_acc * t_acc
        if 2.0 * d_acc <= d:
            t_const = (d - 2.0 * d_acc) / v
        else:
            v = math.sqrt(a * d)
            t_acc = v / a
            t_const = 0.0
        segments = (Segment(t_acc, a), Segment(t_const, 0.0), Segment(t_acc, -a))
        return ProfilePlan(self.kind, distance, 2.0 * t_acc + t_const, v, segments)


class SCurveProfile:
    """Jerk-limited seven-segment profile with zero velocity and acceleration at both ends."""

    kind = "s-curve"

    def __init__(self, max_velocity: float = 1.0, max_acceleration: float = 2.0, max_jerk: float = 10.0) -> None:
        if max_velocity <= 0.0 or max_acceleration <= 0.0 or max_jerk <= 0.0:
            raise ValueError("velocity, acceleration and jerk limits must be positive")
        self.max_velocity = max_velocity
        self.max_acceleration = max_acceleration
        self.max_jerk = max_jerk

    def _ramp(self, v: float) -> tuple[float, float, float]:
        """Jerk time, constant-acceleration time and peak acceleration to reach ``v`` from rest."""
        a, j = self.max_acceleration, self.max_jerk
        if v * j < a * a:
            t_j = math.sqrt(v / j)
            return t_j, 0.0, j * t_j
        return a / j, v / a - a / j, a

    def _peak_for_distance(self, d: float) -> float:
        # Largest cruise speed whose accelerate + decelerate ramps cover exactly d.
        a, j = self.max_acceleration, self.max_jerk
        v = (d * math.sqrt(j) / 2.0) ** (2.0 / 3.0)
        if v * j < a * a:
            return v
        return a * (-a / j + math.sqrt((a / j) ** 2 + 4.0 * d / a)) / 2.0

    def plan(self, distance: float) -> ProfilePlan:
        d = abs(distance)
        if d < STATIC_EPS:
            return _static(self.kind, distance)
        v = self.max_velocity
        t_j, t_ac, a_pk = self._ramp(v)
        d_ramp = v * (2.0 * t_j + t_ac) / 2.0
        if 2.0 * d_ramp <= d:
            t_v = (d - 2.0 * d_ramp) / v
        else:
            v = min(v, self._peak_for_distance(d))
            t_j, t_ac, a_pk = self._ramp(v)
            t_v = 0.0
        j = a_pk / t_j if t_j > 0.0 else 0.0
        segments = (
            Segment(t_j, 0.0, j),
            Segment(t_ac, a_pk),
            Segment(t_j, a_pk, -j),
            Segment(t_v, 0.0),
            Segment(t_j, 0.0, -j),
            Segment(t_ac, -a_pk),
            Segment(t_j, -a_pk, j),
        )
        total = 4.0 * t_j + 2.0 * t_ac + t_v
        return ProfilePlan(self.kind, distance, total, v, segments)


def make_profile(kind: str, constraints: JointConstraints) -> TrapezoidalProfile | SCurveProfile:
    if kind == "s-curve":
        return SCurveProfile(constraints.max_velocity, constraints.max_acceleration, constraints.max_jerk)
    if kind == "trapezoidal":
        return TrapezoidalProfile(constraints.max_velocity, constraints.max_acceleration)
    raise ValueError(f"{kind!r} is not a rate-limited profile")


@dataclass(frozen=True)
class SynchronizedPlan:
    start: Mapping[str, float]
    goal: Mapping[str, float]
    plans: Mapping[str, ProfilePlan]
    total_time: float  # seconds

    def values_at(self, t: float) -> dict[str, float]:
        """Joint values at plan time ``t``.

        Each joint runs its own profile stretched to ``total_time``, so slower
        joints set the pace and faster ones keep the same shape at lower speed.
        """
        out: dict[str, float] = {}
        for name, plan in self.plans.items():
            if plan.total_time <= 0.0 or self.total_time <= 0.0 or t >= self.total_time:
                out[name] = float(self.goal[name])
                continue
            tau = max(0.0, t) * plan.total_time / self.total_time
            out[name] = float(self.start[name]) + plan.position(tau)
        return out


class SynchronizedProfile:
    def __init__(
        self,
        kind: str = "trapezoidal",
        constraints: Mapping[str, JointConstraints] | None = None,
        default: JointConstraints | None = None,
    ) -> None:
        if kind not in RATE_LIMITED:
            raise ValueError(f"{kind!r} is not a rate-limited profile")
        self.kind = kind
        self.constraints = dict(constraints or {})
        self.default = default or JointConstraints()

    @classmethod
    def for_chain(cls, kind: str, chain: KinematicChain, default: JointConstraints | None = None) -> "SynchronizedProfile":
        limits = {chain.joints[j].name: JointConstraints.for_joint(chain.joints[j], default) for j in chain.movable_joints()}
        return cls(kind, limits, default)

    def plan(self, start: Mapping[str, float], goal: Mapping[str, float]) -> SynchronizedPlan:
        plans: dict[str, ProfilePlan] = {}
        begin: dict[str, float] = {}
        for name, target in goal.items():
            s = float(start.get(name, target))
            begin[name] = s
            profile = make_profile(self.kind, self.constraints.get(name, self.default))
            plans[name] = profile.plan(float(target) - s)
        total = max((p.total_time for p in plans.values()), default=0.0)
        return SynchronizedPlan(start=begin, goal=dict(goal), plans=plans, total_time=total)


__all__ = [
    "DEFAULT_PROFILE",
    "EASINGS",
    "JointConstraints",
    "PROFILE_NAMES",
    "ProfilePlan",
    "RATE_LIMITED",
    "SCurveProfile",
    "Segment",
    "SynchronizedPlan",
    "SynchronizedProfile",
    "TrapezoidalProfile",
    "check_profile",
    "ease_in_out_cubic",
    "linear",
    "make_profile",
    "quintic",
    "smoothstep",
]
