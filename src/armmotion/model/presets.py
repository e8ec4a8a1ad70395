"""Bundled demo chains and joint presets used by the CLI and tests."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from armmotion.model.chain import JointType, KinematicChain
from armmotion.model.dh import chain_from_dh, demo_standard_6R_num
from armmotion.model.transforms import Tx

JointPreset = list[float]

# Stored in degrees to match the original arm handout; convert to radians where needed.
PRESETS_DEG: list[JointPreset] = [
    [30, 0, 90, 60, 0, 0],
    [-30, 0, 60, 60, -30, 0],
    [30, 0, 60, 60, 60, 0],
    [-30, 0, 60, 60, 15, 0],
    [15, 15, 15, 15, 15, 15],
]

ARM6R_LIMITS_DEG: list[tuple[float, float]] = [
    (-170, 170),
    (-120, 120),
    (-150, 150),
    (-180, 180),
    (-120, 120),
    (-360, 360),
]


def planar_3r(
    lengths: Sequence[float] = (1.0, 1.0, 1.0),
    *,
    robot_id: str = "planar3r",
    limits: tuple[float, float] | None = None,
    tip_link: str = "ee_link",
) -> KinematicChain:
    """Planar arm of revolute joints about +Z with links along the local +X."""
    chain = KinematicChain(robot_id=robot_id)
    parent = "base_link"
    offset = 0.0
    for i, _ in enumerate(lengths):
        child = f"link{i + 1}"
        chain.add_joint(
            f"joint{i + 1}",
            parent,
            child,
            JointType.REVOLUTE,
            origin=Tx(offset),
            lower=limits[0] if limits else None,
            upper=limits[1] if limits else None,
            unbounded=limits is None,
        )
        offset = float(lengths[i])
        parent = child
    chain.add_joint("tip", parent, tip_link, JointType.FIXED, origin=Tx(offset))
    return chain


def arm_6r(*, robot_id: str = "arm6r") -> KinematicChain:
    limits = [(math.radians(lo), math.radians(hi)) for lo, hi in ARM6R_LIMITS_DEG]
    return chain_from_dh(demo_standard_6R_num(), robot_id=robot_id, limits=limits)


PRESET_CHAINS: dict[str, Callable[[], KinematicChain]] = {
    "planar3r": planar_3r,
    "arm6r": arm_6r,
}


def build_preset(name: str) -> KinematicChain:
    try:
        return PRESET_CHAINS[name]()
    except KeyError:
        raise ValueError(f"unknown preset chain {name!r}; choose from {sorted(PRESET_CHAINS)}") from None


__all__ = ["PRESETS_DEG", "PRESET_CHAINS", "arm_6r", "build_preset", "planar_3r"]
