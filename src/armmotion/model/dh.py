"""Denavit-Hartenberg helpers for building serial chains."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from armmotion.core.types import Matrix44
from armmotion.model.chain import JointType, KinematicChain
from armmotion.model.transforms import Rx, Rz, Tx, Tz, dh_transform


class DHParamsNum(NamedTuple):
    """Numeric DH parameter arrays (metres / radians)."""

    a: np.ndarray
    alpha: np.ndarray
    d: np.ndarray
    theta_offset: np.ndarray


def demo_standard_6R_num() -> DHParamsNum:
    """Standard DH data for the ZJU-I 6-DoF arm, lengths in metres."""
    a = np.array([0.0, 0.185, 0.170, 0.0, 0.0, 0.0], dtype=float)
    alpha = np.array([-math.pi / 2, 0.0, 0.0, math.pi / 2, math.pi / 2, 0.0], dtype=float)
    d = np.array([0.230, -0.054, 0.0, 0.077, 0.077, 0.0855], dtype=float)
    theta_offset = np.array([0.0, -math.pi / 2, 0.0, math.pi / 2, math.pi / 2, 0.0], dtype=float)
    return DHParamsNum(a=a, alpha=alpha, d=d, theta_offset=theta_offset)


def fk_dh(dh: DHParamsNum, q: Sequence[float]) -> Matrix44:
    """Tip transform as the plain product of DH link transforms."""
    theta = np.asarray(q, dtype=float)
    if theta.shape != dh.theta_offset.shape:
        raise ValueError(f"Expected {dh.theta_offset.shape[0]} joint angles, received {theta.shape[0]}")
    T = np.eye(4, dtype=float)
    for ai, alpha_i, di, th_i in zip(dh.a, dh.alpha, dh.d, theta + dh.theta_offset):
        T = T @ dh_transform(ai, alpha_i, di, th_i)
    return T


def chain_from_dh(
    dh: DHParamsNum,
    *,
    robot_id: str = "arm6r",
    limits: Sequence[tuple[float, float] | None] | None = None,
    tip_link: str = "tool0",
    joint_prefix: str = "joint",
) -> KinematicChain:
    """Build a revolute chain whose tip frame equals the DH product.

    ``Rz(theta + offset)`` splits into ``Rz(offset)`` folded into the joint
    origin and ``Rz(theta)`` as the joint motion; the remaining
    ``Tz(d) Tx(a) Rx(alpha)`` becomes the next joint's origin.
    """
    n = dh.theta_offset.shape[0]
    if limits is not None and len(limits) != n:
        raise ValueError(f"limits must have {n} entries")

    chain = KinematicChain(robot_id=robot_id, base_link="base_link")
    parent = "base_link"
    carry = np.eye(4, dtype=float)
    for i in range(n):
        lim = limits[i] if limits is not None else None
        child = f"link{i + 1}"
        chain.add_joint(
            f"{joint_prefix}{i + 1}",
            parent,
            child,
            JointType.REVOLUTE,
            origin=carry @ Rz(float(dh.theta_offset[i])),
            axis=(0.0, 0.0, 1.0),
            lower=lim[0] if lim else None,
            upper=lim[1] if lim else None,
            unbounded=lim is None,
        )
        carry = Tz(float(dh.d[i])) @ Tx(float(dh.a[i])) @ Rx(float(dh.alpha[i]))
        parent = child
    chain.add_joint(f"{joint_prefix}_tip", parent, tip_link, JointType.FIXED, origin=carry)
    return chain


__all__ = ["DHParamsNum", "chain_from_dh", "demo_standard_6R_num", "fk_dh"]
