"""Numeric homogeneous transform primitives."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from scipy.spatial.transform import Rotation

from armmotion.core.types import Matrix33, Matrix44, Quaternion, Vector3

IDENTITY_QUAT: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)


def as_vector3(value: Sequence[float] | np.ndarray) -> Vector3:
    vec = np.asarray(value, dtype=float).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {vec.shape}")
    return vec


def as_quaternion(value: Sequence[float] | np.ndarray) -> Quaternion:
    """Return a unit ``(x, y, z, w)`` quaternion."""
    quat = np.asarray(value, dtype=float).reshape(-1)
    if quat.shape != (4,):
        raise ValueError(f"expected a quaternion (x, y, z, w), got shape {quat.shape}")
    norm = float(np.linalg.norm(quat))
    if not math.isfinite(norm) or norm < 1e-12:
        raise ValueError("quaternion must have a finite, non-zero norm")
    return quat / norm


def Rx(alpha: float) -> Matrix44:
    ca, sa = math.cos(alpha), math.sin(alpha)
    return np.array([[1, 0, 0, 0], [0, ca, -sa, 0], [0, sa, ca, 0], [0, 0, 0, 1]], dtype=float)


def Rz(theta: float) -> Matrix44:
    ct, st = math.cos(theta), math.sin(theta)
    return np.array([[ct, -st, 0, 0], [st, ct, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]], dtype=float)


def Tx(a: float) -> Matrix44:
    return translation((a, 0.0, 0.0))


def Tz(d: float) -> Matrix44:
    return translation((0.0, 0.0, d))


def translation(offset: Sequence[float] | np.ndarray) -> Matrix44:
    T = np.eye(4, dtype=float)
    T[:3, 3] = as_vector3(offset)
    return T


def axis_angle(axis: Sequence[float] | np.ndarray, angle: float) -> Matrix44:
    """Rotation of ``angle`` radians about a unit ``axis``."""
    T = np.eye(4, dtype=float)
    T[:3, :3] = Rotation.from_rotvec(as_vector3(axis) * float(angle)).as_matrix()
    return T


def dh_transform(a: float, alpha: float, d: float, theta: float) -> Matrix44:
    """Standard DH link transform ``Rz(theta) Tz(d) Tx(a) Rx(alpha)``."""
    ca, sa = math.cos(alpha), math.sin(alpha)
    ct, st = math.cos(theta), math.sin(theta)
    return np.array(
        [
            [ct, -st * ca, st * sa, ct * a],
            [st, ct * ca, -ct * sa, st * a],
            [0.0, sa, ca, d],
            [0.0, 0.0, 0.0, 1.0],
        ],
        dtype=float,
    )


def from_xyz_rpy(xyz: Sequence[float], rpy: Sequence[float]) -> Matrix44:
    """Transform from a translation and fixed-axis roll/pitch/yaw (URDF origin convention)."""
    T = np.eye(4, dtype=float)
    T[:3, :3] = Rotation.from_euler("xyz", as_vector3(rpy)).as_matrix()
    T[:3, 3] = as_vector3(xyz)
    return T


def from_position_quaternion(
    position: Sequence[float] | np.ndarray,
    orientation: Sequence[float] | np.ndarray = IDENTITY_QUAT,
    scale: Sequence[float] | np.ndarray | None = None,
) -> Matrix44:
    """Compose translate, then rotate, then scale into one transform."""
    T = np.eye(4, dtype=float)
    R = Rotation.from_quat(as_quaternion(orientation)).as_matrix()
    if scale is not None:
        R = R @ np.diag(as_vector3(scale))
    T[:3, :3] = R
    T[:3, 3] = as_vector3(position)
    return T


def rotation_part(T: Matrix44) -> Matrix33:
    """Rotation block of ``T`` with any scale divided out of its columns."""
    R = np.array(T[:3, :3], dtype=float)
    norms = np.linalg.norm(R, axis=0)
    norms[norms < 1e-12] = 1.0
    return R / norms


def to_position_quaternion(T: Matrix44) -> tuple[Vector3, Quaternion]:
    position = np.array(T[:3, 3], dtype=float)
    quat = Rotation.from_matrix(rotation_part(T)).as_quat()
    return position, quat


def quaternion_matrix(orientation: Sequence[float] | np.ndarray) -> Matrix33:
    return Rotation.from_quat(as_quaternion(orientation)).as_matrix()


def rotation_error_vector(R_cur: Matrix33, R_des: Matrix33) -> Vector3:
    """World-frame rotation vector that carries ``R_cur`` onto ``R_des``."""
    return Rotation.from_matrix(R_des @ R_cur.T).as_rotvec()


def rotation_angle(RA: Matrix33, RB: Matrix33) -> float:
    """Angle between two rotations in radians."""
    R = RA.T @ RB
    tr = float(np.clip((np.trace(R) - 1.0) * 0.5, -1.0, 1.0))
    return float(math.acos(tr))


__all__ = [
    "IDENTITY_QUAT",
    "Rx",
    "Rz",
    "Tx",
    "Tz",
    "as_quaternion",
    "as_vector3",
    "axis_angle",
    "dh_transform",
    "from_position_quaternion",
    "from_xyz_rpy",
    "quaternion_matrix",
    "rotation_angle",
    "rotation_error_vector",
    "rotation_part",
    "to_position_quaternion",
    "translation",
]
