"""Joint-angle tables: load and save ``(T, DOF)`` arrays and convert them to trajectories."""

from __future__ import annotations

import json
import pathlib
from collections.abc import Iterable, Sequence

import numpy as np

from armmotion.core.errors import TrajectoryEmptyOrMalformed
from armmotion.trajectory.model import Trajectory, TrajectoryFrame, build_trajectory


def load_angles(path: str | pathlib.Path, deg: bool = False) -> np.ndarray:
    """Read a ``(T, DOF)`` joint-value table, one row per sample.

    ``.csv`` is comma separated, ``.npy`` a saved numpy array and ``.json`` a
    list of rows. With ``deg`` the table is converted to radians. Raises
    ``FileNotFoundError`` for a missing file and ``ValueError`` for an unknown
    extension or a table that is not 2-D.
    """
    p = pathlib.Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        table = np.loadtxt(p, delimiter=",", dtype=float, ndmin=2)
    elif suffix == ".npy":
        table = np.asarray(np.load(p), dtype=float)
    elif suffix == ".json":
        rows: Iterable[Iterable[float]] = json.loads(p.read_text(encoding="utf-8"))
        table = np.array(rows, dtype=float)
    else:
        raise ValueError(f"{p.name}: unsupported angle table format {p.suffix!r}")
    if table.ndim != 2:
        raise ValueError(f"{p.name}: expected a (T, DOF) table, got shape {table.shape}")
    return np.deg2rad(table) if deg else table


def save_angles(path: str | pathlib.Path, angles: np.ndarray, deg: bool = False) -> pathlib.Path:
    p = pathlib.Path(path)
    arr = np.asarray(angles, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"{p.name}: expected a (T, DOF) table, got shape {arr.shape}")
    if deg:
        arr = np.rad2deg(arr)
    suffix = p.suffix.lower()
    if suffix == ".csv":
        np.savetxt(p, arr, delimiter=",", fmt="%.9g")
    elif suffix == ".npy":
        np.save(p, arr)
    elif suffix == ".json":
        p.write_text(json.dumps(arr.tolist()), encoding="utf-8")
    else:
        raise ValueError(f"{p.name}: unsupported angle table format {p.suffix!r}")
    return p


def trajectory_from_angles(
    angles: np.ndarray,
    joint_names: Sequence[str],
    interval_ms: float = 100.0,
    *,
    name: str = "imported",
    robot_id: str = "robot",
) -> Trajectory:
    """One frame per row, ``interval_ms`` apart, starting at 0.

    Extra columns beyond ``joint_names`` are ignored; too few columns is an error.
    """
    arr = np.asarray(angles, dtype=float)
    if arr.ndim != 2 or arr.shape[0] == 0:
        raise TrajectoryEmptyOrMalformed(f"angle table must be a non-empty 2D array, got shape {arr.shape}")
    if arr.shape[1] < len(joint_names):
        raise TrajectoryEmptyOrMalformed(f"angle table has {arr.shape[1]} columns for {len(joint_names)} joints")
    if not interval_ms > 0.0:
        raise ValueError(f"interval must be positive, got {interval_ms}")
    frames = [
        TrajectoryFrame(
            timestamp=i * float(interval_ms),
            joint_values={n: float(v) for n, v in zip(joint_names, row)},
        )
        for i, row in enumerate(arr)
    ]
    return build_trajectory(name, robot_id, frames)


def trajectory_to_array(trajectory: Trajectory, joint_names: Sequence[str] | None = None) -> np.ndarray:
    """Stack frames with joint data into a ``(T, DOF)`` array; missing joints read as NaN."""
    names = list(joint_names) if joint_names is not None else trajectory.joint_names
    frames = trajectory.valid_frames()
    return np.array([[float(f.joint_values.get(n, np.nan)) for n in names] for f in frames], dtype=float).reshape(
        len(frames), len(names)
    )


__all__ = ["load_angles", "save_angles", "trajectory_from_angles", "trajectory_to_array"]
