"""Build chains from plain mappings or YAML documents.

A description either names a bundled preset, carries DH parameters, or lists
joints explicitly::

    robot_id: demo
    base: base_link
    joints:
      - name: shoulder
        type: revolute
        parent: base_link
        child: upper_arm
        origin: {xyz: [0, 0, 0.1], rpy: [0, 0, 0]}
        axis: [0, 0, 1]
        limits: {lower: -1.57, upper: 1.57, velocity: 1.0}
"""

from __future__ import annotations

import pathlib
from collections.abc import Mapping
from typing import Any

import numpy as np
import yaml

from armmotion.model.chain import KinematicChain
from armmotion.model.dh import DHParamsNum, chain_from_dh
from armmotion.model.presets import build_preset
from armmotion.model.transforms import from_xyz_rpy


def _origin(entry: Mapping[str, Any] | None) -> np.ndarray:
    if not entry:
        return np.eye(4, dtype=float)
    return from_xyz_rpy(entry.get("xyz", (0.0, 0.0, 0.0)), entry.get("rpy", (0.0, 0.0, 0.0)))


def chain_from_mapping(data: Mapping[str, Any]) -> KinematicChain:
    if "preset" in data:
        chain = build_preset(str(data["preset"]))
        if "robot_id" in data:
            chain.robot_id = str(data["robot_id"])
        return chain

    robot_id = str(data.get("robot_id", "robot"))
    if "dh" in data:
        dh = data["dh"]
        params = DHParamsNum(
            a=np.asarray(dh["a"], dtype=float),
            alpha=np.asarray(dh["alpha"], dtype=float),
            d=np.asarray(dh["d"], dtype=float),
            theta_offset=np.asarray(dh.get("theta_offset", [0.0] * len(dh["a"])), dtype=float),
        )
        limits = dh.get("limits")
        return chain_from_dh(
            params,
            robot_id=robot_id,
            limits=[tuple(x) if x is not None else None for x in limits] if limits else None,
            tip_link=str(dh.get("tip_link", "tool0")),
        )

    joints = data.get("joints")
    if not joints:
        raise ValueError("chain description needs 'preset', 'dh' or a non-empty 'joints' list")

    chain = KinematicChain(robot_id=robot_id, base_link=str(data.get("base", "base_link")))
    for entry in joints:
        limits = entry.get("limits") or {}
        chain.add_joint(
            str(entry["name"]),
            str(entry["parent"]),
            str(entry["child"]),
            str(entry.get("type", "revolute")),
            origin=_origin(entry.get("origin")),
            axis=entry.get("axis", (0.0, 0.0, 1.0)),
            lower=limits.get("lower"),
            upper=limits.get("upper"),
            unbounded=bool(entry.get("unbounded", not limits)),
            max_velocity=limits.get("velocity"),
            max_acceleration=limits.get("acceleration"),
            max_jerk=limits.get("jerk"),
            angle=float(entry.get("angle", 0.0)),
        )
    return chain


def load_chain(path: str | pathlib.Path) -> KinematicChain:
    p = pathlib.Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, Mapping):
        raise ValueError(f"{p}: expected a mapping at the top level")
    return chain_from_mapping(data)


__all__ = ["chain_from_mapping", "load_chain"]
