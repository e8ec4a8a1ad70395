"""
End-effector resolution for kinematic chains.

Design goals
------------
- Pick one tip link per chain, deterministically, and remember the choice
  until the chain's structure changes
- Report the world pose of that tip, optionally through an attached tool
- Never raise for a chain without a usable tip; return ``None`` instead

Tip policy
----------
1. The first canonical tip name present in the chain, in ``CANONICAL_TIP_NAMES``
   order.
2. Otherwise the kinematic leaf (a link without child joints) with the greatest
   traversal depth; ties go to the earlier link in the arena.
3. Otherwise the deepest link overall.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from armmotion.core.types import Matrix44, Quaternion, Vector3
from armmotion.model.chain import KinematicChain
from armmotion.model.transforms import (
    IDENTITY_QUAT,
    as_quaternion,
    as_vector3,
    from_position_quaternion,
    to_position_quaternion,
)

logger = logging.getLogger(__name__)

CANONICAL_TIP_NAMES: tuple[str, ...] = (
    "tcp",
    "tool0",
    "ee_link",
    "end_effector",
    "flange",
    "tool_link",
    "tcp_link",
    "link_ee",
)


@dataclass(frozen=True, eq=False)
class ToolOffset:
    """Tool attached to the tip link: translate, then rotate, then scale."""

    position: Vector3 = field(default_factory=lambda: np.zeros(3))
    rotation: Quaternion = field(default_factory=lambda: np.array(IDENTITY_QUAT))
    scale: Vector3 = field(default_factory=lambda: np.ones(3))

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_vector3(self.position))
        object.__setattr__(self, "rotation", as_quaternion(self.rotation))
        object.__setattr__(self, "scale", as_vector3(self.scale))

    def matrix(self) -> Matrix44:
        return from_position_quaternion(self.position, self.rotation, self.scale)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ToolOffset":
        return cls(
            position=np.asarray(data.get("position", (0.0, 0.0, 0.0)), dtype=float),
            rotation=np.asarray(data.get("rotation", IDENTITY_QUAT), dtype=float),
            scale=np.asarray(data.get("scale", (1.0, 1.0, 1.0)), dtype=float),
        )

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "position": [float(v) for v in self.position],
            "rotation": [float(v) for v in self.rotation],
            "scale": [float(v) for v in self.scale],
        }


@dataclass(frozen=True, eq=False)
class EndEffectorFrame:
    position: Vector3
    orientation: Quaternion
    link: str
    matrix: Matrix44


class EndEffectorResolver:
    """Select and evaluate the end-effector frame of a chain."""

    def __init__(self, tip_names: Sequence[str] = CANONICAL_TIP_NAMES) -> None:
        self.tip_names = tuple(tip_names)
        self._cache: dict[int, tuple[int, int]] = {}

    def tip_link(self, chain: KinematicChain | None) -> int | None:
        if chain is None or not chain.links:
            return None
        cached = self._cache.get(id(chain))
        if cached is not None and cached[0] == chain.structure_version:
            return cached[1]
        idx = self._select_tip(chain)
        self._cache[id(chain)] = (chain.structure_version, idx)
        logger.debug("End-effector for %s: %s", chain.robot_id, chain.links[idx].name)
        return idx

    def _select_tip(self, chain: KinematicChain) -> int:
        for name in self.tip_names:
            if chain.has_link(name):
                return chain.link_index(name)
        leaves = [i for i in chain.leaf_links() if i != 0 or len(chain.links) == 1]
        candidates = leaves or list(range(len(chain.links)))
        # max() keeps the first of equal keys, so arena order breaks ties.
        return max(candidates, key=chain.depth)

    def resolve(self, chain: KinematicChain | None, tool: ToolOffset | None = None) -> EndEffectorFrame | None:
        idx = self.tip_link(chain)
        if chain is None or idx is None:
            return None
        T = chain.link_world(idx)
        if tool is not None:
            T = T @ tool.matrix()
        position, orientation = to_position_quaternion(T)
        return EndEffectorFrame(position=position, orientation=orientation, link=chain.links[idx].name, matrix=T)

    def forget(self, chain: KinematicChain) -> None:
        self._cache.pop(id(chain), None)


__all__ = [
    "CANONICAL_TIP_NAMES",
    "EndEffectorFrame",
    "EndEffectorResolver",
    "ToolOffset",
]
