"""Trajectory persistence behind a small protocol.

The motion core never opens files itself; it hands finished trajectories to a
``TrajectoryStore``. Two stores ship here: an in-memory one for tests and
embedding, and one that keeps a JSON document per trajectory in a directory.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import NamedTuple, Protocol

from armmotion.core.errors import TrajectoryPersistenceFailure
from armmotion.trajectory.model import Trajectory

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def trajectory_id(robot_id: str, name: str) -> str:
    """Filesystem-safe id derived from the robot and trajectory names."""
    robot = _UNSAFE.sub("_", robot_id).strip("._") or "robot"
    label = _UNSAFE.sub("_", name).strip("._") or "trajectory"
    return f"{robot}__{label}"


class TrajectoryInfo(NamedTuple):
    id: str
    name: str
    robot_id: str
    duration: float
    frame_count: int
    recorded_at: str

    @classmethod
    def of(cls, trajectory: Trajectory) -> "TrajectoryInfo":
        return cls(
            id=trajectory_id(trajectory.robot_id, trajectory.name),
            name=trajectory.name,
            robot_id=trajectory.robot_id,
            duration=trajectory.duration,
            frame_count=trajectory.frame_count,
            recorded_at=trajectory.recorded_at,
        )


class TrajectoryStore(Protocol):
    def save(self, trajectory: Trajectory) -> str: ...

    def load(self, trajectory_id: str) -> Trajectory: ...

    def delete(self, trajectory_id: str) -> bool: ...

    def list(self) -> list[TrajectoryInfo]: ...


class MemoryTrajectoryStore:
    def __init__(self) -> None:
        self._items: dict[str, Trajectory] = {}

    def save(self, trajectory: Trajectory) -> str:
        key = trajectory_id(trajectory.robot_id, trajectory.name)
        self._items[key] = trajectory
        return key

    def load(self, trajectory_id: str) -> Trajectory:
        try:
            return self._items[trajectory_id]
        except KeyError:
            raise TrajectoryPersistenceFailure(f"no trajectory with id {trajectory_id!r}") from None

    def delete(self, trajectory_id: str) -> bool:
        return self._items.pop(trajectory_id, None) is not None

    def list(self) -> list[TrajectoryInfo]:
        return [TrajectoryInfo.of(t) for _, t in sorted(self._items.items())]


class JsonDirectoryTrajectoryStore:
    """One ``<id>.json`` document per trajectory under ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, trajectory_id: str) -> Path:
        if _UNSAFE.search(trajectory_id) or trajectory_id.startswith("."):
            raise TrajectoryPersistenceFailure(f"invalid trajectory id {trajectory_id!r}")
        return self.root / f"{trajectory_id}.json"

    def save(self, trajectory: Trajectory) -> str:
        key = trajectory_id(trajectory.robot_id, trajectory.name)
        path = self.path_for(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(trajectory.to_json(), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            raise TrajectoryPersistenceFailure(f"could not save {key!r} to {path}: {exc}") from exc
        logger.info("Saved trajectory %r to %s", trajectory.name, path)
        return key

    def load(self, trajectory_id: str) -> Trajectory:
        path = self.path_for(trajectory_id)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TrajectoryPersistenceFailure(f"could not read {path}: {exc}") from exc
        return Trajectory.from_json(text)

    def delete(self, trajectory_id: str) -> bool:
        path = self.path_for(trajectory_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise TrajectoryPersistenceFailure(f"could not delete {path}: {exc}") from exc
        return True

    def list(self) -> list[TrajectoryInfo]:
        if not self.root.is_dir():
            return []
        infos: list[TrajectoryInfo] = []
        for path in sorted(self.root.glob("*.json")):
            try:
                trajectory = Trajectory.from_json(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable trajectory file %s: %s", path, exc)
                continue
            infos.append(TrajectoryInfo.of(trajectory)._replace(id=path.stem))
        return infos


__all__ = [
    "JsonDirectoryTrajectoryStore",
    "MemoryTrajectoryStore",
    "TrajectoryInfo",
    "TrajectoryStore",
    "trajectory_id",
]
