"""Trajectory values and their JSON document form.

Document layout::

    {
      "name": "wave",
      "robotId": "planar3r",
      "duration": 500.0,
      "frameCount": 5,
      "recordedAt": "2024-01-01T00:00:00+00:00",
      "frames": [{"timestamp": 0.0, "jointValues": {"joint1": 0.0}}],
      "endEffectorPath": [
        {"timestamp": 0.0,
         "position": {"x": 3.0, "y": 0.0, "z": 0.0},
         "orientation": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}}
      ]
    }

Older documents that use ``keyframes``, ``time`` or a per-frame
``endEffectorPosition`` are read as well; they are always written back in the
layout above.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import numpy as np
from numpy.typing import NDArray

from armmotion.core.errors import TrajectoryEmptyOrMalformed

logger = logging.getLogger(__name__)

Vec3 = tuple[float, float, float]
Quat = tuple[float, float, float, float]

_XYZ = ("x", "y", "z")
_XYZW = ("x", "y", "z", "w")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class EndEffectorSample:
    timestamp: float
    position: Vec3
    orientation: Quat = (0.0, 0.0, 0.0, 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": float(self.timestamp),
            "position": {k: float(v) for k, v in zip(_XYZ, self.position)},
            "orientation": {k: float(v) for k, v in zip(_XYZW, self.orientation)},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], timestamp: float | None = None) -> "EndEffectorSample":
        ts = timestamp if timestamp is not None else data.get("timestamp", data.get("time"))
        pos = data["position"] if "position" in data else data
        ori = data.get("orientation") or {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}
        return cls(
            timestamp=float(ts),
            position=tuple(float(pos[k]) for k in _XYZ),  # type: ignore[arg-type]
            orientation=tuple(float(ori[k]) for k in _XYZW),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class TrajectoryFrame:
    timestamp: float
    joint_values: Mapping[str, float] = field(default_factory=dict)
    end_effector: EndEffectorSample | None = None

    @property
    def has_joint_data(self) -> bool:
        return bool(self.joint_values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": float(self.timestamp),
            "jointValues": {str(k): float(v) for k, v in self.joint_values.items()},
        }


@dataclass(frozen=True)
class Trajectory:
    name: str
    robot_id: str
    frames: tuple[TrajectoryFrame, ...]
    duration: float
    recorded_at: str = field(default_factory=utc_now_iso)
    end_effector_path: tuple[EndEffectorSample, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "frames", tuple(self.frames))
        object.__setattr__(self, "end_effector_path", tuple(self.end_effector_path))
        if not math.isfinite(self.duration) or self.duration < 0.0:
            raise TrajectoryEmptyOrMalformed(f"trajectory {self.name!r}: invalid duration {self.duration}")
        previous = 0.0
        for i, frame in enumerate(self.frames):
            ts = frame.timestamp
            if not math.isfinite(ts) or ts < 0.0:
                raise TrajectoryEmptyOrMalformed(f"trajectory {self.name!r}: frame {i} has invalid timestamp {ts}")
            if ts < previous:
                raise TrajectoryEmptyOrMalformed(
                    f"trajectory {self.name!r}: frame {i} timestamp {ts} precedes {previous}"
                )
            previous = ts

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def joint_names(self) -> list[str]:
        names: dict[str, None] = {}
        for frame in self.frames:
            names.update(dict.fromkeys(frame.joint_values))
        return list(names)

    def timestamps(self) -> NDArray[np.float64]:
        return np.array([f.timestamp for f in self.frames], dtype=float)

    def valid_frames(self) -> list[TrajectoryFrame]:
        return [f for f in self.frames if f.has_joint_data]

    def first_valid_frame(self) -> TrajectoryFrame | None:
        return next((f for f in self.frames if f.has_joint_data), None)

    def last_valid_frame(self) -> TrajectoryFrame | None:
        return next((f for f in reversed(self.frames) if f.has_joint_data), None)

    # ---- document codec ----
    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "robotId": self.robot_id,
            "duration": float(self.duration),
            "frameCount": self.frame_count,
            "recordedAt": self.recorded_at,
            "frames": [f.to_dict() for f in self.frames],
            "endEffectorPath": [s.to_dict() for s in self.end_effector_path],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Trajectory":
        try:
            raw_frames = data["frames"] if "frames" in data else data["keyframes"]
            raw_path = data.get("endEffectorPath")
            path = [EndEffectorSample.from_dict(p) for p in raw_path or [] if p]
            by_time: dict[float, EndEffectorSample] = {}
            for sample in path:
                by_time.setdefault(sample.timestamp, sample)

            frames: list[TrajectoryFrame] = []
            for raw in raw_frames:
                ts = float(raw["timestamp"] if "timestamp" in raw else raw["time"])
                values = {str(k): float(v) for k, v in (raw.get("jointValues") or {}).items()}
                ee = by_time.get(ts)
                legacy = raw.get("endEffector") or raw.get("endEffectorPosition")
                if ee is None and legacy:
                    ee = EndEffectorSample.from_dict(legacy, timestamp=ts)
                frames.append(TrajectoryFrame(ts, values, ee))

            if raw_path is None:
                path = [f.end_effector for f in frames if f.end_effector is not None]
            duration = float(data["duration"]) if "duration" in data else (frames[-1].timestamp if frames else 0.0)
            trajectory = cls(
                name=str(data["name"]),
                robot_id=str(data.get("robotId", data.get("robot_id", ""))),
                frames=tuple(frames),
                duration=duration,
                recorded_at=str(data.get("recordedAt", "")),
                end_effector_path=tuple(path),
            )
        except TrajectoryEmptyOrMalformed:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise TrajectoryEmptyOrMalformed(f"malformed trajectory document: {exc!r}") from exc
        declared = data.get("frameCount")
        if declared is not None and declared != trajectory.frame_count:
            logger.warning(
                "Trajectory %r declares %s frames but holds %d", trajectory.name, declared, trajectory.frame_count
            )
        return trajectory

    @classmethod
    def from_json(cls, text: str) -> "Trajectory":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise TrajectoryEmptyOrMalformed(f"trajectory is not valid JSON: {exc}") from exc
        if not isinstance(data, Mapping):
            raise TrajectoryEmptyOrMalformed("trajectory document must be a JSON object")
        return cls.from_dict(data)


def build_trajectory(
    name: str,
    robot_id: str,
    frames: Iterable[TrajectoryFrame],
    duration: float | None = None,
    recorded_at: str | None = None,
) -> Trajectory:
    """Freeze frames into a trajectory, collecting the end-effector path from them."""
    frame_list = tuple(frames)
    if duration is None:
        duration = frame_list[-1].timestamp if frame_list else 0.0
    return Trajectory(
        name=name,
        robot_id=robot_id,
        frames=frame_list,
        duration=float(duration),
        recorded_at=recorded_at or utc_now_iso(),
        end_effector_path=tuple(f.end_effector for f in frame_list if f.end_effector is not None),
    )


def sample_from_pose(timestamp: float, position: Sequence[float], orientation: Sequence[float]) -> EndEffectorSample:
    return EndEffectorSample(
        timestamp=float(timestamp),
        position=tuple(float(v) for v in position),  # type: ignore[arg-type]
        orientation=tuple(float(v) for v in orientation),  # type: ignore[arg-type]
    )


__all__ = [
    "EndEffectorSample",
    "Trajectory",
    "TrajectoryFrame",
    "build_trajectory",
    "sample_from_pose",
    "utc_now_iso",
]
