"""YAML configuration for solver, animation, recording and playback defaults.

Example ``armmotion.yaml``::

    ik:
      max_iterations: 20
      tolerance: 0.005
    animation:
      profile: s-curve
      max_velocity: 1.5
    recording:
      sample_interval_ms: 50
    playback:
      settle_ms: 100
    logging:
      level: DEBUG
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from armmotion.control.animator import MIN_SUGGESTED_DURATION_MS
from armmotion.control.profiles import DEFAULT_PROFILE, JointConstraints, check_profile
from armmotion.solvers.ik_solver import IKOptions

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class AnimationOptions(NamedTuple):
    profile: str = DEFAULT_PROFILE
    duration_ms: float | None = None  # None: derive from joint velocity caps
    min_duration_ms: float = MIN_SUGGESTED_DURATION_MS
    max_velocity: float = 1.0
    max_acceleration: float = 2.0
    max_jerk: float = 10.0

    def constraints(self) -> JointConstraints:
        return JointConstraints(self.max_velocity, self.max_acceleration, self.max_jerk)


class RecordingOptions(NamedTuple):
    sample_interval_ms: float = 100.0
    max_frames: int = 30_000


class PlaybackOptions(NamedTuple):
    speed: float = 1.0
    loop: bool = False
    align: bool = True
    align_tolerance: float = 1e-3
    settle_ms: float = 200.0
    interpolate: bool = False


class LoggingOptions(NamedTuple):
    level: str = "INFO"
    format: str = LOG_FORMAT


class MotionConfig(NamedTuple):
    ik: IKOptions = IKOptions()
    animation: AnimationOptions = AnimationOptions()
    recording: RecordingOptions = RecordingOptions()
    playback: PlaybackOptions = PlaybackOptions()
    logging: LoggingOptions = LoggingOptions()


_SECTIONS: dict[str, type[Any]] = {
    "ik": IKOptions,
    "animation": AnimationOptions,
    "recording": RecordingOptions,
    "playback": PlaybackOptions,
    "logging": LoggingOptions,
}


def _section(name: str, cls: type[Any], data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"config section {name!r} must be a mapping")
    unknown = set(data) - set(cls._fields)
    if unknown:
        raise ValueError(f"unknown keys in config section {name!r}: {sorted(unknown)}")
    return cls()._replace(**data)


def config_from_mapping(data: Mapping[str, Any] | None) -> MotionConfig:
    data = data or {}
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown config sections: {sorted(unknown)}")
    sections = {name: _section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    cfg = MotionConfig(**sections)
    check_profile(cfg.animation.profile)
    return cfg


def load_config(path: str | Path | None) -> MotionConfig:
    """Read a YAML config; a missing file yields the defaults with a warning."""
    if path is None:
        return MotionConfig()
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", p)
        return MotionConfig()
    if data is not None and not isinstance(data, Mapping):
        raise ValueError(f"{p}: expected a mapping at the top level")
    return config_from_mapping(data)


def configure_logging(level: str | int = "INFO", fmt: str = LOG_FORMAT) -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=fmt)
    logging.getLogger("armmotion").setLevel(level)


__all__ = [
    "AnimationOptions",
    "LOG_FORMAT",
    "LoggingOptions",
    "MotionConfig",
    "PlaybackOptions",
    "RecordingOptions",
    "config_from_mapping",
    "configure_logging",
    "load_config",
]
