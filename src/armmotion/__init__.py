from .core.errors import (
    AnimationCancelled,
    InvalidTarget,
    MotionError,
    MotionStatus,
    NoEndEffectorFound,
    RobotNotReady,
    SolveNotConverged,
    TrajectoryEmptyOrMalformed,
    TrajectoryPersistenceFailure,
)
from .core.events import EventChannel, EventKind, MotionEvent
from .core.config import MotionConfig, load_config
from .model.chain import JointType, KinematicChain
from .model.presets import arm_6r, build_preset, planar_3r
from .solvers.end_effector import EndEffectorResolver, ToolOffset
from .solvers.ik_solver import IKOptions, IKSolution, IKSolver, IKTarget
from .control.animator import AnimationTask, JointAnimator
from .trajectory.model import Trajectory, TrajectoryFrame
from .trajectory.player import TrajectoryPlayer
from .trajectory.recorder import TrajectoryRecorder
from .trajectory.store import JsonDirectoryTrajectoryStore, MemoryTrajectoryStore
from .session import RobotSession

__all__ = [
    "AnimationCancelled",
    "AnimationTask",
    "EndEffectorResolver",
    "EventChannel",
    "EventKind",
    "IKOptions",
    "IKSolution",
    "IKSolver",
    "IKTarget",
    "InvalidTarget",
    "JointAnimator",
    "JointType",
    "JsonDirectoryTrajectoryStore",
    "KinematicChain",
    "MemoryTrajectoryStore",
    "MotionConfig",
    "MotionError",
    "MotionEvent",
    "MotionStatus",
    "NoEndEffectorFound",
    "RobotNotReady",
    "RobotSession",
    "SolveNotConverged",
    "ToolOffset",
    "Trajectory",
    "TrajectoryEmptyOrMalformed",
    "TrajectoryFrame",
    "TrajectoryPersistenceFailure",
    "TrajectoryPlayer",
    "TrajectoryRecorder",
    "arm_6r",
    "build_preset",
    "load_config",
    "planar_3r",
]
