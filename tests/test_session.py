import pathlib

import numpy as np
import pytest

from armmotion.core.config import MotionConfig, PlaybackOptions, RecordingOptions
from armmotion.core.errors import AnimationCancelled, MotionStatus
from armmotion.core.events import EventKind
from armmotion.model.presets import planar_3r
from armmotion.session import RobotSession
from armmotion.solvers.end_effector import ToolOffset
from armmotion.trajectory.store import JsonDirectoryTrajectoryStore, MemoryTrajectoryStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _session(**kwargs):
    clock = FakeClock()
    session = RobotSession(planar_3r(), clock=clock, **kwargs)
    kinds = []
    session.subscribe(lambda e: kinds.append(e))
    return session, clock, kinds


def _run(session, clock, until, step=50.0):
    while clock.now < until:
        clock.now += step
        session.tick()


def test_end_effector_and_tool_events():
    session, _, events = _session()
    np.testing.assert_allclose(session.end_effector().position, [3.0, 0.0, 0.0], atol=1e-12)
    session.attach_tool(ToolOffset(position=(0.5, 0.0, 0.0)))
    np.testing.assert_allclose(session.end_effector().position, [3.5, 0.0, 0.0], atol=1e-12)
    session.update_tool(ToolOffset(position=(0.25, 0.0, 0.0)))
    assert session.detach_tool()
    assert not session.detach_tool()
    assert [e.kind for e in events] == [EventKind.TOOL_ATTACHED, EventKind.TOOL_TRANSFORMED, EventKind.TOOL_DETACHED]


def test_solve_emits_events_and_keeps_chain():
    session, _, events = _session()
    solution = session.solve((2.0, 1.0, 0.0))
    assert solution is not None
    assert session.joint_values() == {"joint1": 0.0, "joint2": 0.0, "joint3": 0.0}
    assert events[0].kind is EventKind.SOLVE_STARTED
    assert events[-1].kind in (EventKind.SOLVE_SUCCEEDED, EventKind.SOLVE_FAILED)
    assert events[-1].payload["values"] == solution.as_dict()


def test_invalid_target_is_reported_not_raised():
    session, _, events = _session()
    assert session.solve((1.0, 2.0)) is None
    statuses = [e.status for e in events if e.kind is EventKind.STATUS]
    assert statuses == [MotionStatus.INVALID_TARGET]
    assert events[-1].kind is EventKind.SOLVE_FAILED


def test_session_without_chain_reports_not_ready():
    session = RobotSession(None)
    seen = []
    session.subscribe(seen.append, [EventKind.STATUS])
    assert session.solve((0.0, 0.0, 0.0)) is None
    assert session.end_effector() is None
    assert session.animate_to({"joint1": 1.0}) is None
    assert session.start_recording("x") is None
    assert not session.jog({"joint1": 1.0})
    assert session.joint_values() == {}
    assert seen[0].status is MotionStatus.ROBOT_NOT_READY
    assert seen[1].status is MotionStatus.NO_END_EFFECTOR_FOUND


def test_move_to_animates_toward_solution():
    session, clock, _ = _session(config=MotionConfig(ik=MotionConfig().ik._replace(max_iterations=200)))
    task = session.move_to((1.5, 1.5, 0.0), duration_ms=500.0)
    assert task is not None
    assert session.busy
    _run(session, clock, 600.0)
    assert not session.busy
    assert task.result.result() is True
    np.testing.assert_allclose(session.end_effector().position, [1.5, 1.5, 0.0], atol=0.01)


def test_jog_cancels_running_animation():
    session, clock, events = _session()
    task = session.animate_to({"joint1": 1.0}, duration_ms=1000.0)
    clock.now = 100.0
    session.tick()
    assert session.jog({"joint2": 0.5})
    assert isinstance(task.result.exception(), AnimationCancelled)
    assert session.joint_values()["joint2"] == 0.5
    assert events[-1].kind is EventKind.JOINTS_CHANGED


def test_record_then_play_from_store():
    store = MemoryTrajectoryStore()
    config = MotionConfig(recording=RecordingOptions(sample_interval_ms=100.0),
                          playback=PlaybackOptions(settle_ms=0.0))
    session, clock, _ = _session(config=config, store=store)
    assert session.start_recording("sweep", now=0.0) is not None
    assert session.start_recording("again") is None
    for i in range(1, 5):
        session.jog({"joint1": 0.1 * i})
        clock.now = 100.0 * i
        session.tick()
    trajectory = session.stop_recording(now=500.0)
    assert trajectory.frame_count == 5
    assert trajectory.duration == 500.0
    assert [info.id for info in store.list()] == ["planar3r__sweep"]

    session.jog({"joint1": 0.0})
    completed = []
    playback = session.play_stored("planar3r__sweep", on_complete=lambda: completed.append(True))
    assert playback is not None
    clock.now = 1000.0
    session.tick()
    _run(session, clock, 1600.0)
    assert completed == [True]
    assert session.joint_values()["joint1"] == pytest.approx(0.4)


def test_persistence_failure_is_reported(tmp_path: pathlib.Path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    session, _, events = _session(store=JsonDirectoryTrajectoryStore(blocker / "nested"))
    session.start_recording("lost", now=0.0)
    trajectory = session.stop_recording(now=100.0)
    assert trajectory is not None
    assert session.last_trajectory is trajectory
    assert [e.status for e in events if e.kind is EventKind.STATUS] == [MotionStatus.TRAJECTORY_PERSISTENCE_FAILURE]


def test_play_stored_without_store_or_id():
    session, _, events = _session()
    assert session.play_stored("planar3r__none") is None
    session.store = MemoryTrajectoryStore()
    assert session.play_stored("planar3r__none") is None
    assert events[-1].status is MotionStatus.TRAJECTORY_PERSISTENCE_FAILURE


def test_stop_cancels_playback():
    session, clock, _ = _session()
    session.start_recording("short", now=0.0)
    trajectory = session.stop_recording(now=300.0)
    playback = session.play(trajectory)
    session.tick()
    assert session.stop()
    assert not playback.active
    assert not session.busy
    assert not session.stop()
