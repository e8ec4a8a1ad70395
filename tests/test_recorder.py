import logging

import pytest

from armmotion.core.events import EventChannel, EventKind
from armmotion.model.chain import KinematicChain
from armmotion.model.presets import planar_3r
from armmotion.solvers.end_effector import ToolOffset
from armmotion.trajectory.recorder import TrajectoryRecorder


def test_recording_samples_on_cadence():
    chain = planar_3r()
    recorder = TrajectoryRecorder()
    session = recorder.start("wave", chain, 100.0, now=1000.0)
    for i, t in enumerate((1100.0, 1200.0, 1300.0, 1400.0), start=1):
        chain.set_joint_values({"joint1": 0.1 * i})
        assert recorder.tick(session, t) is not None

    trajectory = recorder.stop(session, now=1500.0)

    assert trajectory.frame_count == 5
    assert trajectory.duration == pytest.approx(500.0)
    assert trajectory.timestamps().tolist() == [0.0, 100.0, 200.0, 300.0, 400.0]
    assert trajectory.frames[-1].joint_values["joint1"] == pytest.approx(0.4)
    assert trajectory.name == "wave"
    assert trajectory.robot_id == "planar3r"
    assert len(trajectory.end_effector_path) == 5
    assert trajectory.frames[0].end_effector.position == pytest.approx((3.0, 0.0, 0.0))


def test_tick_before_due_does_nothing_and_late_ticks_add_one_frame():
    chain = planar_3r()
    recorder = TrajectoryRecorder()
    session = recorder.start("gaps", chain, 100.0, now=0.0)
    assert recorder.tick(session, 50.0) is None
    frame = recorder.tick(session, 350.0)
    assert frame.timestamp == pytest.approx(350.0)
    assert len(session.frames) == 2
    assert session.next_due == pytest.approx(400.0)


def test_recorder_never_writes_joints():
    chain = planar_3r()
    chain.set_joint_values({"joint2": 0.7})
    before = chain.joint_values()
    recorder = TrajectoryRecorder()
    session = recorder.start("still", chain, 50.0, now=0.0)
    recorder.tick(session, 50.0)
    recorder.stop(session, now=60.0)
    assert chain.joint_values() == before


def test_frames_beyond_cap_are_dropped_with_one_warning(caplog):
    chain = planar_3r()
    recorder = TrajectoryRecorder(max_frames=3)
    session = recorder.start("long", chain, 10.0, now=0.0)
    with caplog.at_level(logging.WARNING, logger="armmotion.trajectory.recorder"):
        for t in range(10, 100, 10):
            recorder.tick(session, float(t))
    assert len(session.frames) == 3
    assert session.dropped == 7
    assert sum("further samples are dropped" in r.message for r in caplog.records) == 1


def test_chain_without_joints_records_no_frames():
    recorder = TrajectoryRecorder()
    session = recorder.start("empty", KinematicChain(), 100.0, now=0.0)
    recorder.tick(session, 100.0)
    trajectory = recorder.stop(session, now=150.0)
    assert trajectory.frame_count == 0
    assert trajectory.duration == pytest.approx(150.0)


def test_manual_keyframe_and_stop_is_idempotent():
    chain = planar_3r()
    recorder = TrajectoryRecorder()
    session = recorder.start("keys", chain, 1000.0, now=0.0)
    recorder.record_frame(session, {"joint1": 0.5}, now=20.0)
    first = recorder.stop(session, now=40.0)
    assert recorder.stop(session, now=90.0) is first
    assert recorder.tick(session, 2000.0) is None
    assert [f.timestamp for f in first.frames] == [0.0, 20.0]


def test_tool_offset_is_recorded_in_path():
    chain = planar_3r()
    recorder = TrajectoryRecorder()
    session = recorder.start("tool", chain, 100.0, now=0.0, tool=ToolOffset(position=(0.5, 0.0, 0.0)))
    trajectory = recorder.stop(session, now=10.0)
    assert trajectory.end_effector_path[0].position == pytest.approx((3.5, 0.0, 0.0))


def test_invalid_arguments():
    recorder = TrajectoryRecorder()
    with pytest.raises(ValueError):
        recorder.start("", planar_3r())
    with pytest.raises(ValueError):
        recorder.start("x", planar_3r(), 0.0)


def test_recording_events():
    events = EventChannel()
    kinds = []
    events.subscribe(lambda e: kinds.append(e.kind))
    recorder = TrajectoryRecorder(events=events)
    session = recorder.start("ev", planar_3r(), 100.0, now=0.0)
    recorder.tick(session, 100.0)
    recorder.stop(session, now=150.0)
    assert kinds == [
        EventKind.RECORDING_STARTED,
        EventKind.FRAME_RECORDED,
        EventKind.FRAME_RECORDED,
        EventKind.RECORDING_STOPPED,
    ]
