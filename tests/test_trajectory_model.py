import json
import logging

import pytest

from armmotion.core.errors import TrajectoryEmptyOrMalformed
from armmotion.model.presets import planar_3r
from armmotion.trajectory.model import (
    EndEffectorSample,
    Trajectory,
    TrajectoryFrame,
    build_trajectory,
    sample_from_pose,
)
from armmotion.trajectory.recorder import TrajectoryRecorder


def _recorded() -> Trajectory:
    frames = [
        TrajectoryFrame(0.0, {"joint1": 0.0}, sample_from_pose(0.0, (3.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0))),
        TrajectoryFrame(100.0, {"joint1": 0.5}, sample_from_pose(100.0, (2.5, 1.0, 0.0), (0.0, 0.0, 0.2, 0.98))),
    ]
    return build_trajectory("wave", "planar3r", frames, 150.0, recorded_at="2024-01-01T00:00:00+00:00")


def test_document_layout():
    data = _recorded().to_dict()
    assert list(data) == ["name", "robotId", "duration", "frameCount", "recordedAt", "frames", "endEffectorPath"]
    assert data["frameCount"] == 2
    assert data["frames"][1] == {"timestamp": 100.0, "jointValues": {"joint1": 0.5}}
    assert data["endEffectorPath"][1]["position"] == {"x": 2.5, "y": 1.0, "z": 0.0}
    assert data["endEffectorPath"][0]["orientation"] == {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}


def test_json_round_trip_reattaches_path_samples():
    original = _recorded()
    loaded = Trajectory.from_json(original.to_json())
    assert loaded.to_dict() == original.to_dict()
    assert loaded.frames[1].end_effector == original.frames[1].end_effector


def test_legacy_keyframes_document():
    doc = {
        "name": "old",
        "robotId": "arm",
        "keyframes": [
            {"time": 0, "jointValues": {"j": 0.1}, "endEffectorPosition": {"x": 1, "y": 2, "z": 3}},
            {"time": 50, "jointValues": {"j": 0.2}},
        ],
    }
    trajectory = Trajectory.from_dict(doc)
    assert trajectory.duration == 50.0
    assert trajectory.frames[0].end_effector.position == (1.0, 2.0, 3.0)
    assert trajectory.frames[0].end_effector.orientation == (0.0, 0.0, 0.0, 1.0)
    assert len(trajectory.end_effector_path) == 1
    assert "keyframes" not in trajectory.to_dict()


def test_frame_count_mismatch_only_warns(caplog):
    doc = _recorded().to_dict()
    doc["frameCount"] = 7
    with caplog.at_level(logging.WARNING, logger="armmotion.trajectory.model"):
        trajectory = Trajectory.from_dict(doc)
    assert trajectory.frame_count == 2
    assert "declares 7 frames" in caplog.text


@pytest.mark.parametrize(
    "doc",
    [
        {"robotId": "r", "frames": []},
        {"name": "n", "frames": [{"jointValues": {}}]},
        {"name": "n", "frames": [{"timestamp": "soon"}]},
        {"name": "n", "frames": [{"timestamp": 10}, {"timestamp": 5}]},
        {"name": "n", "frames": [{"timestamp": -1}]},
        {"name": "n", "duration": -3, "frames": []},
        {"name": "n", "frames": [{"timestamp": 0, "jointValues": {"a": "x"}}]},
    ],
)
def test_malformed_documents_raise(doc):
    with pytest.raises(TrajectoryEmptyOrMalformed):
        Trajectory.from_dict(doc)


def test_from_json_rejects_non_objects():
    with pytest.raises(TrajectoryEmptyOrMalformed):
        Trajectory.from_json("[1, 2]")
    with pytest.raises(TrajectoryEmptyOrMalformed):
        Trajectory.from_json("{not json")


def test_valid_frame_helpers():
    frames = [TrajectoryFrame(0.0), TrajectoryFrame(10.0, {"a": 1.0}), TrajectoryFrame(20.0, {"b": 2.0}),
              TrajectoryFrame(30.0)]
    trajectory = build_trajectory("t", "r", frames)
    assert trajectory.duration == 30.0
    assert [f.timestamp for f in trajectory.valid_frames()] == [10.0, 20.0]
    assert trajectory.first_valid_frame().timestamp == 10.0
    assert trajectory.last_valid_frame().timestamp == 20.0
    assert trajectory.joint_names == ["a", "b"]


def test_equal_timestamps_are_allowed():
    trajectory = build_trajectory("t", "r", [TrajectoryFrame(5.0, {"a": 0.0}), TrajectoryFrame(5.0, {"a": 1.0})])
    assert trajectory.timestamps().tolist() == [5.0, 5.0]


def test_sample_from_dict_accepts_plain_xyz():
    sample = EndEffectorSample.from_dict({"x": 1, "y": 2, "z": 3, "time": 40})
    assert sample.timestamp == 40.0
    assert sample.position == (1.0, 2.0, 3.0)


def test_document_is_json_serialisable():
    text = _recorded().to_json()
    assert json.loads(text)["name"] == "wave"


def test_recorded_trajectory_json_is_byte_stable():
    chain = planar_3r()
    recorder = TrajectoryRecorder()
    session = recorder.start("sweep", chain, 100.0, now=0.0)
    for i in range(1, 4):
        chain.set_joint_values({"joint1": 0.3 * i, "joint3": -0.2 * i})
        recorder.tick(session, 100.0 * i)
    trajectory = recorder.stop(session, now=350.0)

    text = trajectory.to_json()
    assert Trajectory.from_json(text).to_json() == text
