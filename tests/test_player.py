import pytest

from armmotion.control.animator import JointAnimator
from armmotion.control.scheduler import MotionSlot, TickResult
from armmotion.core.errors import TrajectoryEmptyOrMalformed
from armmotion.core.events import EventChannel, EventKind
from armmotion.model.presets import planar_3r
from armmotion.trajectory.model import TrajectoryFrame, build_trajectory
from armmotion.trajectory.player import PlaybackPhase, TrajectoryPlayer


def _ramp(name: str = "ramp", duration: float = 500.0):
    frames = [TrajectoryFrame(100.0 * i, {"joint1": 0.1 * i}) for i in range(5)]
    return build_trajectory(name, "planar3r", frames, duration)


def _player(events=None, **kwargs) -> TrajectoryPlayer:
    return TrajectoryPlayer(JointAnimator(MotionSlot(), clock=lambda: 0.0, events=events), events, **kwargs)


def test_playback_follows_frame_timestamps():
    chain = planar_3r()
    player = _player()
    seen = []
    done = []
    session = player.play(chain, _ramp(), on_frame=lambda f, p: seen.append(f.timestamp),
                          on_complete=lambda: done.append(True))
    assert session.phase is PlaybackPhase.PLAYING

    player.tick(1000.0)
    assert chain.joint("joint1").get_angle() == 0.0
    player.tick(1250.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.2)
    assert player.progress(session, 1250.0) == pytest.approx(0.5)
    assert player.tick(1500.0) is TickResult.DONE

    assert chain.joint("joint1").get_angle() == pytest.approx(0.4)
    assert seen == [0.0, 200.0, 400.0]
    assert done == [True]
    assert not player.slot.active
    assert player.progress(session, 1600.0) == 1.0


def test_double_speed_finishes_in_half_the_time():
    chain = planar_3r()
    player = _player()
    player.play(chain, _ramp(), speed=2.0)
    player.tick(0.0)
    assert player.tick(200.0) is TickResult.CONTINUE
    assert chain.joint("joint1").get_angle() == pytest.approx(0.4)
    assert player.tick(250.0) is TickResult.DONE


def test_misaligned_chain_is_eased_to_first_frame_then_settles():
    chain = planar_3r()
    chain.set_joint_values({"joint1": 1.0})
    player = _player(settle_ms=200.0)
    session = player.play(chain, _ramp())
    assert session.phase is PlaybackPhase.ALIGNING

    player.tick(0.0)
    player.tick(1000.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.0)
    assert session.phase is PlaybackPhase.SETTLING
    player.tick(1100.0)
    assert session.phase is PlaybackPhase.SETTLING
    player.tick(1200.0)
    assert session.phase is PlaybackPhase.PLAYING
    player.tick(1500.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.3)


def test_alignment_can_be_disabled():
    chain = planar_3r()
    chain.set_joint_values({"joint1": 1.0})
    player = _player(align=False)
    session = player.play(chain, _ramp())
    assert session.phase is PlaybackPhase.PLAYING
    player.tick(0.0)
    assert chain.joint("joint1").get_angle() == 0.0


def test_loop_restarts_after_last_frame():
    chain = planar_3r()
    player = _player()
    session = player.play(chain, _ramp(), loop=True)
    player.tick(0.0)
    assert player.tick(500.0) is TickResult.CONTINUE
    assert chain.joint("joint1").get_angle() == pytest.approx(0.4)
    assert session.loops == 1
    player.tick(610.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.1)
    assert player.slot.active


def test_interpolated_playback_blends_between_frames():
    chain = planar_3r()
    player = _player()
    player.play(chain, _ramp(), interpolate=True)
    player.tick(0.0)
    player.tick(150.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.15)


def test_stop_emits_playback_stopped_and_freezes_chain():
    chain = planar_3r()
    events = EventChannel()
    kinds = []
    events.subscribe(lambda e: kinds.append(e.kind))
    player = _player(events)
    session = player.play(chain, _ramp())
    player.tick(0.0)
    player.tick(250.0)
    assert player.stop(session)
    assert player.tick(400.0) is None
    assert chain.joint("joint1").get_angle() == pytest.approx(0.2)
    assert not session.active
    assert kinds[0] is EventKind.PLAYBACK_STARTED
    assert kinds[-1] is EventKind.PLAYBACK_STOPPED
    assert EventKind.PLAYBACK_COMPLETED not in kinds


def test_new_playback_replaces_running_animation():
    chain = planar_3r()
    player = _player()
    task = player.animator.animate(chain, chain.joint_values(), {"joint2": 1.0}, 1000.0)
    player.play(chain, _ramp())
    assert task.done
    assert task.result.exception() is not None


def test_frames_without_joint_data_are_skipped():
    frames = [TrajectoryFrame(0.0, {}), TrajectoryFrame(100.0, {"joint1": 0.3})]
    trajectory = build_trajectory("sparse", "planar3r", frames, 200.0)
    chain = planar_3r()
    player = _player(align=False)
    session = player.play(chain, trajectory)
    assert len(session.frames) == 1
    player.tick(0.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.3)


def test_empty_trajectory_and_bad_speed_are_rejected():
    chain = planar_3r()
    player = _player()
    with pytest.raises(TrajectoryEmptyOrMalformed):
        player.play(chain, build_trajectory("empty", "planar3r", []))
    with pytest.raises(ValueError):
        player.play(chain, _ramp(), speed=0.0)
    assert chain.joint_values() == {"joint1": 0.0, "joint2": 0.0, "joint3": 0.0}


def test_zero_duration_trajectory_completes_on_first_tick():
    trajectory = build_trajectory("pose", "planar3r", [TrajectoryFrame(0.0, {"joint1": 0.0})])
    player = _player()
    player.play(planar_3r(), trajectory)
    assert player.tick(0.0) is TickResult.DONE
