import pytest

from armmotion.control.animator import AnimationTask, JointAnimator
from armmotion.control.scheduler import MotionSlot, TickResult
from armmotion.core.errors import AnimationCancelled
from armmotion.core.events import EventChannel, EventKind
from armmotion.model.presets import planar_3r


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_eased_animation_writes_start_midpoint_and_goal():
    chain = planar_3r()
    task = AnimationTask(chain, chain.joint_values(), {"joint1": 1.0, "joint2": -1.0}, 1000.0, "ease")

    assert task.tick(5000.0) is TickResult.CONTINUE
    assert chain.joint_values()["joint1"] == pytest.approx(0.0)

    task.tick(5500.0)
    assert chain.joint_values()["joint1"] == pytest.approx(0.5)
    assert chain.joint_values()["joint2"] == pytest.approx(-0.5)

    assert task.tick(6000.0) is TickResult.DONE
    assert chain.joint_values() == {"joint1": 1.0, "joint2": -1.0, "joint3": 0.0}
    assert task.result.result() is True


def test_linear_profile_progress():
    chain = planar_3r()
    task = AnimationTask(chain, {"joint1": 0.0}, {"joint1": 2.0}, 400.0, "linear", start_time=0.0)
    task.tick(100.0)
    assert task.progress == pytest.approx(0.25)
    assert chain.joint("joint1").get_angle() == pytest.approx(0.5)


def test_non_positive_duration_is_rejected():
    with pytest.raises(ValueError):
        AnimationTask(planar_3r(), {}, {"joint1": 1.0}, 0.0)


def test_unknown_profile_is_rejected():
    with pytest.raises(ValueError):
        AnimationTask(planar_3r(), {}, {"joint1": 1.0}, 100.0, "wobble")


def test_rate_limited_profile_stretches_duration():
    chain = planar_3r()
    task = AnimationTask(chain, chain.joint_values(), {"joint1": 2.0}, 100.0, "trapezoidal")
    assert task.duration == pytest.approx(2500.0)
    task.tick(0.0)
    task.tick(1250.0)
    assert chain.joint("joint1").get_angle() == pytest.approx(1.0)
    assert task.tick(2500.0) is TickResult.DONE
    assert chain.joint("joint1").get_angle() == 2.0


def test_cancel_fails_the_result_and_stops_writing():
    chain = planar_3r()
    task = AnimationTask(chain, chain.joint_values(), {"joint1": 1.0}, 1000.0, "linear")
    task.tick(0.0)
    task.tick(500.0)
    task.cancel("test")
    assert task.tick(900.0) is TickResult.CANCELLED
    assert chain.joint("joint1").get_angle() == pytest.approx(0.5)
    with pytest.raises(AnimationCancelled):
        task.result.result()


def test_new_animation_replaces_the_running_one():
    chain = planar_3r()
    clock = FakeClock()
    animator = JointAnimator(MotionSlot(), clock=clock)
    first = animator.animate(chain, chain.joint_values(), {"joint1": 1.0}, 1000.0)
    animator.tick()
    second = animator.animate(chain, chain.joint_values(), {"joint1": -1.0}, 1000.0)
    assert isinstance(first.result.exception(), AnimationCancelled)
    assert animator.slot.task is second
    clock.now = 2000.0
    animator.tick()
    clock.now = 3000.0
    assert animator.tick() is TickResult.DONE
    assert chain.joint("joint1").get_angle() == -1.0
    assert not animator.slot.active


def test_stop_leaves_joints_in_place():
    chain = planar_3r()
    clock = FakeClock()
    animator = JointAnimator(clock=clock)
    task = animator.animate(chain, chain.joint_values(), {"joint1": 1.0}, 1000.0, "linear")
    animator.tick()
    clock.now = 250.0
    animator.tick()
    assert animator.stop()
    clock.now = 800.0
    assert animator.tick() is None
    assert chain.joint("joint1").get_angle() == pytest.approx(0.25)
    assert task.done
    assert not animator.stop()


def test_suggested_duration_follows_slowest_joint():
    chain = planar_3r()
    animator = JointAnimator()
    start = chain.joint_values()
    assert animator.suggest_duration(chain, start, {"joint1": 2.0, "joint2": 0.5}) == pytest.approx(2000.0)
    assert animator.suggest_duration(chain, start, {"joint1": 0.1}) == pytest.approx(800.0)
    chain.joint("joint2").max_velocity = 0.25
    assert animator.suggest_duration(chain, start, {"joint2": 1.0}) == pytest.approx(4000.0)


def test_animation_events_in_order():
    chain = planar_3r()
    events = EventChannel()
    seen: list[EventKind] = []
    events.subscribe(lambda e: seen.append(e.kind))
    clock = FakeClock()
    animator = JointAnimator(clock=clock, events=events)
    animator.animate(chain, chain.joint_values(), {"joint1": 1.0}, 100.0)
    animator.tick()
    clock.now = 100.0
    animator.tick()
    assert seen == [
        EventKind.ANIMATION_STARTED,
        EventKind.ANIMATION_PROGRESS,
        EventKind.ANIMATION_PROGRESS,
        EventKind.ANIMATION_COMPLETED,
    ]


def test_failing_observer_does_not_break_animation():
    chain = planar_3r()
    events = EventChannel()

    def broken(event):
        raise RuntimeError("observer bug")

    events.subscribe(broken)
    task = AnimationTask(chain, chain.joint_values(), {"joint1": 1.0}, 100.0, events=events)
    task.tick(0.0)
    assert task.tick(100.0) is TickResult.DONE


def test_event_filter_and_unsubscribe():
    events = EventChannel()
    seen = []
    unsubscribe = events.subscribe(seen.append, [EventKind.STATUS])
    events.emit(EventKind.ANIMATION_STARTED, "r")
    events.emit(EventKind.STATUS, "r", message="hi")
    unsubscribe()
    events.emit(EventKind.STATUS, "r")
    assert [e.payload["message"] for e in seen] == ["hi"]
    assert len(events) == 0


@pytest.mark.parametrize("profile", ["ease", "quintic", "trapezoidal", "s-curve"])
def test_every_tick_stays_within_joint_limits(profile):
    chain = planar_3r(limits=(-0.5, 0.5))
    chain.set_joint_values({"joint1": -0.4, "joint2": 0.3})
    task = AnimationTask(chain, chain.joint_values(), {"joint1": 0.5, "joint2": -0.5, "joint3": 2.0}, 600.0, profile)

    now = 0.0
    while task.tick(now) is TickResult.CONTINUE:
        assert chain.within_limits()
        assert all(-0.5 <= v <= 0.5 for v in chain.joint_values().values())
        now += 16.0
    assert chain.joint_values() == {"joint1": 0.5, "joint2": -0.5, "joint3": 0.5}
