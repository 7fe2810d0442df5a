import math

import numpy as np
import pytest

from conftest import make_series
from quake_engine import (
    EVENT_HISTORY, QuakeParameters, QuakeReplay, QuakeState, QuakeStateMachine
)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(10.0)


@pytest.fixture
def machine(clock):
    return QuakeStateMachine(clock=clock, rng=np.random.default_rng(42))


def test_starts_quiescent_with_baseline_frame(machine):
    assert machine.state is QuakeState.QUIESCENT
    frame = machine.update()
    assert not frame.active
    assert frame.intensity == 0.0
    assert frame.offset == (0.0, 0.0, 0.0)
    assert frame.message == ""


def test_threshold_is_strict(machine):
    assert machine.check(100.0) is None
    assert machine.check(-100.0) is None
    assert not machine.active


def test_crossing_threshold_activates(machine, clock):
    event = machine.check(-150.0)

    assert event.state is QuakeState.ACTIVE
    assert machine.active
    assert machine.start_time == clock.now
    assert machine.frame.intensity == pytest.approx(0.15)
    assert machine.frame.message == "Marsquake! Magnitude: -150.00"


def test_entry_intensity_is_capped(machine):
    machine.check(5000.0)
    assert machine.frame.intensity == 1.0


def test_staying_above_threshold_keeps_start_time(machine, clock):
    machine.check(200.0)
    clock.now += 3.0

    assert machine.check(400.0) is None
    assert machine.start_time == 10.0
    assert machine.frame.message == "Marsquake! Magnitude: 200.00"


def test_dropping_below_threshold_resets(machine, clock):
    machine.check(200.0)
    clock.now += 0.5
    machine.update()

    event = machine.check(20.0)

    assert event.state is QuakeState.QUIESCENT
    assert not machine.active
    frame = machine.update()
    assert frame.intensity == 0.0
    assert frame.shader_time == 0.0
    assert frame.offset == (0.0, 0.0, 0.0)
    assert frame.message == ""


def test_quiescent_check_below_threshold_is_noop(machine):
    assert machine.check(5.0) is None
    assert len(machine.events) == 0


def test_update_follows_sine_curve(machine, clock):
    machine.check(300.0)
    clock.now += 0.25

    frame = machine.update()

    expected = math.sin(0.25 * 2.0) * 0.5 + 0.5
    assert frame.active
    assert frame.intensity == pytest.approx(expected)
    assert frame.shader_time == pytest.approx(0.5)
    for axis in frame.offset:
        assert 0.0 <= axis < expected * 0.01
    assert frame.message == "Marsquake! Magnitude: 300.00"


def test_intensity_stays_in_unit_range(machine, clock):
    machine.check(999.0)
    for step in range(200):
        clock.now += 0.037
        frame = machine.update()
        assert 0.0 <= frame.intensity <= 1.0


def test_listeners_receive_transitions(machine):
    seen = []
    machine.listeners.append(seen.append)

    machine.check(150.0)
    machine.check(150.0)
    machine.check(0.0)

    assert [e.state for e in seen] == [QuakeState.ACTIVE, QuakeState.QUIESCENT]
    assert list(machine.events) == seen


def test_reset_returns_to_baseline_silently(machine):
    machine.check(150.0)
    machine.reset()

    assert not machine.active
    assert machine.update().intensity == 0.0
    assert len(machine.events) == 1


@pytest.mark.parametrize("kwargs", [
    {"threshold": 0.0},
    {"intensity_scale": -1.0},
    {"jitter_amplitude": -0.1},
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        QuakeParameters(**kwargs)


def test_replay_finds_episodes():
    series = make_series([0, 150, 200, 50, 120, 0, 500])

    episodes = QuakeReplay(series).run()

    assert [(e.start_index, e.end_index) for e in episodes] == [(1, 3), (4, 5), (6, 7)]
    assert [e.peak_velocity for e in episodes] == [200.0, 120.0, 500.0]
    assert episodes[0].entry_intensity == pytest.approx(0.15)
    assert episodes[2].entry_intensity == pytest.approx(0.5)
    assert episodes[0].start_time == "2022-01-02T04:00:00.050Z"
    assert episodes[0].end_time == "2022-01-02T04:00:00.100Z"
    assert episodes[0].sample_count == 2


def test_replay_peak_keeps_sign_of_largest_magnitude():
    series = make_series([0, 120, -900, 300, 0])

    episodes = QuakeReplay(series, QuakeParameters(threshold=100.0)).run()

    assert len(episodes) == 1
    assert episodes[0].peak_velocity == -900.0
    assert episodes[0].to_dict()["sample_count"] == 3


def test_replay_quiet_trace():
    assert QuakeReplay(make_series([1, -2, 3])).run() == []


def test_event_history_is_bounded(machine):
    for _ in range(EVENT_HISTORY * 3):
        machine.check(500.0)
        machine.check(0.0)

    assert len(machine.events) == EVENT_HISTORY
    assert machine.events[-1].state is QuakeState.QUIESCENT
