"""Tests for the ramp curve"""
import pytest

from txload.models.run_config import RunConfig, Stage
from txload.scheduler.ramp import RampSchedule


@pytest.fixture
def load_profile():
    """2m up to 100, 5m hold, 2m down to 0, 30s grace"""
    return RampSchedule(
        [Stage(duration="2m", target=100), Stage(duration="5m", target=100), Stage(duration="2m", target=0)],
        graceful_ramp_down=30.0,
    )


def test_starts_at_start_vus(load_profile):
    assert load_profile.active_worker_count(0) == 0
    assert load_profile.active_worker_count(-5) == 0


def test_linear_ramp_up(load_profile):
    assert load_profile.active_worker_count(60) == 50
    assert load_profile.active_worker_count(119.9) == 99
    assert load_profile.active_worker_count(120) == 100


def test_hold_stage(load_profile):
    for t in (120, 200, 300, 419.9):
        assert load_profile.active_worker_count(t) == 100


def test_linear_ramp_down(load_profile):
    assert load_profile.active_worker_count(420) == 100
    assert load_profile.active_worker_count(480) == 50
    assert load_profile.active_worker_count(539) == 0


def test_after_last_stage_holds_until_grace_then_zero():
    schedule = RampSchedule([Stage(duration=10, target=5)], graceful_ramp_down=30)
    assert schedule.active_worker_count(10) == 5
    assert schedule.active_worker_count(39.9) == 5
    assert schedule.active_worker_count(40) == 0
    assert schedule.active_worker_count(1000) == 0


def test_zero_duration_stage_is_a_step():
    schedule = RampSchedule([Stage(duration=0, target=7), Stage(duration=10, target=7)])
    assert schedule.active_worker_count(0) == 7
    assert schedule.active_worker_count(5) == 7


def test_start_vus_is_ramp_origin():
    schedule = RampSchedule([Stage(duration=10, target=20)], start_vus=10)
    assert schedule.active_worker_count(0) == 10
    assert schedule.active_worker_count(5) == 15


def test_never_leaves_bracketing_targets(load_profile):
    """Sweep the whole run: count stays between the two bracketing targets"""
    boundaries = [(0.0, 120.0, 0, 100), (120.0, 420.0, 100, 100), (420.0, 540.0, 100, 0)]
    for start, end, previous, target in boundaries:
        steps = 500
        for i in range(steps):
            t = start + (end - start) * i / steps
            count = load_profile.active_worker_count(t)
            assert min(previous, target) <= count <= max(previous, target), t


def test_monotonic_within_stage(load_profile):
    counts = [load_profile.active_worker_count(t / 10) for t in range(0, 1200)]
    assert counts == sorted(counts)
    counts = [load_profile.active_worker_count(420 + t / 10) for t in range(0, 1200)]
    assert counts == sorted(counts, reverse=True)


def test_from_config():
    config = RunConfig(stages=[(10, 4)], graceful_ramp_down=5, start_vus=2)
    schedule = RampSchedule.from_config(config)
    assert schedule.total_duration == 10
    assert schedule.start_vus == 2
    assert schedule.graceful_ramp_down == 5
