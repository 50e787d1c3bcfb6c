"""Tests for the heading segmentation state machine."""

from __future__ import annotations

import math

import pytest

from conftest import hold
from ekinavi.core.errors import InvalidInputError, InvalidStateError
from ekinavi.core.models import EventKind, HeadingSample, Status
from ekinavi.core.narration import assemble
from ekinavi.core.segmentation import (
    Confirmed,
    PendingRevert,
    SegmentationEngine,
    apply_hysteresis,
    classify,
    normalize_angle,
    relative_angle,
)


def run(engine: SegmentationEngine, samples) -> list:
    return [e for e in (engine.tick(s) for s in samples) if e is not None]


@pytest.fixture
def engine():
    eng = SegmentationEngine()
    eng.start(0.0)
    return eng


# ── classification ───────────────────────────────────────────────────────────

@pytest.mark.parametrize("rel, expected", [
    (0.0, Status.STRAIGHT),
    (30.0, Status.STRAIGHT),
    (30.01, Status.TURNING_RIGHT),
    (90.0, Status.TURNING_RIGHT),
    (149.99, Status.TURNING_RIGHT),
    (150.0, Status.STRAIGHT),
    (180.0, Status.STRAIGHT),
    (210.0, Status.STRAIGHT),
    (210.5, Status.TURNING_LEFT),
    (270.0, Status.TURNING_LEFT),
    (329.9, Status.TURNING_LEFT),
    (330.0, Status.STRAIGHT),
    (359.9, Status.STRAIGHT),
])
def test_classify(rel, expected):
    assert classify(rel) is expected


@pytest.mark.parametrize("angle, expected", [
    (-90.0, 270.0),
    (720.0, 0.0),
    (365.0, 5.0),
    (-1e-14, 0.0),
])
def test_normalize_angle(angle, expected):
    assert normalize_angle(angle) == pytest.approx(expected)
    assert 0.0 <= normalize_angle(angle) < 360.0


def test_relative_angle_wraps():
    assert relative_angle(10.0, 350.0) == pytest.approx(20.0)
    assert relative_angle(350.0, 10.0) == pytest.approx(340.0)


# ── hysteresis sub-state ─────────────────────────────────────────────────────

class TestHysteresis:

    def test_straight_stays_straight(self):
        hold_state, effective = apply_hysteresis(Confirmed(Status.STRAIGHT), Status.STRAIGHT, 0)
        assert hold_state == Confirmed(Status.STRAIGHT)
        assert effective is Status.STRAIGHT

    def test_turn_confirms_immediately(self):
        hold_state, effective = apply_hysteresis(Confirmed(Status.STRAIGHT), Status.TURNING_LEFT, 0)
        assert hold_state == Confirmed(Status.TURNING_LEFT)
        assert effective is Status.TURNING_LEFT

    def test_reverted_reading_opens_pending_window(self):
        hold_state, effective = apply_hysteresis(Confirmed(Status.TURNING_RIGHT), Status.STRAIGHT, 1000)
        assert hold_state == PendingRevert(Status.TURNING_RIGHT, 1000)
        assert effective is Status.TURNING_RIGHT

    def test_pending_keeps_turn_inside_grace(self):
        pending = PendingRevert(Status.TURNING_RIGHT, 1000)
        hold_state, effective = apply_hysteresis(pending, Status.STRAIGHT, 2499)
        assert hold_state == pending
        assert effective is Status.TURNING_RIGHT

    def test_pending_commits_straight_after_grace(self):
        pending = PendingRevert(Status.TURNING_RIGHT, 1000)
        hold_state, effective = apply_hysteresis(pending, Status.STRAIGHT, 2500)
        assert hold_state == Confirmed(Status.STRAIGHT)
        assert effective is Status.STRAIGHT

    def test_turn_reading_clears_pending(self):
        pending = PendingRevert(Status.TURNING_RIGHT, 1000)
        hold_state, effective = apply_hysteresis(pending, Status.TURNING_LEFT, 1200)
        assert hold_state == Confirmed(Status.TURNING_LEFT)
        assert effective is Status.TURNING_LEFT


# ── engine: turns ────────────────────────────────────────────────────────────

def test_sustained_turn_emits_one_event_then_cools_down(engine):
    events = run(engine, hold(90.0, 0, 6000))
    assert [(e.kind, e.emitted_at_ms) for e in events] == [(EventKind.TURN_RIGHT, 6000)]
    assert engine.state.reset_in_progress

    state = engine.state
    frozen = (state.reference_angle, state.hold, state.turn_started_ms,
              state.straight_started_ms, state.reset_started_ms)
    progress = engine.current_progress()

    # Anything during the cooldown is ignored.
    assert run(engine, hold(200.0, 6050, 7450)) == []
    assert (state.reference_angle, state.hold, state.turn_started_ms,
            state.straight_started_ms, state.reset_started_ms) == frozen
    assert engine.current_progress() == progress
    assert progress.label == "recalibrating heading"

    # Cooldown over: re-anchored on the heading the turn was confirmed at.
    assert engine.tick(HeadingSample(90.0, 7500)) is None
    assert not state.reset_in_progress
    assert state.reference_angle == pytest.approx(90.0)
    assert state.current_status is Status.STRAIGHT
    assert engine.current_progress().turn_fraction == 0.0


def test_turn_shorter_than_hold_emits_nothing(engine):
    assert run(engine, hold(90.0, 0, 5950)) == []
    assert engine.state.current_status is Status.TURNING_RIGHT
    assert engine.current_progress().turn_fraction == pytest.approx(5950 / 6000)


def test_left_turn_relative_to_start_heading():
    engine = SegmentationEngine()
    engine.start(100.0)
    events = run(engine, hold(10.0, 0, 6000))
    assert [e.kind for e in events] == [EventKind.TURN_LEFT]


def test_transient_straight_does_not_reset_turn(engine):
    run(engine, hold(90.0, 0, 3000))
    run(engine, hold(0.0, 3050, 4000))

    assert engine.state.current_status is Status.TURNING_RIGHT
    assert engine.state.loss_timer_ms == 3050
    assert "holding right turn" in engine.current_progress().label

    events = run(engine, hold(90.0, 4050, 6000))
    assert [(e.kind, e.emitted_at_ms) for e in events] == [(EventKind.TURN_RIGHT, 6000)]
    assert engine.state.loss_timer_ms is None


def test_transient_straight_during_turn_never_emits_straight(engine):
    samples = hold(90.0, 0, 2000) + hold(0.0, 2050, 3000) + hold(90.0, 3050, 5950)
    assert run(engine, samples) == []


def test_reverted_turn_commits_straight_and_restarts_turn_timer(engine):
    run(engine, hold(90.0, 0, 2000))
    run(engine, hold(0.0, 2050, 3550))
    assert engine.state.current_status is Status.STRAIGHT
    assert engine.state.loss_timer_ms is None
    assert engine.state.turn_started_ms is None

    # A new turn needs its own full hold time.
    assert run(engine, hold(90.0, 3600, 9550)) == []
    event = engine.tick(HeadingSample(90.0, 9600))
    assert event is not None and event.kind is EventKind.TURN_RIGHT


def test_direction_change_mid_turn_reports_latest_direction(engine):
    events = run(engine, hold(90.0, 0, 3000) + hold(270.0, 3050, 6000))
    assert [e.kind for e in events] == [EventKind.TURN_LEFT]


def test_turn_progress_label_counts_down(engine):
    run(engine, hold(90.0, 0, 3000))
    progress = engine.current_progress()
    assert progress.turn_fraction == pytest.approx(0.5)
    assert progress.straight_fraction == 1.0
    assert progress.label == "turn right in 3s"


# ── engine: straight checkpoints ─────────────────────────────────────────────

def test_long_straight_checkpoints_without_cooldown(engine):
    first = run(engine, hold(0.0, 0, 32000))
    assert [(e.kind, e.emitted_at_ms) for e in first] == [(EventKind.STRAIGHT, 32000)]
    assert not engine.state.reset_in_progress
    assert engine.state.reference_angle == 0.0
    assert engine.current_progress().straight_fraction == 1.0

    second = run(engine, hold(0.0, 32050, 64000))
    assert [(e.kind, e.emitted_at_ms) for e in second] == [(EventKind.STRAIGHT, 64000)]


def test_straight_uses_elapsed_time_not_tick_count(engine):
    samples = [HeadingSample(0.0, ts) for ts in (0, 10000, 20000, 31999)]
    assert run(engine, samples) == []
    event = engine.tick(HeadingSample(0.0, 32000))
    assert event is not None and event.kind is EventKind.STRAIGHT


def test_straight_progress_drains(engine):
    run(engine, hold(0.0, 0, 20000))
    assert engine.current_progress().straight_fraction == pytest.approx(1 - 20000 / 32000)
    assert engine.current_progress().turn_fraction == 0.0


def test_turn_start_resets_straight_timer(engine):
    run(engine, hold(0.0, 0, 20000))
    engine.tick(HeadingSample(90.0, 20050))
    assert engine.state.straight_started_ms is None
    assert engine.current_progress().straight_fraction == 1.0

    # Back to straight for good: the straight timer starts over.
    run(engine, hold(0.0, 20100, 21600))
    assert engine.state.straight_started_ms == 21600
    assert engine.state.turn_started_ms is None


# ── engine: input contract ───────────────────────────────────────────────────

def test_out_of_range_angles_are_normalized(engine):
    engine.tick(HeadingSample(450.0, 0))
    assert engine.state.current_status is Status.TURNING_RIGHT
    engine.tick(HeadingSample(-270.0, 50))
    assert engine.state.current_status is Status.TURNING_RIGHT


def test_tick_before_start_fails():
    with pytest.raises(InvalidStateError):
        SegmentationEngine().tick(HeadingSample(0.0, 0))


def test_start_twice_fails(engine):
    with pytest.raises(InvalidStateError):
        engine.start(10.0)


def test_tick_after_stop_fails(engine):
    engine.tick(HeadingSample(0.0, 0))
    engine.stop()
    with pytest.raises(InvalidStateError):
        engine.tick(HeadingSample(0.0, 50))


def test_negative_timestamp_rejected(engine):
    with pytest.raises(InvalidInputError):
        engine.tick(HeadingSample(0.0, -1))


def test_decreasing_timestamp_rejected(engine):
    engine.tick(HeadingSample(0.0, 1000))
    with pytest.raises(InvalidInputError):
        engine.tick(HeadingSample(0.0, 999))
    # Equal timestamps are tolerated.
    assert engine.tick(HeadingSample(0.0, 1000)) is None


def test_non_finite_angle_rejected(engine):
    with pytest.raises(InvalidInputError):
        engine.tick(HeadingSample(math.nan, 0))


def test_huge_integer_angles_are_normalized():
    engine = SegmentationEngine()
    engine.start(360 * 10**400)
    assert engine.state.reference_angle == 0.0
    engine.tick(HeadingSample(360 * 10**400 + 90, 0))
    assert engine.state.current_status is Status.TURNING_RIGHT


def test_custom_thresholds():
    engine = SegmentationEngine(turn_hold_ms=1000, reset_cooldown_ms=200)
    engine.start(0.0)
    events = run(engine, hold(90.0, 0, 1000))
    assert [e.emitted_at_ms for e in events] == [1000]
    assert run(engine, hold(90.0, 1050, 1150)) == []
    engine.tick(HeadingSample(90.0, 1200))
    assert not engine.state.reset_in_progress


# ── end to end ───────────────────────────────────────────────────────────────

def test_right_then_back_left_scenario(engine):
    samples = (
        hold(90.0, 0, 6100)          # turn right and hold
        + hold(0.0, 6150, 13600)     # face the original heading again
    )
    events = run(engine, samples)

    assert [e.kind for e in events] == [EventKind.TURN_RIGHT, EventKind.TURN_LEFT]
    assert events[0].emitted_at_ms == 6000
    # Cooldown ends at 7500; the left turn is held from there.
    assert events[1].emitted_at_ms - 7500 == 6000
    assert engine.events == tuple(events)

    text = assemble(engine.events)
    direction_lines = [line for line in text.splitlines() if "Around" in line]
    assert len(direction_lines) == 2
    assert "turn right" in direction_lines[0]
    assert "turn left" in direction_lines[1]
