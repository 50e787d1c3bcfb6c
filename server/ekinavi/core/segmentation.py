"""Route segmentation — turns a heading stream into narration events.

Each recording session owns one SegmentationEngine. Samples arrive one at a
time; the engine classifies each against a reference heading, smooths the
classification with a short hysteresis window, and emits a turn event once
a turn has been held long enough (or a straight checkpoint once a straight
segment has run long enough).

After a turn event the engine enters a reset cooldown during which samples
are ignored; when it ends, the heading at which the turn was confirmed
becomes the new "straight ahead".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Union

import structlog

from ekinavi.core.errors import InvalidInputError, InvalidStateError
from ekinavi.core.models import (
    EventKind,
    HeadingSample,
    NarrationEvent,
    Progress,
    Status,
)

log = structlog.get_logger()

# A turn must be held this long before it is narrated.
TURN_HOLD_MS = 6_000

# Long straight segments are checkpointed at this interval.
STRAIGHT_CHECKPOINT_MS = 32_000

# A turn survives a reverted-to-straight reading for this long.
REVERT_GRACE_MS = 1_500

# Input is ignored for this long after a turn event.
RESET_COOLDOWN_MS = 1_500

# Open intervals of relative angle (degrees). Everything else is straight.
RIGHT_ZONE = (30.0, 150.0)
LEFT_ZONE = (210.0, 330.0)

_TURN_EVENTS = {
    Status.TURNING_LEFT: EventKind.TURN_LEFT,
    Status.TURNING_RIGHT: EventKind.TURN_RIGHT,
}
_SIDES = {Status.TURNING_LEFT: "left", Status.TURNING_RIGHT: "right"}


def normalize_angle(angle: float) -> float:
    """Wrap any angle into [0, 360)."""
    wrapped = angle % 360.0
    # Float modulo of a tiny negative value rounds up to exactly 360.0.
    return 0.0 if wrapped >= 360.0 else wrapped


def relative_angle(angle: float, reference: float) -> float:
    return normalize_angle(angle - reference)


def classify(rel: float) -> Status:
    """Instantaneous classification of a relative angle. Zone edges are straight."""
    if RIGHT_ZONE[0] < rel < RIGHT_ZONE[1]:
        return Status.TURNING_RIGHT
    if LEFT_ZONE[0] < rel < LEFT_ZONE[1]:
        return Status.TURNING_LEFT
    return Status.STRAIGHT


@dataclass(frozen=True)
class Confirmed:
    direction: Status


@dataclass(frozen=True)
class PendingRevert:
    """A confirmed turn whose latest readings say straight, since ``since_ms``."""
    direction: Status
    since_ms: int


Hold = Union[Confirmed, PendingRevert]


def apply_hysteresis(
    hold: Hold,
    instant: Status,
    timestamp_ms: int,
    grace_ms: int = REVERT_GRACE_MS,
) -> tuple[Hold, Status]:
    """Advance the hysteresis sub-state by one reading.

    Returns the new sub-state and the effective status. A turning reading
    confirms its direction immediately. A straight reading after a turn only
    commits to straight once it has persisted for ``grace_ms``.
    """
    if instant is not Status.STRAIGHT:
        return Confirmed(instant), instant

    if isinstance(hold, Confirmed):
        if hold.direction is Status.STRAIGHT:
            return hold, Status.STRAIGHT
        hold = PendingRevert(hold.direction, timestamp_ms)

    if timestamp_ms - hold.since_ms < grace_ms:
        return hold, hold.direction
    return Confirmed(Status.STRAIGHT), Status.STRAIGHT


@dataclass
class SegmentationState:
    """Mutable per-session state. Owned by exactly one engine."""
    reference_angle: float
    hold: Hold = field(default_factory=lambda: Confirmed(Status.STRAIGHT))
    status_since_ms: int | None = None
    turn_started_ms: int | None = None
    straight_started_ms: int | None = None
    reset_started_ms: int | None = None
    reanchor_angle: float | None = None
    last_timestamp_ms: int | None = None

    @property
    def current_status(self) -> Status:
        return self.hold.direction

    @property
    def loss_timer_ms(self) -> int | None:
        if isinstance(self.hold, PendingRevert):
            return self.hold.since_ms
        return None

    @property
    def reset_in_progress(self) -> bool:
        return self.reset_started_ms is not None


class SegmentationEngine:
    """Debounced straight/turn detector for a single recording session."""

    def __init__(
        self,
        turn_hold_ms: int = TURN_HOLD_MS,
        straight_checkpoint_ms: int = STRAIGHT_CHECKPOINT_MS,
        revert_grace_ms: int = REVERT_GRACE_MS,
        reset_cooldown_ms: int = RESET_COOLDOWN_MS,
    ) -> None:
        self._turn_hold_ms = turn_hold_ms
        self._straight_checkpoint_ms = straight_checkpoint_ms
        self._revert_grace_ms = revert_grace_ms
        self._reset_cooldown_ms = reset_cooldown_ms

        self.state: SegmentationState | None = None
        self._events: list[NarrationEvent] = []
        self._progress = Progress()
        self._stopped = False

    @property
    def events(self) -> tuple[NarrationEvent, ...]:
        """Every event emitted so far, in emission order."""
        return tuple(self._events)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self, initial_angle: float) -> None:
        if self.state is not None:
            raise InvalidStateError("segmentation already started")
        self.state = SegmentationState(
            reference_angle=normalize_angle(_finite(initial_angle)),
        )
        self._progress = Progress(turn_fraction=0.0, straight_fraction=1.0,
                                  label="going straight")

    def stop(self) -> None:
        if self.state is None:
            raise InvalidStateError("segmentation not started")
        self._stopped = True

    def current_progress(self) -> Progress:
        return self._progress

    def tick(self, sample: HeadingSample) -> NarrationEvent | None:
        """Consume one heading sample. Returns an event when a threshold is crossed."""
        if self.state is None:
            raise InvalidStateError("tick() called before start()")
        if self._stopped:
            raise InvalidStateError("recording already stopped")
        state = self.state

        ts = sample.timestamp_ms
        if ts < 0:
            raise InvalidInputError(f"negative timestamp {ts}")
        if state.last_timestamp_ms is not None and ts < state.last_timestamp_ms:
            raise InvalidInputError(
                f"timestamp {ts} is earlier than previous {state.last_timestamp_ms}"
            )
        angle = normalize_angle(_finite(sample.angle_deg))
        state.last_timestamp_ms = ts

        if state.reset_started_ms is not None:
            if ts - state.reset_started_ms < self._reset_cooldown_ms:
                return None
            self._finish_reset(state, ts)

        instant = classify(relative_angle(angle, state.reference_angle))
        previous = state.current_status
        state.hold, effective = apply_hysteresis(
            state.hold, instant, ts, self._revert_grace_ms,
        )
        if state.status_since_ms is None or state.current_status is not previous:
            state.status_since_ms = ts

        if effective is Status.STRAIGHT:
            return self._advance_straight(state, ts)
        return self._advance_turn(state, effective, instant, angle, ts)

    def _advance_turn(
        self,
        state: SegmentationState,
        effective: Status,
        instant: Status,
        angle: float,
        ts: int,
    ) -> NarrationEvent | None:
        state.straight_started_ms = None
        if state.turn_started_ms is None:
            state.turn_started_ms = ts
        elapsed = ts - state.turn_started_ms

        if elapsed >= self._turn_hold_ms:
            state.reset_started_ms = ts
            state.reanchor_angle = angle
            self._progress = Progress(turn_fraction=1.0, straight_fraction=1.0,
                                      label="recalibrating heading")
            return self._emit(_TURN_EVENTS[effective], ts)

        remain = math.ceil((self._turn_hold_ms - elapsed) / 1000)
        side = _SIDES[effective]
        if instant is Status.STRAIGHT:
            label = f"adjusting angle... {remain}s left (holding {side} turn)"
        else:
            label = f"turn {side} in {remain}s"
        self._progress = Progress(
            turn_fraction=min(elapsed / self._turn_hold_ms, 1.0),
            straight_fraction=1.0,
            label=label,
        )
        return None

    def _advance_straight(self, state: SegmentationState, ts: int) -> NarrationEvent | None:
        state.turn_started_ms = None
        if state.straight_started_ms is None:
            state.straight_started_ms = ts
        elapsed = ts - state.straight_started_ms

        if elapsed >= self._straight_checkpoint_ms:
            state.straight_started_ms = ts
            self._progress = Progress(turn_fraction=0.0, straight_fraction=1.0,
                                      label="going straight")
            return self._emit(EventKind.STRAIGHT, ts)

        self._progress = Progress(
            turn_fraction=0.0,
            straight_fraction=max(0.0, 1.0 - elapsed / self._straight_checkpoint_ms),
            label="going straight",
        )
        return None

    def _finish_reset(self, state: SegmentationState, ts: int) -> None:
        state.reference_angle = state.reanchor_angle
        state.reanchor_angle = None
        state.reset_started_ms = None
        state.hold = Confirmed(Status.STRAIGHT)
        state.status_since_ms = ts
        state.turn_started_ms = None
        state.straight_started_ms = None
        log.debug("heading_reanchored", reference_angle=round(state.reference_angle, 1))

    def _emit(self, kind: EventKind, ts: int) -> NarrationEvent:
        event = NarrationEvent(emitted_at_ms=ts, kind=kind)
        self._events.append(event)
        log.debug("segment_boundary", kind=kind.value, emitted_at_ms=ts)
        return event


def _finite(angle: float) -> float:
    if isinstance(angle, int):
        # Large integers would overflow float(); the heading only matters mod 360.
        angle %= 360
    value = float(angle)
    if not math.isfinite(value):
        raise InvalidInputError(f"angle must be finite, got {angle!r}")
    return value
