"""Narration assembler — renders a session's event log as a route guide.

Every event becomes exactly one line, in emission order. Event times are
shifted back by ``skew_ms`` because a turn is only detected some seconds
after the walker started it. Shifted times never go below zero, so a session
clock that starts at 0 renders from 00:00:00.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Iterable

from ekinavi.core.models import EventKind, NarrationEvent

# Detection lag subtracted from event timestamps.
DEFAULT_SKEW_MS = 8_000

PREAMBLE = "[Auto-generated guide]\n1. Exit through the gate, then proceed straight."
CLOSING = "- Finally, you arrive at your destination!"

_PHRASES = {
    EventKind.STRAIGHT: "continue straight",
    EventKind.TURN_LEFT: "turn left",
    EventKind.TURN_RIGHT: "turn right",
}


def format_clock(timestamp_ms: int, tz: tzinfo = timezone.utc) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).strftime("%H:%M:%S")


def assemble(
    events: Iterable[NarrationEvent],
    skew_ms: int = DEFAULT_SKEW_MS,
    tz: tzinfo = timezone.utc,
) -> str:
    lines = [PREAMBLE]
    for event in events:
        clock = format_clock(max(event.emitted_at_ms - skew_ms, 0), tz)
        lines.append(f"- Around {clock}, {_PHRASES[event.kind]}.")
    lines.append(CLOSING)
    return "\n".join(lines)
