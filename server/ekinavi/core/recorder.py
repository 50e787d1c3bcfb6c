"""Recording service — owns the single active recording session.

Samples are fed to the session's SegmentationEngine under a lock, so two
requests can never interleave ticks. Stopping a session freezes its event
log; publishing turns the log into a narrated route in the catalog.

This depends on the RouteCatalog protocol, not a concrete implementation.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, TYPE_CHECKING

import structlog

from ekinavi.core.errors import InvalidInputError, InvalidStateError
from ekinavi.core.models import (
    HeadingSample,
    NarrationEvent,
    Progress,
    PublishRequest,
    RouteRecord,
)
from ekinavi.core.narration import DEFAULT_SKEW_MS, assemble
from ekinavi.core.segmentation import SegmentationEngine

if TYPE_CHECKING:
    from ekinavi.core.stats import ServiceStats
    from ekinavi.storage.base import RouteCatalog

log = structlog.get_logger()

UNNAMED_STATION = "Unnamed station"


@dataclass(frozen=True)
class RecordingResult:
    events: tuple[NarrationEvent, ...]
    guide: str

    def to_dict(self) -> dict:
        return {"events": [e.to_dict() for e in self.events], "guide": self.guide}


def route_title(station: str, from_line: str, to_line: str) -> str:
    return f"{station} {from_line}→{to_line} route"


class RecordingService:
    """Runs one recording session at a time and publishes its result."""

    def __init__(
        self,
        catalog: RouteCatalog,
        stats: ServiceStats,
        engine_factory: Callable[[], SegmentationEngine] = SegmentationEngine,
        skew_ms: int = DEFAULT_SKEW_MS,
    ) -> None:
        self._catalog = catalog
        self._stats = stats
        self._engine_factory = engine_factory
        self._skew_ms = skew_ms
        self._lock = threading.Lock()
        self._engine: SegmentationEngine | None = None

    def start(self, initial_angle: float) -> None:
        with self._lock:
            if self._engine is not None and not self._engine.stopped:
                raise InvalidStateError("a recording session is already active")
            engine = self._engine_factory()
            engine.start(initial_angle)
            self._engine = engine
            reference = engine.state.reference_angle
        self._stats.record_session_started()
        log.info("recording_started", initial_angle=round(reference, 1))

    def submit(self, samples: Iterable[HeadingSample]) -> tuple[list[NarrationEvent], Progress]:
        """Feed samples in order. Returns the events they produced and the latest progress."""
        events: list[NarrationEvent] = []
        processed = 0
        with self._lock:
            if self._engine is None:
                raise InvalidStateError("no recording session, call start first")
            try:
                for sample in samples:
                    event = self._engine.tick(sample)
                    processed += 1
                    if event is not None:
                        events.append(event)
                        self._stats.record_event(event.kind.value)
            except InvalidInputError:
                self._stats.record_rejected()
                raise
            finally:
                if processed:
                    self._stats.record_samples(processed)
            progress = self._engine.current_progress()

        for event in events:
            log.info("narration_event", kind=event.kind.value,
                     emitted_at_ms=event.emitted_at_ms)
        return events, progress

    def progress(self) -> Progress:
        with self._lock:
            if self._engine is None:
                return Progress()
            return self._engine.current_progress()

    def stop(self) -> RecordingResult:
        with self._lock:
            if self._engine is None:
                raise InvalidStateError("no recording session to stop")
            self._engine.stop()
            events = self._engine.events
        log.info("recording_stopped", events=len(events))
        return RecordingResult(events=events, guide=assemble(events, self._skew_ms))

    def publish(self, request: PublishRequest, now_ms: int | None = None) -> RouteRecord:
        """Turn the stopped session into a catalog route and close the session."""
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        with self._lock:
            if self._engine is None or not self._engine.stopped:
                raise InvalidStateError("stop the recording before publishing")
            events = self._engine.events
            self._engine = None

        station = request.station or UNNAMED_STATION
        record = RouteRecord(
            id=uuid.uuid4().hex,
            upload_date_ms=now_ms,
            tags=frozenset(request.tags),
            type=request.type,
            station=station,
            title=route_title(station, request.from_line, request.to_line),
            from_line=request.from_line,
            to_line=request.to_line,
            exit_number=request.exit_number,
            article=assemble(events, self._skew_ms),
            video_uri=request.video_uri,
        )
        self._catalog.add(record)
        self._stats.record_published()
        log.info("route_published", route_id=record.id, station=station,
                 events=len(events))
        return record
