"""In-process implementation of RouteCatalog.

Records are replaced, never mutated, so snapshots handed to the scorer stay
stable while playback and survey updates keep arriving.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import TYPE_CHECKING

import structlog

from ekinavi.core.errors import RouteNotFoundError

if TYPE_CHECKING:
    from ekinavi.core.models import RouteRecord, SurveyResponse

log = structlog.get_logger()


class InMemoryRouteCatalog:
    """RouteCatalog backed by a list, newest first. Thread-safe."""

    def __init__(self, history_size: int = 10) -> None:
        self._lock = threading.Lock()
        self._records: list[RouteRecord] = []
        self._history: list[str] = []
        self._history_size = history_size

    def _index(self, route_id: str) -> int:
        """Caller holds lock."""
        for i, record in enumerate(self._records):
            if record.id == route_id:
                return i
        raise RouteNotFoundError(route_id)

    def add(self, record: RouteRecord) -> None:
        with self._lock:
            self._records.insert(0, record)
        log.info("route_added", route_id=record.id, station=record.station)

    def get(self, route_id: str) -> RouteRecord:
        with self._lock:
            return self._records[self._index(route_id)]

    def all(self) -> list[RouteRecord]:
        with self._lock:
            return list(self._records)

    def record_view(self, route_id: str) -> RouteRecord:
        """Count one playback and move the route to the top of the history."""
        with self._lock:
            i = self._index(route_id)
            record = replace(self._records[i], views=self._records[i].views + 1)
            self._records[i] = record
            self._history = [route_id] + [rid for rid in self._history if rid != route_id]
            del self._history[self._history_size:]
        log.debug("route_viewed", route_id=route_id, views=record.views)
        return record

    def add_survey(self, route_id: str, survey: SurveyResponse) -> RouteRecord:
        with self._lock:
            i = self._index(route_id)
            record = replace(self._records[i], surveys=self._records[i].surveys + (survey,))
            self._records[i] = record
        log.info("survey_recorded", route_id=route_id,
                 still_valid=survey.still_valid, surveys=len(record.surveys))
        return record

    def history(self) -> list[RouteRecord]:
        """Recently viewed routes, most recent first."""
        with self._lock:
            by_id = {r.id: r for r in self._records}
            return [by_id[rid] for rid in self._history if rid in by_id]
