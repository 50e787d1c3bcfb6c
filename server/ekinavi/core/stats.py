"""Service statistics.

In-memory counters for recording, catalog and search activity, plus the
liveness of the current recording session. No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class ServiceStats:
    """Thread-safe service counters.

    The recorder counts as "streaming" while its last sample arrived within
    ``active_window_seconds``.
    """

    def __init__(self, active_window_seconds: float = 10.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds
        self._last_sample_at: float | None = None  # time.monotonic()

        # Counters
        self.sessions_started: int = 0
        self.samples_received: int = 0
        self.samples_rejected: int = 0
        self.events_emitted: dict[str, int] = {}
        self.routes_published: int = 0
        self.searches: int = 0
        self.views: int = 0
        self.surveys_received: int = 0

    def record_session_started(self) -> None:
        with self._lock:
            self.sessions_started += 1

    def record_samples(self, count: int) -> None:
        now = time.monotonic()
        with self._lock:
            self.samples_received += count
            self._last_sample_at = now

    def record_rejected(self, count: int = 1) -> None:
        with self._lock:
            self.samples_rejected += count

    def record_event(self, kind: str) -> None:
        with self._lock:
            self.events_emitted[kind] = self.events_emitted.get(kind, 0) + 1

    def record_published(self) -> None:
        with self._lock:
            self.routes_published += 1

    def record_search(self) -> None:
        with self._lock:
            self.searches += 1

    def record_view(self) -> None:
        with self._lock:
            self.views += 1

    def record_survey(self) -> None:
        with self._lock:
            self.surveys_received += 1

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            streaming = (
                self._last_sample_at is not None
                and now_mono - self._last_sample_at <= self._active_window
            )
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "sessions_started": self.sessions_started,
                "samples_received": self.samples_received,
                "samples_rejected": self.samples_rejected,
                "events_emitted": dict(self.events_emitted),
                "routes_published": self.routes_published,
                "searches": self.searches,
                "views": self.views,
                "surveys_received": self.surveys_received,
                "recorder": {
                    "streaming": streaming,
                    "window_seconds": self._active_window,
                },
            }
