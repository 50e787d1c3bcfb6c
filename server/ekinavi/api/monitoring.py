"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from ekinavi.core.models import TAG_VOCABULARY, RouteType

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from ekinavi.main import get_catalog, get_stats

    snapshot = get_stats().snapshot()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "routes": len(get_catalog().all()),
        "recorder_streaming": snapshot["recorder"]["streaming"],
    }


@router.get("/stats")
async def stats() -> dict:
    """Counters for recording, catalog and search activity.

    The ``recorder`` section reports whether samples arrived within the
    last ``window_seconds``.
    """
    from ekinavi.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Configuration endpoint for the recording app.

    The app calls this on startup to learn the sampling cadence, the
    thresholds behind the progress bars, and the tag vocabulary.
    """
    from ekinavi.main import get_config

    seg = get_config().segmentation
    return {
        "sample_interval_ms": seg.sample_interval_ms,
        "turn_hold_ms": seg.turn_hold_ms,
        "straight_checkpoint_ms": seg.straight_checkpoint_ms,
        "reset_cooldown_ms": seg.reset_cooldown_ms,
        "tags": sorted(TAG_VOCABULARY),
        "route_types": [t.value for t in RouteType],
    }
