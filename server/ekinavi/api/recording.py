"""Recording session API endpoints.

This is the thin FastAPI adapter. It parses JSON bodies into core models
and calls the recording service. Core errors become HTTP statuses in the
app-level exception handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from ekinavi.api.payloads import parse_publish, parse_samples, parse_start, read_json

router = APIRouter(prefix="/api/v1/recording")


@router.post("/start")
async def start_recording(request: Request) -> dict:
    """Begin a session. The starting heading becomes "straight ahead"."""
    from ekinavi.main import get_recorder

    body = await read_json(request)
    get_recorder().start(parse_start(body))
    return {"accepted": True}


@router.post("/samples")
async def submit_samples(request: Request) -> dict:
    """Feed heading samples, oldest first.

    Body: {"samples": [{"angle_deg": 91.5, "timestamp_ms": 1700000000050}, ...]}
    Returns any narration events the batch produced plus live progress.
    """
    from ekinavi.main import get_recorder

    body = await read_json(request)
    events, progress = get_recorder().submit(parse_samples(body))
    return {
        "accepted": True,
        "events": [e.to_dict() for e in events],
        "progress": progress.to_dict(),
    }


@router.get("/progress")
async def get_progress() -> dict:
    from ekinavi.main import get_recorder

    return get_recorder().progress().to_dict()


@router.post("/stop")
async def stop_recording() -> dict:
    """Stop sampling. Returns the full event log and the assembled guide."""
    from ekinavi.main import get_recorder

    return get_recorder().stop().to_dict()


@router.post("/publish")
async def publish_route(request: Request) -> dict:
    """Create a catalog route from the stopped session."""
    from ekinavi.main import get_recorder

    body = await read_json(request)
    record = get_recorder().publish(parse_publish(body))
    return record.to_dict()
