"""Route catalog, ranked search, playback and survey endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter, Query, Request

from ekinavi.api.payloads import parse_route_type, parse_survey, parse_tags, read_json
from ekinavi.core.search import SearchQuery, rank

router = APIRouter(prefix="/api/v1")


@router.get("/routes/search")
async def search_routes(
    route_type: str = Query(default="transfer", alias="type"),
    station: str = Query(default=""),
    from_line: str = Query(default=""),
    tags: str = Query(default="", description="Comma-separated tag keys"),
) -> dict:
    """Filter the catalog and return matches ranked by score, best first."""
    from ekinavi.main import get_catalog, get_stats

    query = SearchQuery(
        type=parse_route_type(route_type),
        station=station,
        from_line=from_line,
        tags=parse_tags(tags),
    )
    results = rank(get_catalog().all(), query)
    get_stats().record_search()
    return {"results": [r.to_dict() for r in results], "total": len(results)}


@router.get("/routes/{route_id}")
async def get_route(route_id: str) -> dict:
    from ekinavi.main import get_catalog

    return get_catalog().get(route_id).to_dict()


@router.post("/routes/{route_id}/views")
async def record_view(route_id: str) -> dict:
    """Called when playback starts."""
    from ekinavi.main import get_catalog, get_stats

    record = get_catalog().record_view(route_id)
    get_stats().record_view()
    return record.to_dict()


@router.post("/routes/{route_id}/surveys")
async def submit_survey(route_id: str, request: Request) -> dict:
    """Append a survey. The server stamps the submission time."""
    from ekinavi.main import get_catalog, get_stats

    body = await read_json(request)
    survey = parse_survey(body, timestamp_ms=int(time.time() * 1000))
    record = get_catalog().add_survey(route_id, survey)
    get_stats().record_survey()
    return {"accepted": True, "survey_count": len(record.surveys)}


@router.get("/history")
async def get_history() -> dict:
    """Recently viewed routes, most recent first."""
    from ekinavi.main import get_catalog

    return {"routes": [r.to_dict() for r in get_catalog().history()]}
