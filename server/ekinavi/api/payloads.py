"""JSON body parsing shared by the API routers.

Converts request JSON into core dataclasses. Anything the core would reject
is reported as InvalidInputError so the app returns 422.
"""

from __future__ import annotations

import json

from fastapi import Request

from ekinavi.core.errors import InvalidInputError, MalformedBodyError
from ekinavi.core.models import (
    TAG_VOCABULARY,
    HeadingSample,
    PublishRequest,
    RouteType,
    SurveyResponse,
)


async def read_json(request: Request) -> dict:
    body_bytes = await request.body()
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedBodyError("invalid JSON") from None
    if not isinstance(body, dict):
        raise MalformedBodyError("expected a JSON object")
    return body


def _number(data: dict, key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{key} must be a number")
    return value


def _integer(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"{key} must be an integer")
    return value


def _text(data: dict, key: str) -> str:
    value = data.get(key) or ""
    if not isinstance(value, str):
        raise InvalidInputError(f"{key} must be a string")
    return value.strip()


def parse_route_type(value: str | None) -> RouteType:
    try:
        return RouteType(value or RouteType.TRANSFER.value)
    except ValueError:
        raise InvalidInputError(f"unknown route type {value!r}") from None


def parse_tags(values) -> frozenset[str]:
    if isinstance(values, str):
        values = [v for v in values.split(",") if v.strip()]
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise InvalidInputError("tags must be a list of strings")
    tags = frozenset(v.strip() for v in values)
    unknown = tags - TAG_VOCABULARY
    if unknown:
        raise InvalidInputError(f"unknown tags: {', '.join(sorted(unknown))}")
    return tags


def parse_start(body: dict) -> float:
    return _number(body, "initial_angle_deg")


def parse_samples(body: dict) -> list[HeadingSample]:
    raw = body.get("samples")
    if not isinstance(raw, list):
        raise InvalidInputError("samples must be a list")
    samples = []
    for item in raw:
        if not isinstance(item, dict):
            raise InvalidInputError("each sample must be an object")
        samples.append(HeadingSample(
            angle_deg=_number(item, "angle_deg"),
            timestamp_ms=_integer(item, "timestamp_ms"),
        ))
    return samples


def parse_publish(body: dict) -> PublishRequest:
    return PublishRequest(
        type=parse_route_type(body.get("type")),
        station=_text(body, "station"),
        from_line=_text(body, "from_line"),
        to_line=_text(body, "to_line"),
        exit_number=_text(body, "exit"),
        tags=parse_tags(body.get("tags") or []),
        video_uri=_text(body, "video_uri"),
    )


def parse_survey(body: dict, timestamp_ms: int) -> SurveyResponse:
    still_valid = body.get("still_valid")
    if not isinstance(still_valid, bool):
        raise InvalidInputError("still_valid must be a boolean")
    return SurveyResponse(
        timestamp_ms=timestamp_ms,
        still_valid=still_valid,
        watchability=body.get("watchability"),
        route_satisfaction=body.get("route_satisfaction"),
        wheelchair_suitable=body.get("wheelchair_suitable"),
        physically_easy=body.get("physically_easy"),
    )
