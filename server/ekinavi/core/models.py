"""Ekinavi — core internal data models.

These are plain dataclasses with no framework dependencies.
JSON bodies are converted to/from these at the API boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ekinavi.core.errors import InvalidInputError


class Status(str, Enum):
    """Heading classification relative to the reference angle."""
    STRAIGHT = "straight"
    TURNING_LEFT = "turning_left"
    TURNING_RIGHT = "turning_right"


class EventKind(str, Enum):
    STRAIGHT = "straight"
    TURN_LEFT = "turn_left"
    TURN_RIGHT = "turn_right"


class RouteType(str, Enum):
    TRANSFER = "transfer"
    EXIT = "exit"
    STATION_SHOP = "station_shop"
    SHOP_FROM_STATION = "shop_from_station"


# Searcher-selectable tag vocabulary.
TAG_WHEELCHAIR = "wheelchair"
TAG_ELDERLY = "elderly"
TAG_BABY = "baby"
TAG_SHORTEST = "shortest"
TAG_VOCABULARY = frozenset({TAG_WHEELCHAIR, TAG_ELDERLY, TAG_BABY, TAG_SHORTEST})


@dataclass(frozen=True)
class HeadingSample:
    angle_deg: float
    timestamp_ms: int


@dataclass(frozen=True)
class NarrationEvent:
    emitted_at_ms: int
    kind: EventKind

    def to_dict(self) -> dict:
        return {"emitted_at_ms": self.emitted_at_ms, "kind": self.kind.value}


@dataclass(frozen=True)
class Progress:
    """Live feedback for the recording screen."""
    turn_fraction: float = 0.0
    straight_fraction: float = 1.0
    label: str = "waiting"

    def to_dict(self) -> dict:
        return {
            "turn_fraction": round(self.turn_fraction, 3),
            "straight_fraction": round(self.straight_fraction, 3),
            "label": self.label,
        }


def _check_rating(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise InvalidInputError(f"{name} must be an integer in 1..5, got {value!r}")


@dataclass(frozen=True)
class SurveyResponse:
    timestamp_ms: int
    still_valid: bool
    watchability: int
    route_satisfaction: int
    wheelchair_suitable: int | None = None
    physically_easy: int | None = None

    def __post_init__(self) -> None:
        _check_rating("watchability", self.watchability)
        _check_rating("route_satisfaction", self.route_satisfaction)
        # Accessibility ratings are optional: None means "not reporting".
        if self.wheelchair_suitable is not None:
            _check_rating("wheelchair_suitable", self.wheelchair_suitable)
        if self.physically_easy is not None:
            _check_rating("physically_easy", self.physically_easy)

    def to_dict(self) -> dict:
        return {
            "timestamp_ms": self.timestamp_ms,
            "still_valid": self.still_valid,
            "watchability": self.watchability,
            "route_satisfaction": self.route_satisfaction,
            "wheelchair_suitable": self.wheelchair_suitable,
            "physically_easy": self.physically_easy,
        }


@dataclass
class RouteRecord:
    """A published route video and its crowd-sourced feedback.

    ``views`` only ever increments and ``surveys`` only ever grows; the
    catalog enforces this. Scoring treats the record as read-only.
    """
    id: str
    upload_date_ms: int
    tags: frozenset[str] = frozenset()
    views: int = 0
    surveys: tuple[SurveyResponse, ...] = ()
    type: RouteType = RouteType.TRANSFER
    station: str = ""
    title: str = ""
    from_line: str = ""
    to_line: str = ""
    exit_number: str = ""
    article: str = ""
    video_uri: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "station": self.station,
            "title": self.title,
            "from_line": self.from_line,
            "to_line": self.to_line,
            "exit_number": self.exit_number,
            "tags": sorted(self.tags),
            "upload_date_ms": self.upload_date_ms,
            "views": self.views,
            "survey_count": len(self.surveys),
            "article": self.article,
            "video_uri": self.video_uri,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    validity: float
    watchability: float
    satisfaction: float
    tag_match: float
    freshness: float
    view_bonus: float

    @property
    def total(self) -> float:
        return (self.validity + self.watchability + self.satisfaction
                + self.tag_match + self.freshness + self.view_bonus)

    def to_dict(self) -> dict:
        return {
            "validity": round(self.validity, 2),
            "watchability": round(self.watchability, 2),
            "satisfaction": round(self.satisfaction, 2),
            "tag_match": round(self.tag_match, 2),
            "freshness": round(self.freshness, 2),
            "view_bonus": round(self.view_bonus, 2),
            "total": round(self.total, 2),
        }


@dataclass(frozen=True)
class PublishRequest:
    """Metadata the recorder fills in after stopping a session."""
    type: RouteType = RouteType.TRANSFER
    station: str = ""
    from_line: str = ""
    to_line: str = ""
    exit_number: str = ""
    tags: frozenset[str] = frozenset()
    video_uri: str = ""
