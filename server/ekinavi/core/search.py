"""Ranked search over the route catalog.

Filtering happens before scoring: route type, normalized text matches on
station and departure line, then tag rules. "shortest" means "no
accessibility detours", so it excludes routes tagged for wheelchairs,
elderly walkers or strollers; every other selected tag must be present.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Iterable

from ekinavi.core.models import (
    TAG_BABY,
    TAG_ELDERLY,
    TAG_SHORTEST,
    TAG_WHEELCHAIR,
    RouteRecord,
    RouteType,
    ScoreBreakdown,
)
from ekinavi.core.scoring import score

_DETOUR_TAGS = frozenset({TAG_WHEELCHAIR, TAG_ELDERLY, TAG_BABY})
_WHITESPACE = re.compile(r"\s")


@dataclass(frozen=True)
class SearchQuery:
    type: RouteType
    station: str = ""
    from_line: str = ""
    tags: frozenset[str] = frozenset()


@dataclass(frozen=True)
class RankedRoute:
    record: RouteRecord
    breakdown: ScoreBreakdown

    def to_dict(self) -> dict:
        result = self.record.to_dict()
        result["score"] = self.breakdown.to_dict()
        return result


def normalize(text: str | None) -> str:
    return _WHITESPACE.sub("", (text or "").lower())


def matches(record: RouteRecord, query: SearchQuery) -> bool:
    if record.type is not query.type:
        return False
    if query.station and normalize(query.station) not in normalize(record.station):
        return False
    if query.from_line and normalize(query.from_line) not in normalize(record.from_line):
        return False
    if TAG_SHORTEST in query.tags and record.tags & _DETOUR_TAGS:
        return False
    required = query.tags - {TAG_SHORTEST}
    return required <= record.tags


def rank(
    records: Iterable[RouteRecord],
    query: SearchQuery,
    now_ms: int | None = None,
) -> list[RankedRoute]:
    """Filter then score; sorted by total descending, catalog order on ties."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    ranked = [
        RankedRoute(record=r, breakdown=score(r, query.tags, now_ms=now_ms))
        for r in records
        if matches(r, query)
    ]
    ranked.sort(key=lambda rr: rr.breakdown.total, reverse=True)
    return ranked
