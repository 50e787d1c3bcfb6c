"""Route scoring — ranks route videos by crowd trust, quality and freshness.

score() is a pure function of the record, the searcher's selected tags and
the evaluation instant. The total is the sum of:

- validity:     share of recent surveys that still say "this route works",
                with an age penalty (and a new-route floor) while few
                surveys exist
- watchability: mean video watchability rating
- satisfaction: mean route satisfaction rating
- tag match:    accessibility ratings for tags both the route and the
                searcher care about
- freshness:    exponential decay since upload, slower for trusted routes
- view bonus:   logarithmic in views, capped
"""

from __future__ import annotations

import math
import time
from typing import Iterable

from ekinavi.core.models import (
    TAG_ELDERLY,
    TAG_WHEELCHAIR,
    RouteRecord,
    ScoreBreakdown,
    SurveyResponse,
)

DAY_MS = 24 * 60 * 60 * 1000

# Surveys younger than this count as "recent".
RECENT_WINDOW_DAYS = 30

# This many recent "no longer valid" reports zero the validity score.
INVALID_REPORTS_VETO = 3

# Below this many recent surveys the age penalty applies.
MIN_RECENT_SURVEYS = 5
AGE_PENALTY_PER_DAY = 2.0
NEW_ROUTE_DAYS = 30
NEW_ROUTE_BONUS = 20.0

WATCHABILITY_SCALE = 10.0
SATISFACTION_SCALE = 15.0
TAG_SCALE = 10.0
MAX_TAG_SCORE = 40.0

FRESHNESS_MAX = 30.0
FRESHNESS_DECAY_DAYS = 60.0
TRUSTED_DECAY_DAYS = 120.0
TRUSTED_VALIDITY = 80.0

MAX_VIEW_BONUS = 10.0
VIEW_SCALE = 3.0

# Accessibility tag → survey field rating it. Other tags only filter.
ACCESSIBILITY_FIELDS = {
    TAG_WHEELCHAIR: "wheelchair_suitable",
    TAG_ELDERLY: "physically_easy",
}


def _mean(values: Iterable[float]) -> float | None:
    values = list(values)
    if not values:
        return None
    return sum(values) / len(values)


def _rating_score(values: Iterable[float], scale: float) -> float:
    avg = _mean(values)
    return 0.0 if avg is None else (avg - 1) * scale


def compute_validity(
    surveys: tuple[SurveyResponse, ...],
    days_since_upload: float,
    now_ms: int,
) -> float:
    recent = [s for s in surveys if now_ms - s.timestamp_ms < RECENT_WINDOW_DAYS * DAY_MS]

    validity = 0.0
    if recent:
        valid = sum(1 for s in recent if s.still_valid)
        validity = valid / len(recent) * 100
        if len(recent) - valid >= INVALID_REPORTS_VETO:
            validity = 0.0

    if len(recent) < MIN_RECENT_SURVEYS:
        validity = max(0.0, validity - days_since_upload * AGE_PENALTY_PER_DAY)
        if days_since_upload < NEW_ROUTE_DAYS:
            validity += NEW_ROUTE_BONUS

    return max(0.0, min(100.0, validity))


def compute_tag_match(
    record_tags: frozenset[str],
    searcher_tags: frozenset[str],
    surveys: tuple[SurveyResponse, ...],
) -> float:
    total = 0.0
    matched = 0
    for tag, attr in ACCESSIBILITY_FIELDS.items():
        if tag not in record_tags or tag not in searcher_tags:
            continue
        reported = [getattr(s, attr) for s in surveys if getattr(s, attr) is not None]
        if reported:
            total += _rating_score(reported, TAG_SCALE)
            matched += 1
    if matched == 0:
        return 0.0
    return min(MAX_TAG_SCORE, total / matched)


def compute_freshness(days_since_upload: float, validity: float) -> float:
    decay = TRUSTED_DECAY_DAYS if validity > TRUSTED_VALIDITY else FRESHNESS_DECAY_DAYS
    return max(0.0, FRESHNESS_MAX * math.exp(-days_since_upload / decay))


def compute_view_bonus(views: int) -> float:
    return min(MAX_VIEW_BONUS, math.log10(views + 1) * VIEW_SCALE)


def score(
    record: RouteRecord,
    searcher_tags: Iterable[str] = (),
    now_ms: int | None = None,
) -> ScoreBreakdown:
    """Score a route for a searcher. ``now_ms`` defaults to the current time."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    searcher_tags = frozenset(searcher_tags)
    surveys = tuple(record.surveys)
    days_since_upload = (now_ms - record.upload_date_ms) / DAY_MS

    validity = compute_validity(surveys, days_since_upload, now_ms)
    return ScoreBreakdown(
        validity=validity,
        watchability=_rating_score((s.watchability for s in surveys), WATCHABILITY_SCALE),
        satisfaction=_rating_score((s.route_satisfaction for s in surveys), SATISFACTION_SCALE),
        tag_match=compute_tag_match(frozenset(record.tags), searcher_tags, surveys),
        freshness=compute_freshness(days_since_upload, validity),
        view_bonus=compute_view_bonus(record.views),
    )
