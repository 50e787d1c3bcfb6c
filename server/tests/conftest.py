"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import ekinavi.main as main_module
from ekinavi.config import AppConfig
from ekinavi.core.models import HeadingSample, SurveyResponse
from ekinavi.core.stats import ServiceStats
from ekinavi.storage.memory_catalog import InMemoryRouteCatalog

DAY_MS = 24 * 60 * 60 * 1000
NOW_MS = 1_760_000_000_000


@pytest.fixture(autouse=True)
def _init_server():
    """Initialize server singletons for every test."""
    config = AppConfig()
    config.logging.level = "warning"

    stats = ServiceStats(active_window_seconds=config.stats.active_window_seconds)
    catalog = InMemoryRouteCatalog(history_size=config.catalog.history_size)
    recorder = main_module.build_recorder(config, catalog, stats)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._catalog = catalog
    main_module._recorder = recorder

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._catalog = None
    main_module._recorder = None


@pytest.fixture
async def client():
    from ekinavi.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def hold(angle: float, start_ms: int, end_ms: int, step_ms: int = 50) -> list[HeadingSample]:
    """Samples at a constant heading from start_ms to end_ms inclusive."""
    return [HeadingSample(angle, ts) for ts in range(start_ms, end_ms + 1, step_ms)]


def survey(days_ago: float = 1, still_valid: bool = True, watchability: int = 3,
           route_satisfaction: int = 3, **kwargs) -> SurveyResponse:
    return SurveyResponse(
        timestamp_ms=int(NOW_MS - days_ago * DAY_MS),
        still_valid=still_valid,
        watchability=watchability,
        route_satisfaction=route_satisfaction,
        **kwargs,
    )
