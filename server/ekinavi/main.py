"""Ekinavi server — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, catalog, and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import partial

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ekinavi.api.monitoring import router as monitoring_router
from ekinavi.api.recording import router as recording_router
from ekinavi.api.routes import router as routes_router
from ekinavi.config import AppConfig, load_config
from ekinavi.core.errors import (
    EkinaviError,
    InvalidInputError,
    InvalidStateError,
    RouteNotFoundError,
)
from ekinavi.core.recorder import RecordingService
from ekinavi.core.segmentation import SegmentationEngine
from ekinavi.core.stats import ServiceStats
from ekinavi.storage.base import RouteCatalog
from ekinavi.storage.memory_catalog import InMemoryRouteCatalog

log = structlog.get_logger()

# Module-level singletons (set during startup)
_recorder: RecordingService | None = None
_catalog: RouteCatalog | None = None
_stats: ServiceStats | None = None
_config: AppConfig | None = None


def get_recorder() -> RecordingService:
    assert _recorder is not None, "Server not initialized"
    return _recorder


def get_catalog() -> RouteCatalog:
    assert _catalog is not None, "Server not initialized"
    return _catalog


def get_stats() -> ServiceStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def build_recorder(config: AppConfig, catalog: RouteCatalog, stats: ServiceStats) -> RecordingService:
    seg = config.segmentation
    factory = partial(
        SegmentationEngine,
        turn_hold_ms=seg.turn_hold_ms,
        straight_checkpoint_ms=seg.straight_checkpoint_ms,
        revert_grace_ms=seg.revert_grace_ms,
        reset_cooldown_ms=seg.reset_cooldown_ms,
    )
    return RecordingService(catalog=catalog, stats=stats, engine_factory=factory,
                            skew_ms=config.narration.skew_ms)


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _recorder, _catalog, _stats, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             turn_hold_ms=_config.segmentation.turn_hold_ms,
             skew_ms=_config.narration.skew_ms)

    _stats = ServiceStats(active_window_seconds=_config.stats.active_window_seconds)
    _catalog = InMemoryRouteCatalog(history_size=_config.catalog.history_size)
    _recorder = build_recorder(_config, _catalog, _stats)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    log.info("server_stopped")


app = FastAPI(
    title="Ekinavi",
    description="Station route recording, narration and ranking server",
    version="0.1.0",
    lifespan=lifespan,
)

_ERROR_STATUS = {
    InvalidStateError: 409,
    InvalidInputError: 422,
    RouteNotFoundError: 404,
}


@app.exception_handler(EkinaviError)
async def _core_error_handler(request: Request, exc: EkinaviError) -> JSONResponse:
    status = _ERROR_STATUS.get(type(exc), 400)
    log.warning("request_rejected", path=request.url.path,
                error=type(exc).__name__, detail=str(exc))
    return JSONResponse(status_code=status,
                        content={"accepted": False, "error": str(exc)})


app.include_router(recording_router)
app.include_router(routes_router)
app.include_router(monitoring_router)
