"""Server configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: EKINAVI_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class SegmentationConfig:
    turn_hold_ms: int = 6_000
    straight_checkpoint_ms: int = 32_000
    revert_grace_ms: int = 1_500
    reset_cooldown_ms: int = 1_500
    sample_interval_ms: int = 50  # advertised to clients, not enforced


@dataclass
class NarrationConfig:
    skew_ms: int = 8_000


@dataclass
class CatalogConfig:
    history_size: int = 10


@dataclass
class StatsConfig:
    active_window_seconds: float = 10.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    narration: NarrationConfig = field(default_factory=NarrationConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    stats: StatsConfig = field(default_factory=StatsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "EKINAVI_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "EKINAVI_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "EKINAVI_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "EKINAVI_SEGMENTATION_TURN_HOLD_MS": lambda v: setattr(config.segmentation, "turn_hold_ms", int(v)),
        "EKINAVI_SEGMENTATION_STRAIGHT_CHECKPOINT_MS": lambda v: setattr(config.segmentation, "straight_checkpoint_ms", int(v)),
        "EKINAVI_SEGMENTATION_REVERT_GRACE_MS": lambda v: setattr(config.segmentation, "revert_grace_ms", int(v)),
        "EKINAVI_SEGMENTATION_RESET_COOLDOWN_MS": lambda v: setattr(config.segmentation, "reset_cooldown_ms", int(v)),
        "EKINAVI_NARRATION_SKEW_MS": lambda v: setattr(config.narration, "skew_ms", int(v)),
        "EKINAVI_CATALOG_HISTORY_SIZE": lambda v: setattr(config.catalog, "history_size", int(v)),
        "EKINAVI_STATS_ACTIVE_WINDOW": lambda v: setattr(config.stats, "active_window_seconds", float(v)),
        "EKINAVI_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "EKINAVI_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("EKINAVI_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in fields(config):
            values = raw.get(section.name) or {}
            target = getattr(config, section.name)
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
