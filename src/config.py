"""
Centralized configuration with environment variable overrides.

Provider endpoints, engine limits and scoring weights are configurable
here. The engine and provider constructors receive these objects
explicitly; nothing else in the codebase reads the environment.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from src.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ProviderConfig:
    """External provider endpoints and credentials."""

    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    google_maps_base_url: str = os.getenv(
        "GOOGLE_MAPS_BASE_URL", "https://maps.googleapis.com/maps/api"
    )
    http_timeout_sec: float = _safe_float("HTTP_TIMEOUT", "5.0")
    directions_backend: str = os.getenv("DIRECTIONS_BACKEND", "google")
    haversine_speed_kmh: float = _safe_float("HAVERSINE_SPEED_KMH", "50.0")
    snapshot_path: str = os.getenv("SNAPSHOT_PATH", "")


@dataclass(frozen=True)
class EngineConfig:
    """Concurrency, deadline and caching limits for one suggestion request."""

    timezone: str = os.getenv("TIMEZONE", "Europe/Stockholm")
    max_concurrent_lookups: int = _safe_int("MAX_CONCURRENT_LOOKUPS", "6")
    travel_lookup_timeout_sec: float = _safe_float("TRAVEL_LOOKUP_TIMEOUT", "1.5")
    suggestion_deadline_sec: float = _safe_float("SUGGESTION_DEADLINE", "4.0")
    travel_cache_precision_m: float = _safe_float("TRAVEL_CACHE_PRECISION_M", "50")
    top_picks: int = _safe_int("TOP_PICKS", "3")
    home_commute_after: str = os.getenv("HOME_COMMUTE_AFTER", "15:00")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class ScoringConfig:
    """Idle-gap and confidence penalties applied on top of the travel score."""

    idle_gap_grace_minutes: int = _safe_int("IDLE_GAP_GRACE_MINUTES", "60")
    idle_gap_step_minutes: int = _safe_int("IDLE_GAP_STEP_MINUTES", "30")
    max_idle_penalty: int = _safe_int("MAX_IDLE_PENALTY", "10")
    degraded_origin_penalty: int = _safe_int("DEGRADED_ORIGIN_PENALTY", "5")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    providers: ProviderConfig = field(default_factory=ProviderConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "booking-suggestions")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.providers.directions_backend not in ("google", "haversine"):
        raise ValueError(
            "DIRECTIONS_BACKEND must be 'google' or 'haversine', "
            f"got {config.providers.directions_backend!r}"
        )
    if config.providers.http_timeout_sec <= 0:
        raise ValueError(
            f"HTTP_TIMEOUT must be > 0, got {config.providers.http_timeout_sec}"
        )
    if config.providers.haversine_speed_kmh <= 0:
        raise ValueError(
            f"HAVERSINE_SPEED_KMH must be > 0, got {config.providers.haversine_speed_kmh}"
        )
    try:
        ZoneInfo(config.engine.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown TIMEZONE: {config.engine.timezone!r}") from None
    if config.engine.max_concurrent_lookups < 1:
        raise ValueError(
            "MAX_CONCURRENT_LOOKUPS must be >= 1, "
            f"got {config.engine.max_concurrent_lookups}"
        )
    if config.engine.travel_lookup_timeout_sec <= 0:
        raise ValueError(
            "TRAVEL_LOOKUP_TIMEOUT must be > 0, "
            f"got {config.engine.travel_lookup_timeout_sec}"
        )
    if config.engine.suggestion_deadline_sec <= 0:
        raise ValueError(
            "SUGGESTION_DEADLINE must be > 0, "
            f"got {config.engine.suggestion_deadline_sec}"
        )
    if config.engine.travel_cache_precision_m <= 0:
        raise ValueError(
            "TRAVEL_CACHE_PRECISION_M must be > 0, "
            f"got {config.engine.travel_cache_precision_m}"
        )
    if config.engine.top_picks < 1:
        raise ValueError(f"TOP_PICKS must be >= 1, got {config.engine.top_picks}")
    try:
        datetime.strptime(config.engine.home_commute_after, "%H:%M")
    except ValueError:
        raise ValueError(
            f"HOME_COMMUTE_AFTER must be HH:MM, got {config.engine.home_commute_after!r}"
        ) from None

    for name, value in [
        ("IDLE_GAP_GRACE_MINUTES", config.scoring.idle_gap_grace_minutes),
        ("MAX_IDLE_PENALTY", config.scoring.max_idle_penalty),
        ("DEGRADED_ORIGIN_PENALTY", config.scoring.degraded_origin_penalty),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")
    if config.scoring.idle_gap_step_minutes < 1:
        raise ValueError(
            "IDLE_GAP_STEP_MINUTES must be >= 1, "
            f"got {config.scoring.idle_gap_step_minutes}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info(
        "Configuration loaded for '%s' (timezone %s, directions via %s)",
        config.service_name,
        config.engine.timezone,
        config.providers.directions_backend,
    )
    return config


# Singleton instance
settings = load_config()
