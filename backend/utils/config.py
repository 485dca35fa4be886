"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value in (None, ""):
        return None
    return _env_int(name, 0)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_offsets(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return tuple(int(item) for item in value.split(",") if item.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a comma separated list of minutes") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    seed_demo_data: bool

    server_host: str
    server_port: int
    server_reload: bool

    combination_max_results: int
    combination_max_attempts: int
    combination_random_seed: Optional[int]

    recommendation_search_offsets: tuple[int, ...]
    recommendation_min_hour: int
    recommendation_max_hour: int
    recommendation_max_results: int

    travel_average_speed_kmh: float
    travel_slot_minutes: int
    travel_max_days: int
    travel_day_start_hour: int
    travel_slot_search_limit: int
    travel_appointment_slots: int
    travel_earth_radius_km: float

    default_schedule_start_hour: int
    default_schedule_end_hour: int
    default_min_hours_per_week: float

    carry_over_window_days: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        app_name=_env_str("COORD_APP_NAME", "Group Schedule Coordination Engine"),
        app_version=_env_str("COORD_APP_VERSION", "1.0.0"),
        log_level=_env_str("COORD_LOG_LEVEL", "INFO"),
        database_path=Path(
            _env_str("COORD_DATABASE_PATH", str(PROJECT_ROOT / "data" / "coordination.db"))
        ),
        seed_demo_data=_env_bool("COORD_SEED_DEMO_DATA", True),
        server_host=_env_str("COORD_SERVER_HOST", "127.0.0.1"),
        server_port=_env_int("COORD_SERVER_PORT", 8000),
        server_reload=_env_bool("COORD_SERVER_RELOAD", False),
        combination_max_results=_env_int("COORD_COMBINATION_MAX_RESULTS", 5),
        combination_max_attempts=_env_int("COORD_COMBINATION_MAX_ATTEMPTS", 20),
        combination_random_seed=_env_optional_int("COORD_COMBINATION_RANDOM_SEED"),
        recommendation_search_offsets=_env_offsets(
            "COORD_RECOMMENDATION_SEARCH_OFFSETS",
            (30, -30, 60, -60, 90, -90, 120, -120, 180, -180),
        ),
        recommendation_min_hour=_env_int("COORD_RECOMMENDATION_MIN_HOUR", 9),
        recommendation_max_hour=_env_int("COORD_RECOMMENDATION_MAX_HOUR", 22),
        recommendation_max_results=_env_int("COORD_RECOMMENDATION_MAX_RESULTS", 5),
        travel_average_speed_kmh=_env_float("COORD_TRAVEL_AVERAGE_SPEED_KMH", 30.0),
        travel_slot_minutes=_env_int("COORD_TRAVEL_SLOT_MINUTES", 30),
        travel_max_days=_env_int("COORD_TRAVEL_MAX_DAYS", 5),
        travel_day_start_hour=_env_int("COORD_TRAVEL_DAY_START_HOUR", 9),
        travel_slot_search_limit=_env_int("COORD_TRAVEL_SLOT_SEARCH_LIMIT", 100),
        travel_appointment_slots=_env_int("COORD_TRAVEL_APPOINTMENT_SLOTS", 2),
        travel_earth_radius_km=_env_float("COORD_TRAVEL_EARTH_RADIUS_KM", 6371.0),
        default_schedule_start_hour=_env_int("COORD_DEFAULT_SCHEDULE_START_HOUR", 9),
        default_schedule_end_hour=_env_int("COORD_DEFAULT_SCHEDULE_END_HOUR", 18),
        default_min_hours_per_week=_env_float("COORD_DEFAULT_MIN_HOURS_PER_WEEK", 3.0),
        carry_over_window_days=_env_int("COORD_CARRY_OVER_WINDOW_DAYS", 7),
    )
