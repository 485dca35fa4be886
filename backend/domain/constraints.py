"""Domain-level validation rules for search and scheduling configuration."""

from __future__ import annotations

from dataclasses import dataclass

from backend.domain.models import RoomSettings


@dataclass(frozen=True)
class RecommendationConfig:
    search_offsets: tuple[int, ...]
    min_hour: int
    max_hour: int
    max_recommendations: int


@dataclass(frozen=True)
class TravelConfig:
    average_speed_kmh: float
    slot_minutes: int
    max_days: int
    day_start_hour: int
    slot_search_limit: int
    appointment_slots: int
    earth_radius_km: float


def validate_recommendation_config(config: RecommendationConfig) -> None:
    if not config.search_offsets:
        raise ValueError("search_offsets must contain at least one offset")
    if 0 in config.search_offsets:
        raise ValueError("search_offsets must not contain a zero offset")
    if not 0 <= config.min_hour < config.max_hour <= 24:
        raise ValueError("min_hour and max_hour must satisfy 0 <= min_hour < max_hour <= 24")
    if config.max_recommendations <= 0:
        raise ValueError("max_recommendations must be > 0")


def validate_travel_config(config: TravelConfig) -> None:
    if config.average_speed_kmh <= 0.0:
        raise ValueError("average_speed_kmh must be > 0")
    if config.slot_minutes <= 0 or 60 % config.slot_minutes != 0:
        raise ValueError("slot_minutes must be a positive divisor of 60")
    if config.max_days <= 0:
        raise ValueError("max_days must be > 0")
    if not 0 <= config.day_start_hour <= 23:
        raise ValueError("day_start_hour must be between 0 and 23")
    if config.slot_search_limit <= 0:
        raise ValueError("slot_search_limit must be > 0")
    if config.appointment_slots <= 0:
        raise ValueError("appointment_slots must be > 0")
    if config.earth_radius_km <= 0.0:
        raise ValueError("earth_radius_km must be > 0")


def validate_room_settings(settings: RoomSettings) -> None:
    if not 0 <= settings.schedule_start_hour < settings.schedule_end_hour <= 24:
        raise ValueError(
            "schedule hours must satisfy 0 <= schedule_start_hour < schedule_end_hour <= 24"
        )
    if settings.min_hours_per_week < 0:
        raise ValueError("min_hours_per_week must be >= 0")
