"""Tests for search and scheduling configuration validation."""

from __future__ import annotations

import pytest

from backend.domain.constraints import (
    RecommendationConfig,
    TravelConfig,
    validate_recommendation_config,
    validate_room_settings,
    validate_travel_config,
)
from backend.domain.models import RoomSettings


def valid_recommendation_config(**overrides) -> RecommendationConfig:
    defaults = {
        "search_offsets": (30, -30, 60, -60),
        "min_hour": 9,
        "max_hour": 22,
        "max_recommendations": 5,
    }
    defaults.update(overrides)
    return RecommendationConfig(**defaults)


def valid_travel_config(**overrides) -> TravelConfig:
    defaults = {
        "average_speed_kmh": 30.0,
        "slot_minutes": 30,
        "max_days": 5,
        "day_start_hour": 9,
        "slot_search_limit": 100,
        "appointment_slots": 2,
        "earth_radius_km": 6371.0,
    }
    defaults.update(overrides)
    return TravelConfig(**defaults)


# --- Baseline pass ---

def test_valid_configs_pass() -> None:
    validate_recommendation_config(valid_recommendation_config())
    validate_travel_config(valid_travel_config())
    validate_room_settings(RoomSettings())


# --- Recommendation search ---

def test_empty_offsets_raise() -> None:
    with pytest.raises(ValueError, match="search_offsets"):
        validate_recommendation_config(valid_recommendation_config(search_offsets=()))


def test_zero_offset_raises() -> None:
    with pytest.raises(ValueError, match="zero offset"):
        validate_recommendation_config(valid_recommendation_config(search_offsets=(0, 30)))


@pytest.mark.parametrize(("min_hour", "max_hour"), [(22, 9), (9, 9), (-1, 10), (9, 25)])
def test_hour_window_bounds_raise(min_hour: int, max_hour: int) -> None:
    with pytest.raises(ValueError, match="min_hour"):
        validate_recommendation_config(
            valid_recommendation_config(min_hour=min_hour, max_hour=max_hour)
        )


def test_zero_max_recommendations_raises() -> None:
    with pytest.raises(ValueError, match="max_recommendations"):
        validate_recommendation_config(valid_recommendation_config(max_recommendations=0))


# --- Travel scheduler ---

@pytest.mark.parametrize("slot_minutes", [0, 7, 45])
def test_slot_minutes_must_divide_an_hour(slot_minutes: int) -> None:
    with pytest.raises(ValueError, match="slot_minutes"):
        validate_travel_config(valid_travel_config(slot_minutes=slot_minutes))


def test_non_positive_speed_raises() -> None:
    with pytest.raises(ValueError, match="average_speed_kmh"):
        validate_travel_config(valid_travel_config(average_speed_kmh=0.0))


def test_zero_max_days_raises() -> None:
    with pytest.raises(ValueError, match="max_days"):
        validate_travel_config(valid_travel_config(max_days=0))


def test_zero_appointment_slots_raises() -> None:
    with pytest.raises(ValueError, match="appointment_slots"):
        validate_travel_config(valid_travel_config(appointment_slots=0))


# --- Room settings ---

def test_inverted_room_hours_raise() -> None:
    with pytest.raises(ValueError, match="schedule hours"):
        validate_room_settings(RoomSettings(schedule_start_hour=18, schedule_end_hour=9))


def test_negative_minimum_hours_raise() -> None:
    with pytest.raises(ValueError):
        validate_room_settings(RoomSettings(min_hours_per_week=-1.0))
