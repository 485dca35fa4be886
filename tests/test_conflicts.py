from __future__ import annotations

import random
from datetime import date
from itertools import combinations as pairs

import pytest

from backend.domain.models import Schedule
from backend.services.conflict_service import (
    ScheduleCombinationService,
    combination_signature,
    find_conflicts,
    generate_multiple_combinations,
    generate_non_conflicting_combination,
    has_conflict,
)
from backend.utils.config import get_settings


A = Schedule(title="A", days=("MON",), start_time="10:00", end_time="11:00")
B = Schedule(title="B", days=("MON", "WED"), start_time="10:30", end_time="11:30")
C = Schedule(title="C", days=("TUE",), start_time="10:00", end_time="11:00")
D = Schedule(title="D", days=("MON",), start_time="11:00", end_time="12:00")
E = Schedule(title="E", days=("WED", "FRI"), start_time="09:00", end_time="10:45")


def test_overlapping_schedules_on_shared_day_conflict() -> None:
    assert has_conflict(A, B) is True
    assert has_conflict(B, A) is True


def test_touching_intervals_do_not_conflict() -> None:
    assert has_conflict(A, D) is False


def test_disjoint_days_do_not_conflict() -> None:
    assert has_conflict(A, C) is False


def test_conflict_is_symmetric_for_all_pairs() -> None:
    schedules = [A, B, C, D, E]
    for first in schedules:
        for second in schedules:
            assert has_conflict(first, second) == has_conflict(second, first)


def test_dated_schedules_compare_by_calendar_date() -> None:
    monday = date(2026, 3, 2)
    next_monday = date(2026, 3, 9)
    first = Schedule(title="X", days=(), start_time="10:00", end_time="11:00", date=monday)
    same_day = Schedule(title="Y", days=(), start_time="10:30", end_time="11:30", date=monday)
    other_week = Schedule(title="Z", days=(), start_time="10:30", end_time="11:30", date=next_monday)

    assert has_conflict(first, same_day) is True
    assert has_conflict(first, other_week) is False
    # A dated event still collides with a recurring window on its weekday.
    assert has_conflict(first, B) is True


def test_unparseable_times_never_conflict() -> None:
    broken = Schedule(title="broken", days=("MON",), start_time="10h", end_time="11:00")
    assert has_conflict(A, broken) is False


def test_find_conflicts_returns_index_pairs() -> None:
    assert find_conflicts([A, B, C, D]) == [(0, 1), (1, 3)]


def test_generated_combination_is_pairwise_conflict_free() -> None:
    schedules = [A, B, C, D, E]
    for seed in range(25):
        combination = generate_non_conflicting_combination(schedules, rng=random.Random(seed))
        assert combination
        for first, second in pairs(combination, 2):
            assert not has_conflict(first, second)


def test_multiple_combinations_are_unique_and_ordered_by_size() -> None:
    schedules = [A, B, C, D, E]
    result = generate_multiple_combinations(
        schedules,
        max_combinations=5,
        max_attempts=40,
        rng=random.Random(7),
    )

    assert 1 <= len(result) <= 5
    signatures = [combination_signature(combination) for combination in result]
    assert len(signatures) == len(set(signatures))
    sizes = [len(combination) for combination in result]
    assert sizes == sorted(sizes, reverse=True)
    for combination in result:
        for first, second in pairs(combination, 2):
            assert not has_conflict(first, second)


def test_multiple_combinations_non_empty_for_non_empty_input() -> None:
    result = generate_multiple_combinations([A], max_combinations=3, max_attempts=1)
    assert result == [[A]]


def test_multiple_combinations_empty_input() -> None:
    assert generate_multiple_combinations([], max_combinations=3, max_attempts=5) == []


def test_signature_ignores_day_order() -> None:
    reordered = Schedule(title="B", days=("WED", "MON"), start_time="10:30", end_time="11:30")
    assert combination_signature([A, B]) == combination_signature([reordered, A])


def test_two_conflicting_schedules_yield_single_item_combinations() -> None:
    result = generate_multiple_combinations([A, B], max_attempts=50, rng=random.Random(3))
    assert {combination[0].title for combination in result} <= {"A", "B"}
    assert all(len(combination) == 1 for combination in result)


def test_seeded_service_is_repeatable() -> None:
    settings = get_settings()
    first = ScheduleCombinationService(settings=settings, rng=random.Random(42))
    second = ScheduleCombinationService(settings=settings, rng=random.Random(42))
    schedules = [A, B, C, D, E]
    assert first.generate(schedules) == second.generate(schedules)


def test_service_rejects_non_positive_limits() -> None:
    service = ScheduleCombinationService(settings=get_settings(), rng=random.Random(1))
    with pytest.raises(ValueError):
        service.generate([A], max_combinations=0)
    with pytest.raises(ValueError):
        service.generate([A], max_attempts=-1)
