"""Conflict detection and randomized conflict-free combination generation."""

from __future__ import annotations

import random
from typing import Optional, Sequence

from backend.domain.intervals import intervals_overlap, parse_time
from backend.domain.models import Schedule, day_code_for
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

Combination = list[Schedule]


def _effective_days(schedule: Schedule) -> set[str]:
    days = set(schedule.days or ())
    if schedule.date is not None:
        days.add(day_code_for(schedule.date))
    return days


def _share_day(first: Schedule, second: Schedule) -> bool:
    if first.date is not None and second.date is not None:
        return first.date == second.date
    return bool(_effective_days(first) & _effective_days(second))


def has_conflict(first: Schedule, second: Schedule) -> bool:
    if not _share_day(first, second):
        return False

    start1 = parse_time(first.start_time)
    end1 = parse_time(first.end_time)
    start2 = parse_time(second.start_time)
    end2 = parse_time(second.end_time)
    if start1 is None or end1 is None or start2 is None or end2 is None:
        return False
    return intervals_overlap(start1, end1, start2, end2)


def find_conflicts(schedules: Sequence[Schedule]) -> list[tuple[int, int]]:
    """Return every conflicting index pair (i < j)."""
    pairs: list[tuple[int, int]] = []
    for i in range(len(schedules)):
        for j in range(i + 1, len(schedules)):
            if has_conflict(schedules[i], schedules[j]):
                pairs.append((i, j))
    return pairs


def combination_signature(combination: Sequence[Schedule]) -> tuple[tuple[str, str, str], ...]:
    return tuple(
        sorted(
            (schedule.title, schedule.start_time, ",".join(sorted(schedule.days or ())))
            for schedule in combination
        )
    )


def generate_non_conflicting_combination(
    schedules: Sequence[Schedule],
    rng: Optional[random.Random] = None,
) -> Combination:
    """Shuffle, then greedily keep every schedule that fits.

    Output differs between calls unless a seeded ``rng`` is supplied.
    """
    shuffled = list(schedules)
    (rng or random).shuffle(shuffled)

    accepted: Combination = []
    for schedule in shuffled:
        if any(has_conflict(schedule, selected) for selected in accepted):
            continue
        accepted.append(schedule)
    return accepted


def generate_multiple_combinations(
    schedules: Sequence[Schedule],
    max_combinations: int = 5,
    max_attempts: int = 20,
    rng: Optional[random.Random] = None,
) -> list[Combination]:
    combinations: list[Combination] = []
    seen: set[tuple[tuple[str, str, str], ...]] = set()

    attempts = 0
    while attempts < max_attempts and len(combinations) < max_combinations:
        attempts += 1
        combination = generate_non_conflicting_combination(schedules, rng=rng)
        if not combination:
            continue
        signature = combination_signature(combination)
        if signature in seen:
            continue
        seen.add(signature)
        combinations.append(combination)

    if not combinations and schedules:
        combinations.append(generate_non_conflicting_combination(schedules, rng=rng))

    # sorted() is stable, so equal sizes keep discovery order.
    combinations = sorted(combinations, key=len, reverse=True)
    logger.debug(
        "Combinations generated | candidates=%s | attempts=%s | unique=%s",
        len(schedules),
        attempts,
        len(combinations),
    )
    return combinations


class ScheduleCombinationService:
    """Wraps the generator with a configurable random source."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rng = rng or random.Random(self._settings.combination_random_seed)

    def find_conflicts(self, schedules: Sequence[Schedule]) -> list[tuple[int, int]]:
        return find_conflicts(schedules)

    def generate(
        self,
        schedules: Sequence[Schedule],
        max_combinations: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> list[Combination]:
        resolved_max = (
            max_combinations
            if max_combinations is not None
            else self._settings.combination_max_results
        )
        resolved_attempts = (
            max_attempts
            if max_attempts is not None
            else self._settings.combination_max_attempts
        )
        if resolved_max <= 0 or resolved_attempts <= 0:
            raise ValueError("max_combinations and max_attempts must be > 0")

        combinations = generate_multiple_combinations(
            schedules,
            max_combinations=resolved_max,
            max_attempts=resolved_attempts,
            rng=self._rng,
        )
        logger.info(
            "Combination generation completed | candidates=%s | combinations=%s | largest=%s",
            len(schedules),
            len(combinations),
            len(combinations[0]) if combinations else 0,
        )
        return combinations
