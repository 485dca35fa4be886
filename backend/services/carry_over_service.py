"""Fairness bookkeeping for unmet weekly minimum hours."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Mapping, Sequence

from backend.domain.models import CarryOverRecord, CarryOverSuggestion, Member
from backend.utils.logger import get_logger


logger = get_logger(__name__)

LONG_TERM_CARRY_OVER_TITLE = "Long-term carry-over"


def calculate_carry_over_hours(
    members: Sequence[Member],
    assigned_minutes: Mapping[str, int],
    min_hours_per_week: float,
) -> dict[str, float]:
    """Shortfall in hours for every member below the weekly minimum."""
    shortfalls: dict[str, float] = {}
    for member in members:
        assigned_hours = assigned_minutes.get(member.member_id, 0) / 60.0
        shortfall = min_hours_per_week - assigned_hours
        if shortfall > 0:
            shortfalls[member.member_id] = shortfall
    return shortfalls


def apply_weekly_carry_over(
    members: Sequence[Member],
    assigned_minutes: Mapping[str, int],
    min_hours_per_week: float,
    week: date,
) -> list[Member]:
    """Return members with this week's carry-over applied.

    Short members accrue the shortfall; satisfied members are cleared. Every
    member gets a history record for the week so gaps are visible later.
    Re-running a week replaces its earlier contribution instead of adding to it.
    """
    shortfalls = calculate_carry_over_hours(members, assigned_minutes, min_hours_per_week)
    updated: list[Member] = []
    for member in members:
        amount = shortfalls.get(member.member_id, 0.0)
        previous = sum(
            record.amount for record in member.carry_over_history if record.week == week
        )
        history = tuple(
            record for record in member.carry_over_history if record.week != week
        ) + (CarryOverRecord(week=week, amount=amount),)
        base = max(0.0, member.carry_over_hours - previous)
        carry_over = base + amount if amount > 0 else 0.0
        updated.append(replace(member, carry_over_hours=carry_over, carry_over_history=history))

    if shortfalls:
        logger.info(
            "Carry-over applied | week=%s | short_members=%s | total_hours=%.2f",
            week.isoformat(),
            len(shortfalls),
            sum(shortfalls.values()),
        )
    return updated


def _has_positive_record(member: Member, window_start: date, window_end: date) -> bool:
    return any(
        window_start <= record.week < window_end and record.amount > 0
        for record in member.carry_over_history
    )


def find_long_term_carry_overs(
    members: Sequence[Member],
    start_date: date,
    window_days: int = 7,
) -> list[CarryOverSuggestion]:
    """Flag members short in both of the two weeks before ``start_date``."""
    one_window_ago = start_date - timedelta(days=window_days)
    two_windows_ago = start_date - timedelta(days=window_days * 2)

    suggestions: list[CarryOverSuggestion] = []
    for member in members:
        if not _has_positive_record(member, two_windows_ago, one_window_ago):
            continue
        if not _has_positive_record(member, one_window_ago, start_date):
            continue
        name = member.name or member.member_id
        suggestions.append(
            CarryOverSuggestion(
                member_id=member.member_id,
                title=LONG_TERM_CARRY_OVER_TITLE,
                content=(
                    f"Time for member '{name}' has been carried over for two consecutive "
                    "weeks. Lower the minimum weekly hours, extend the member's available "
                    "time, or assign time manually."
                ),
            )
        )
    return suggestions
