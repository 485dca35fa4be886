"""Time-of-day parsing and interval normalisation helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional


_TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True)
class TimeBlock:
    start_time: str
    end_time: str


def is_valid_time(value: Optional[str]) -> bool:
    if not value:
        return False
    return _TIME_PATTERN.match(value) is not None


def parse_time(value: Optional[str]) -> Optional[int]:
    """Return minutes since midnight, or None when the value is not HH:MM."""
    if not value:
        return None
    if value == "24:00":
        return 24 * 60
    match = _TIME_PATTERN.match(value)
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    hours, remainder = divmod(minutes, 60)
    return f"{hours:02d}:{remainder:02d}"


def intervals_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    return start1 < end2 and end1 > start2


def merge_time_blocks(blocks: Iterable[TimeBlock]) -> list[TimeBlock]:
    """Merge overlapping or touching blocks into maximal contiguous ranges."""
    parsed = []
    for block in blocks:
        start = parse_time(block.start_time)
        end = parse_time(block.end_time)
        if start is None or end is None or start >= end:
            continue
        parsed.append((start, end))
    if not parsed:
        return []

    parsed.sort()
    merged: list[tuple[int, int]] = [parsed[0]]
    for start, end in parsed[1:]:
        current_start, current_end = merged[-1]
        if start <= current_end:
            merged[-1] = (current_start, max(current_end, end))
        else:
            merged.append((start, end))
    return [TimeBlock(format_minutes(start), format_minutes(end)) for start, end in merged]


def intersect_time_blocks(
    first: Iterable[TimeBlock],
    second: Iterable[TimeBlock],
) -> list[TimeBlock]:
    """Pairwise intersection of two block lists, ordered by start time."""
    second_blocks = list(second)
    overlaps: list[tuple[int, int]] = []
    for left in first:
        left_start = parse_time(left.start_time)
        left_end = parse_time(left.end_time)
        if left_start is None or left_end is None:
            continue
        for right in second_blocks:
            right_start = parse_time(right.start_time)
            right_end = parse_time(right.end_time)
            if right_start is None or right_end is None:
                continue
            start = max(left_start, right_start)
            end = min(left_end, right_end)
            if start < end:
                overlaps.append((start, end))
    overlaps.sort()
    return [TimeBlock(format_minutes(start), format_minutes(end)) for start, end in overlaps]
