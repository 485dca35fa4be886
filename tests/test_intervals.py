from __future__ import annotations

from backend.domain.intervals import (
    TimeBlock,
    format_minutes,
    intersect_time_blocks,
    is_valid_time,
    merge_time_blocks,
    parse_time,
)


def test_parse_time_handles_valid_and_invalid_values() -> None:
    assert parse_time("09:30") == 570
    assert parse_time("24:00") == 1440
    assert parse_time("25:00") is None
    assert parse_time("9h") is None
    assert parse_time(None) is None
    assert is_valid_time("23:59")
    assert not is_valid_time("24:00")


def test_format_minutes_pads_hours() -> None:
    assert format_minutes(570) == "09:30"


def test_merge_joins_overlapping_and_touching_blocks() -> None:
    merged = merge_time_blocks(
        [
            TimeBlock("13:00", "15:00"),
            TimeBlock("09:00", "10:00"),
            TimeBlock("10:00", "11:30"),
            TimeBlock("14:30", "16:00"),
        ]
    )
    assert merged == [TimeBlock("09:00", "11:30"), TimeBlock("13:00", "16:00")]


def test_merge_skips_invalid_blocks() -> None:
    merged = merge_time_blocks([TimeBlock("11:00", "10:00"), TimeBlock("bad", "12:00")])
    assert merged == []


def test_merge_keeps_separate_blocks_apart() -> None:
    blocks = [TimeBlock("09:00", "10:00"), TimeBlock("10:30", "11:00")]
    assert merge_time_blocks(blocks) == blocks


def test_intersect_returns_shared_ranges_in_order() -> None:
    owner = [TimeBlock("09:00", "12:00"), TimeBlock("13:00", "18:00")]
    member = [TimeBlock("11:00", "14:00")]
    assert intersect_time_blocks(owner, member) == [
        TimeBlock("11:00", "12:00"),
        TimeBlock("13:00", "14:00"),
    ]


def test_intersect_ignores_touching_ranges() -> None:
    assert intersect_time_blocks([TimeBlock("09:00", "10:00")], [TimeBlock("10:00", "11:00")]) == []
