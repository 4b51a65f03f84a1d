"""Unit tests for time parsing and slot generation."""

import pytest

from schedule_builder.errors import InvalidTimeFormat
from schedule_builder.models import BREAK, TEACHING
from schedule_builder.time_axis import (
    BreakWindow, format_time, format_time_range, generate_slots, generate_slots_with_breaks,
    generate_split_slots, normalize_time, parse_time, parse_time_lenient,
)

SHS_BREAKS = [
    BreakWindow("9:45 AM", "10:00 AM", 15, "Morning Recess"),
    BreakWindow("12:00 PM", "1:00 PM", 60, "Lunch"),
    BreakWindow("3:00 PM", "3:15 PM", 15, "Afternoon Recess"),
]


def assert_contiguous(slots):
    for a, b in zip(slots, slots[1:]):
        assert a.end == b.start


def test_parse_time():
    """Test parsing of 12-hour clock strings."""
    assert parse_time("12:00 AM") == 0
    assert parse_time("7:45 AM") == 465
    assert parse_time("12:00 PM") == 720
    assert parse_time("1:05 pm") == 785
    assert parse_time("11:59 PM") == 1439


@pytest.mark.parametrize("value", ["", "7:45", "13:00 PM", "0:30 AM", "7:60 AM", "noon", None])
def test_parse_time_rejects_bad_input(value):
    """Test that malformed times raise InvalidTimeFormat."""
    with pytest.raises(InvalidTimeFormat):
        parse_time(value)


def test_invalid_time_is_value_error():
    """Test InvalidTimeFormat can be caught as ValueError."""
    with pytest.raises(ValueError):
        parse_time("25:00 AM")


def test_format_time_wraps():
    """Test formatting wraps around midnight instead of failing."""
    assert format_time(0) == "12:00 AM"
    assert format_time(465) == "7:45 AM"
    assert format_time(720) == "12:00 PM"
    assert format_time(1440 + 60) == "1:00 AM"
    assert format_time(-60) == "11:00 PM"


def test_round_trip_all_minutes():
    """Test every minute of the day survives format then parse."""
    for m in range(0, 1440):
        assert parse_time(format_time(m)) == m


def test_normalize_time():
    """Test canonical spelling of time strings."""
    assert normalize_time("07:05 am") == "7:05 AM"


def test_parse_time_lenient():
    """Test lenient parsing used by imports."""
    assert parse_time_lenient("7:45 AM") == 465
    assert parse_time_lenient("13:00") == 780
    assert parse_time_lenient("07:30") == 450


def test_parse_time_lenient_accepts_time_objects():
    """Test spreadsheet time cells are accepted."""
    from datetime import time
    assert parse_time_lenient(time(14, 15)) == 855


def test_parse_time_lenient_rejects_words():
    """Test words without digits are never read as midnight."""
    with pytest.raises(InvalidTimeFormat):
        parse_time_lenient("Monday")
    with pytest.raises(InvalidTimeFormat):
        parse_time_lenient("")


def test_generate_slots_hourly():
    """Test uniform hourly slots."""
    slots = generate_slots("8:00 AM", "11:00 AM", 60)
    assert [(s.start, s.end) for s in slots] == [
        ("8:00 AM", "9:00 AM"),
        ("9:00 AM", "10:00 AM"),
        ("10:00 AM", "11:00 AM"),
    ]
    assert all(s.kind == TEACHING for s in slots)


def test_generate_slots_drops_trailing_partial():
    """Test a trailing piece shorter than the step is dropped."""
    slots = generate_slots("8:00 AM", "10:30 AM", 60)
    assert len(slots) == 2
    assert slots[-1].end == "10:00 AM"


def test_generate_slots_past_midnight():
    """Test a window ending at or before its start runs into the next day."""
    slots = generate_slots("10:00 PM", "1:00 AM", 60)
    assert [s.start for s in slots] == ["10:00 PM", "11:00 PM", "12:00 AM"]
    assert slots[-1].end == "1:00 AM"


def test_generate_slots_rejects_bad_step():
    """Test non-positive steps are rejected."""
    with pytest.raises(ValueError):
        generate_slots("8:00 AM", "9:00 AM", 0)


def test_shs_slots_with_breaks():
    """Test the Senior High School day layout."""
    slots = generate_slots_with_breaks("7:45 AM", "5:15 PM", 60, SHS_BREAKS)
    assert len(slots) == 11
    assert slots[2].kind == BREAK
    assert slots[2].label == "Morning Recess"
    assert (slots[2].start, slots[2].end) == ("9:45 AM", "10:00 AM")
    assert slots[5].label == "Lunch"
    assert slots[8].label == "Afternoon Recess"
    assert slots[0].start == "7:45 AM"
    assert slots[-1].end == "5:15 PM"
    assert_contiguous(slots)


def test_break_step_splits_break():
    """Test a break uses its own step inside its range."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "11:00 AM", 60, [BreakWindow("9:00 AM", "10:00 AM", 15, "Recess")]
    )
    breaks = [s for s in slots if s.is_break]
    assert len(breaks) == 4
    assert [s.start for s in breaks] == ["9:00 AM", "9:15 AM", "9:30 AM", "9:45 AM"]
    assert_contiguous(slots)


def test_teaching_slot_clipped_at_break_start():
    """Test a teaching slot before an off-grid break is shortened."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "11:00 AM", 60, [BreakWindow("9:30 AM", "9:45 AM", 15, "Recess")]
    )
    assert (slots[1].start, slots[1].end) == ("9:00 AM", "9:30 AM")
    assert slots[2].is_break
    assert slots[3].start == "9:45 AM"
    assert_contiguous(slots)


def test_overlapping_breaks_use_smallest_step():
    """Test merged breaks take the smaller step and first label."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "12:00 PM", 60,
        [
            BreakWindow("9:00 AM", "10:00 AM", 30, "Snack"),
            BreakWindow("9:30 AM", "10:30 AM", 10, None),
        ],
    )
    breaks = [s for s in slots if s.is_break]
    assert breaks[0].start == "9:00 AM"
    assert breaks[-1].end == "10:30 AM"
    assert all(s.label == "Snack" for s in breaks)
    assert len(breaks) == 9
    assert_contiguous(slots)


def test_break_outside_window_ignored():
    """Test breaks outside the window produce no break rows."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "10:00 AM", 60, [BreakWindow("1:00 PM", "2:00 PM", 60, "Lunch")]
    )
    assert not any(s.is_break for s in slots)
    assert len(slots) == 2


def test_break_at_window_start():
    """Test a break starting exactly at the window start stays on the same day."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "10:00 AM", 60, [BreakWindow("8:00 AM", "8:30 AM", None, "Assembly")]
    )
    assert slots[0].is_break
    assert (slots[0].start, slots[0].end) == ("8:00 AM", "8:30 AM")
    assert slots[1].start == "8:30 AM"
    assert slots[-1].end == "10:00 AM"


def test_unlabeled_break_defaults_label():
    """Test a break without a label is called Break."""
    slots = generate_slots_with_breaks(
        "8:00 AM", "10:00 AM", 60, [BreakWindow("9:00 AM", "9:30 AM")]
    )
    assert slots[1].label == "Break"


def test_split_slots_without_splits_stay_half_hour():
    """Test half-hour mode keeps every slot split when none are chosen."""
    slots = generate_split_slots("8:00 AM", "10:00 AM", [])
    assert len(slots) == 4


def test_split_slots_merge_unsplit_hours():
    """Test only chosen hours keep two halves."""
    slots = generate_split_slots("8:00 AM", "11:00 AM", ["9:00 AM"])
    assert [(s.start, s.end) for s in slots] == [
        ("8:00 AM", "9:00 AM"),
        ("9:00 AM", "9:30 AM"),
        ("9:30 AM", "10:00 AM"),
        ("10:00 AM", "11:00 AM"),
    ]


def test_format_time_range():
    """Test time range label."""
    assert format_time_range("7:45 AM", "8:45 AM") == "7:45 AM - 8:45 AM"
