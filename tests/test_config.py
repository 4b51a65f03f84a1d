"""Unit tests for schedule type configuration and school years."""

from datetime import date

import pytest

from schedule_builder.config import (
    build_time_slots, default_school_year, get_schedule_type, hour_options,
    school_year_options, validate_school_year, validate_semester,
)


def test_shs_ignores_half_hour():
    """Test SHS rows are fixed regardless of the half-hour toggle."""
    assert build_time_slots("shs", half_hour_enabled=True) == build_time_slots("shs")
    assert len(build_time_slots("shs")) == 11


def test_tesda_hourly():
    """Test TESDA rows are hourly from 8 AM to 7 PM."""
    slots = build_time_slots("tesda")
    assert len(slots) == 11
    assert slots[0].start == "8:00 AM"
    assert slots[-1].end == "7:00 PM"
    assert not any(s.is_break for s in slots)


def test_tesda_half_hour():
    """Test TESDA half-hour mode."""
    assert len(build_time_slots("tesda", half_hour_enabled=True)) == 22
    split = build_time_slots("tesda", half_hour_enabled=True, split_hours=["8:00 AM"])
    assert len(split) == 12


def test_hour_options():
    """Test the hours offered for splitting."""
    options = hour_options("tesda")
    assert options[0] == "8:00 AM"
    assert options[-1] == "6:00 PM"


def test_unknown_schedule_type():
    """Test unknown schedule types are rejected."""
    with pytest.raises(ValueError):
        get_schedule_type("college")


def test_default_school_year():
    """Test the school year turns over in June."""
    assert default_school_year(date(2025, 5, 31)) == "2024-2025"
    assert default_school_year(date(2025, 6, 1)) == "2025-2026"


def test_school_year_options():
    """Test the selector offers two years either side."""
    options = school_year_options(date(2025, 3, 1))
    assert "2023-2024" in options
    assert "2027-2028" in options
    assert "2024-2025" in options


def test_validate_school_year():
    """Test school year format validation."""
    assert validate_school_year(" 2025-2026 ") == "2025-2026"
    with pytest.raises(ValueError):
        validate_school_year("2025/2026")
    with pytest.raises(ValueError):
        validate_school_year("2025-2027")


def test_validate_semester():
    """Test semester values."""
    assert validate_semester("second") == "second"
    with pytest.raises(ValueError):
        validate_semester("third")
