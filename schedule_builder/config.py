"""
Configuration for the schedule builder.

Holds the environment-driven settings and the two built-in schedule types:
Senior High School (fixed hourly rows with recess and lunch breaks) and
TESDA-based college (plain hourly rows with an optional half-hour mode).
"""

import os
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from .models import TimeSlot
from .time_axis import BreakWindow, generate_slots, generate_slots_with_breaks, generate_split_slots

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
DATABASE_URL = os.getenv("DATABASE_URL")
DATA_DIR = Path(os.getenv("SCHEDULE_DATA_DIR", str(Path.home() / ".schedule_builder")))
AUTOSAVE_DELAY = float(os.getenv("AUTOSAVE_DELAY", "1.0"))
AUTOSAVE_ENABLED = os.getenv("AUTOSAVE_ENABLED", "1").lower() not in ("0", "false", "no", "off")

# Row height in pixels used before rows have been measured
MIN_ROW_PX = 140

SEMESTERS = ("first", "second")

_SCHOOL_YEAR_RE = re.compile(r"^(\d{4})-(\d{4})$")


@dataclass
class ScheduleTypeConfig:
    """Everything needed to build the grid rows and columns for a schedule type."""
    name: str
    title: str
    day_start: str
    day_end: str
    step_minutes: int
    weekdays: List[str]
    breaks: List[BreakWindow] = field(default_factory=list)
    # Weekday -> break labels that are ordinary teaching cells on that day
    break_overrides: Dict[str, Set[str]] = field(default_factory=dict)
    supports_half_hour: bool = False


SCHEDULE_TYPES: Dict[str, ScheduleTypeConfig] = {
    "shs": ScheduleTypeConfig(
        name="shs",
        title="Senior High School",
        day_start="7:45 AM",
        day_end="5:15 PM",
        step_minutes=60,
        weekdays=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        breaks=[
            BreakWindow("9:45 AM", "10:00 AM", 15, "Morning Recess"),
            BreakWindow("12:00 PM", "1:00 PM", 60, "Lunch"),
            BreakWindow("3:00 PM", "3:15 PM", 15, "Afternoon Recess"),
        ],
        # No recess for SHS on Fridays
        break_overrides={"Friday": {"Morning Recess", "Afternoon Recess"}},
    ),
    "tesda": ScheduleTypeConfig(
        name="tesda",
        title="TESDA-Based College",
        day_start="8:00 AM",
        day_end="7:00 PM",
        step_minutes=60,
        weekdays=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"],
        supports_half_hour=True,
    ),
}


def get_schedule_type(name: str) -> ScheduleTypeConfig:
    """Look up a schedule type by name.

    Raises:
        ValueError: If the schedule type is unknown
    """
    try:
        return SCHEDULE_TYPES[name]
    except KeyError:
        raise ValueError(f"Unknown schedule type: {name!r}") from None


def build_time_slots(schedule_type: str, half_hour_enabled: bool = False,
                     split_hours: Optional[Iterable[str]] = None) -> List[TimeSlot]:
    """Slot rows for a schedule type.

    The half-hour toggle only applies to types that support it; SHS always
    uses its fixed rows.
    """
    cfg = get_schedule_type(schedule_type)
    if cfg.breaks:
        return generate_slots_with_breaks(cfg.day_start, cfg.day_end, cfg.step_minutes, cfg.breaks)
    if cfg.supports_half_hour and half_hour_enabled:
        return generate_split_slots(cfg.day_start, cfg.day_end, split_hours or [])
    return generate_slots(cfg.day_start, cfg.day_end, cfg.step_minutes)


def hour_options(schedule_type: str) -> List[str]:
    """Hour starts that can be toggled as split in half-hour mode."""
    cfg = get_schedule_type(schedule_type)
    return [s.start for s in generate_slots(cfg.day_start, cfg.day_end, 60)]


def default_school_year(today: Optional[date] = None) -> str:
    """School year containing ``today``; a new year starts in June."""
    today = today or date.today()
    start = today.year if today.month >= 6 else today.year - 1
    return f"{start}-{start + 1}"


def school_year_options(today: Optional[date] = None) -> List[str]:
    """Two years either side of the current calendar year, plus the default."""
    today = today or date.today()
    options = [f"{today.year + i}-{today.year + i + 1}" for i in range(-2, 3)]
    default = default_school_year(today)
    if default not in options:
        options.insert(0, default)
    return options


def validate_school_year(value: str) -> str:
    """Check a school year typed by the user.

    Returns:
        The trimmed value

    Raises:
        ValueError: If it is not "YYYY-YYYY" with consecutive years
    """
    value = (value or "").strip()
    match = _SCHOOL_YEAR_RE.match(value)
    if not match:
        raise ValueError("Please enter school year in format YYYY-YYYY (e.g. 2025-2026).")
    if int(match.group(2)) != int(match.group(1)) + 1:
        raise ValueError(f"School year {value} must span consecutive years.")
    return value


def validate_semester(value: str) -> str:
    if value not in SEMESTERS:
        raise ValueError(f"Semester must be one of {', '.join(SEMESTERS)}")
    return value
