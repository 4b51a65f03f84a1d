"""
Time axis for the weekly schedule grid.

Converts between "7:45 AM" style strings and minutes since midnight, and
generates the ordered slot rows a grid is rendered against. Slot rows can
contain break ranges (recess, lunch) that use their own granularity.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

import dateparser

from .errors import InvalidTimeFormat
from .models import BREAK, TEACHING, TimeSlot

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)


@dataclass
class BreakWindow:
    """A non-teaching range inside the day window.

    ``step_minutes`` is the slot size used inside the break; when omitted
    the whole break becomes a single slot.
    """
    start: str
    end: str
    step_minutes: Optional[int] = None
    label: Optional[str] = None


def parse_time(value: str) -> int:
    """Parse a time string like "7:45 AM" into minutes since midnight.

    Args:
        value: Time in ``H:MM AM|PM`` format (meridiem case-insensitive)

    Returns:
        Minutes since midnight in [0, 1440)

    Raises:
        InvalidTimeFormat: If the string is not a valid 12-hour clock time
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    hour = int(match.group(1))
    minutes = int(match.group(2))
    if not 1 <= hour <= 12 or minutes > 59:
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    if hour == 12:
        hour = 0
    if match.group(3).upper() == "PM":
        hour += 12
    return hour * 60 + minutes


def format_time(total_minutes: int) -> str:
    """Format minutes since midnight as "h:mm AM/PM".

    Values outside a single day wrap around, so this never fails.
    """
    total_minutes = total_minutes % MINUTES_PER_DAY
    hour, minutes = divmod(total_minutes, 60)
    meridiem = "PM" if hour >= 12 else "AM"
    hour = hour % 12 or 12
    return f"{hour}:{minutes:02d} {meridiem}"


def normalize_time(value: str) -> str:
    """Return the canonical spelling of a valid time string."""
    return format_time(parse_time(value))


def parse_time_lenient(value) -> int:
    """Parse a time from an import source.

    Accepts the canonical format plus looser spellings found in spreadsheets
    such as "07:45", "7:45am" or "13:00". Spreadsheet cells that were read as
    ``datetime.time`` objects are accepted as well.

    Raises:
        InvalidTimeFormat: If no time can be recognised
    """
    if hasattr(value, "hour") and hasattr(value, "minute"):
        return value.hour * 60 + value.minute
    text = str(value).strip() if value is not None else ""
    try:
        return parse_time(text)
    except InvalidTimeFormat:
        pass
    # dateparser happily turns words like "Monday" into midnight; require digits
    if not re.search(r"\d", text):
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    parsed = dateparser.parse(text, languages=["en"], settings={"PREFER_DATES_FROM": "current_period"})
    if parsed is None:
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    logger.debug("Leniently parsed %r as %02d:%02d", text, parsed.hour, parsed.minute)
    return parsed.hour * 60 + parsed.minute


def _window(start: str, end: str):
    start_min = parse_time(start)
    end_min = parse_time(end)
    # An end at or before the start means the window runs past midnight
    if end_min <= start_min:
        end_min += MINUTES_PER_DAY
    return start_min, end_min


def _check_step(step_minutes: int):
    if step_minutes <= 0:
        raise ValueError(f"Slot step must be positive, got {step_minutes}")


def generate_slots(start: str, end: str, step_minutes: int = 60) -> List[TimeSlot]:
    """Generate uniform teaching slots for a day window.

    A trailing piece shorter than ``step_minutes`` is dropped.

    Args:
        start: Window start, e.g. "8:00 AM"
        end: Window end; at or before ``start`` means the next day
        step_minutes: Slot width in minutes

    Returns:
        Contiguous slots ordered by start time
    """
    _check_step(step_minutes)
    start_min, end_min = _window(start, end)
    slots = []
    cursor = start_min
    while cursor + step_minutes <= end_min:
        slots.append(TimeSlot(format_time(cursor), format_time(cursor + step_minutes), TEACHING))
        cursor += step_minutes
    return slots


def _break_ranges(breaks: Iterable[BreakWindow], start_min: int, end_min: int) -> list:
    """Convert breaks to clamped [start, end, step, label] minute ranges."""
    ranges = []
    for br in breaks:
        s = parse_time(br.start)
        e = parse_time(br.end)
        if s < start_min:
            s += MINUTES_PER_DAY
        if e <= start_min:
            e += MINUTES_PER_DAY
        if e <= s:
            logger.warning("Ignoring empty break %s - %s", br.start, br.end)
            continue
        step = br.step_minutes if br.step_minutes else e - s
        _check_step(step)
        if e > start_min and s < end_min:
            ranges.append([max(s, start_min), min(e, end_min), step, br.label])
    return ranges


def _merge_ranges(ranges: list) -> list:
    """Merge overlapping or adjacent break ranges.

    The merged range keeps the smallest step and the first non-empty label
    in start order.
    """
    merged = []
    for s, e, step, label in sorted(ranges, key=lambda r: r[0]):
        if merged and s <= merged[-1][1]:
            last = merged[-1]
            last[1] = max(last[1], e)
            last[2] = min(last[2], step)
            if not last[3] and label:
                last[3] = label
        else:
            merged.append([s, e, step, label])
    return merged


def generate_slots_with_breaks(start: str, end: str, step_minutes: int = 60,
                               breaks: Iterable[BreakWindow] = ()) -> List[TimeSlot]:
    """Generate slots for a day window with break ranges inserted.

    Breaks are clamped to the window and merged first, then the window is
    swept left to right. Inside a break the break step is used and slots are
    tagged as breaks; elsewhere the default step is used. A slot never
    crosses a break boundary or the window end; the last slot before one is
    shortened instead.

    Args:
        start: Window start
        end: Window end (wraps to the next day when not after ``start``)
        step_minutes: Default slot size outside breaks
        breaks: Break windows, each with its own optional step and label

    Returns:
        Contiguous slots ordered by start time
    """
    _check_step(step_minutes)
    start_min, end_min = _window(start, end)
    merged = _merge_ranges(_break_ranges(breaks, start_min, end_min))
    if not merged:
        return generate_slots(start, end, step_minutes)

    slots = []
    cursor = start_min
    while cursor < end_min:
        current = next((r for r in merged if r[0] <= cursor < r[1]), None)
        if current is not None:
            nxt = min(cursor + current[2], current[1], end_min)
            slots.append(TimeSlot(format_time(cursor), format_time(nxt), BREAK, current[3] or "Break"))
        else:
            upcoming = [r[0] for r in merged if r[0] > cursor]
            limit = min(upcoming) if upcoming else end_min
            nxt = min(cursor + step_minutes, limit, end_min)
            slots.append(TimeSlot(format_time(cursor), format_time(nxt), TEACHING))
        cursor = nxt
    return slots


def generate_split_slots(start: str, end: str, split_hours: Iterable[str] = ()) -> List[TimeSlot]:
    """Half-hour slots where only the chosen hours stay split.

    Every hour not listed in ``split_hours`` is merged back into a single
    hour-long slot when both of its halves are present.

    Args:
        start: Window start
        end: Window end
        split_hours: Hour starts such as "10:00 AM" that keep two halves

    Returns:
        Contiguous teaching slots
    """
    half_slots = generate_slots(start, end, 30)
    split = {parse_time(h) for h in split_hours}
    if not split:
        return half_slots

    merged = []
    i = 0
    while i < len(half_slots):
        slot = half_slots[i]
        start_min = parse_time(slot.start)
        hour_start = start_min // 60 * 60
        if hour_start not in split and i + 1 < len(half_slots):
            nxt = half_slots[i + 1]
            nxt_start = parse_time(nxt.start)
            if nxt_start == start_min + 30 and nxt_start // 60 * 60 == hour_start:
                merged.append(TimeSlot(slot.start, nxt.end, TEACHING))
                i += 2
                continue
        merged.append(slot)
        i += 1
    return merged


def format_time_range(start: str, end: str) -> str:
    return f"{start} - {end}"


def format_time_slot(slot: TimeSlot) -> str:
    return format_time_range(slot.start, slot.end)
