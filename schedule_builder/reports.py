"""
Usage reports over scheduled events.

Multi-day events are expanded into one placement per day, so a block on
Monday to Wednesday counts as three sessions.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .models import UNTITLED, ScheduleEvent
from .time_axis import MINUTES_PER_DAY, parse_time


@dataclass
class Placement:
    """One event on one day."""
    class_id: str
    day: str
    start: int                  # minutes since midnight
    end: int
    subject: str
    teacher: str
    room: str

    @property
    def minutes(self) -> int:
        return max(0, self.end - self.start)


def expand_placements(events: Iterable[ScheduleEvent], class_id: str = "") -> List[Placement]:
    placements = []
    for ev in events:
        start = parse_time(ev.start)
        end = parse_time(ev.end)
        if end <= start:
            end += MINUTES_PER_DAY
        for day in ev.days:
            placements.append(Placement(class_id or UNTITLED, day, start, end, ev.subject, ev.teacher, ev.room))
    return placements


def _filter(placements: Sequence[Placement], day: Optional[str]) -> List[Placement]:
    if not day or day == "all":
        return list(placements)
    return [p for p in placements if p.day == day]


def class_usage(placements: Sequence[Placement], day: Optional[str] = None) -> List[Dict]:
    """Total minutes and sessions per class, busiest first."""
    usage: Dict[str, Dict] = {}
    for p in _filter(placements, day):
        row = usage.setdefault(p.class_id, {"class": p.class_id, "total_minutes": 0, "sessions": 0})
        row["total_minutes"] += p.minutes
        row["sessions"] += 1
    return sorted(usage.values(), key=lambda r: r["total_minutes"], reverse=True)


def room_allocation(placements: Sequence[Placement], day: Optional[str] = None) -> List[Dict]:
    """Total minutes and sessions per room, busiest first."""
    usage: Dict[str, Dict] = {}
    for p in _filter(placements, day):
        row = usage.setdefault(p.room, {"room": p.room, "total_minutes": 0, "sessions": 0})
        row["total_minutes"] += p.minutes
        row["sessions"] += 1
    return sorted(usage.values(), key=lambda r: r["total_minutes"], reverse=True)


def teacher_efficiency(placements: Sequence[Placement], day: Optional[str] = None,
                       available_minutes_per_day: int = 11 * 60) -> Dict:
    """Per-teacher load plus an overall utilization estimate.

    A unit is 60 scheduled minutes. Idle minutes are gaps between a
    teacher's consecutive sessions on the same day.

    Args:
        placements: Expanded placements
        day: Restrict to one weekday ("all" or None for the whole week)
        available_minutes_per_day: Length of the school day window

    Returns:
        Dict with ``teachers`` rows and summary figures
    """
    visible = _filter(placements, day)
    by_teacher: Dict[str, List[Placement]] = {}
    for p in visible:
        by_teacher.setdefault(p.teacher, []).append(p)

    teachers = []
    for teacher, items in by_teacher.items():
        total = sum(p.minutes for p in items)
        idle = 0
        by_day: Dict[str, List[Placement]] = {}
        for p in items:
            by_day.setdefault(p.day, []).append(p)
        for day_items in by_day.values():
            day_items.sort(key=lambda p: p.start)
            for prev, cur in zip(day_items, day_items[1:]):
                if cur.start > prev.end:
                    idle += cur.start - prev.end
        teachers.append({
            "teacher": teacher,
            "total_minutes": total,
            "units": round(total / 60, 2),
            "active_span_minutes": max(p.end for p in items) - min(p.start for p in items),
            "idle_minutes": idle,
            "sessions": len(items),
        })
    teachers.sort(key=lambda r: r["total_minutes"], reverse=True)

    scheduled = sum(p.minutes for p in visible)
    days = {p.day for p in visible}
    rooms = {p.room for p in visible}
    available = available_minutes_per_day * len(days) * max(1, len(rooms))
    return {
        "teachers": teachers,
        "total_scheduled_minutes": scheduled,
        "approx_available_minutes": available,
        "utilization_percent": round(scheduled / available * 100, 2) if available else 0.0,
        "avg_idle_per_teacher": round(sum(t["idle_minutes"] for t in teachers) / len(teachers), 2) if teachers else 0.0,
    }


REPORTS = {
    "class": class_usage,
    "room": room_allocation,
}


def report_dataframe(kind: str, placements: Sequence[Placement], day: Optional[str] = None) -> pd.DataFrame:
    """Tabular form of a report for CSV/Excel export."""
    if kind == "efficiency":
        return pd.DataFrame(teacher_efficiency(placements, day)["teachers"])
    try:
        return pd.DataFrame(REPORTS[kind](placements, day))
    except KeyError:
        raise ValueError(f"Unknown report: {kind!r}") from None
