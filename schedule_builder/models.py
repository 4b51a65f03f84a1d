"""
Data models for the school schedule builder.

This module defines the data structures shared by the time axis, the grid
planner, the event store and the persistence layer. All models are plain
dataclasses so they can be copied, compared and serialized without any
framework support.

These models represent:
- Time slots (teaching or break rows of the weekly grid)
- Scheduled events and their change history
- The composite key a schedule is stored under
- Named schedule snapshots
- Grid cell plans produced by the rendering planner
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

TEACHING = "teaching"
BREAK = "break"

TBD = "TBD"
GLOBAL_CLASS = "__global__"
UNTITLED = "untitled"           # Display name when no class is selected

EVENT_FIELDS = ("days", "start", "end", "subject", "teacher", "room")

WEEKDAYS = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
]


@dataclass(frozen=True)
class TimeSlot:
    """One row of the weekly grid.

    Times are kept in the ``H:MM AM|PM`` wire format so slots can be shown
    and stored as-is; use ``schedule_builder.time_axis.parse_time`` to get
    minutes since midnight.
    """
    start: str                  # e.g. "7:45 AM"
    end: str                    # e.g. "8:45 AM"
    kind: str = TEACHING        # TEACHING or BREAK
    label: Optional[str] = None  # Break label such as "Lunch"

    @property
    def is_break(self) -> bool:
        return self.kind == BREAK


@dataclass
class ChangeRecord:
    """A single field-level change made by an edit."""
    field: str
    before: Any
    after: Any
    by: str
    at: datetime


@dataclass
class ScheduleEvent:
    """A scheduled class block in the weekly grid.

    An event covers one or more contiguous weekdays and the slot rows from
    the slot containing ``start`` through the slot ending at ``end``.
    """
    id: str
    days: List[str]             # Non-empty, in weekday order
    start: str                  # "H:MM AM|PM"
    end: str                    # "H:MM AM|PM"
    subject: str
    teacher: str = TBD
    room: str = TBD
    created_by: str = "system"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    modified_by: Optional[str] = None
    modified_at: Optional[datetime] = None
    changes: List[ChangeRecord] = field(default_factory=list)

    def field_tuple(self) -> tuple:
        """Values used for duplicate detection."""
        return (tuple(self.days), self.start, self.end, self.subject, self.teacher, self.room)


@dataclass
class EventDraft:
    """A candidate event that has not been assigned an id yet."""
    days: List[str]
    start: str
    end: str
    subject: str = ""
    teacher: str = TBD
    room: str = TBD

    def field_tuple(self) -> tuple:
        return (tuple(self.days), self.start, self.end, self.subject, self.teacher, self.room)


@dataclass(frozen=True)
class ScheduleKey:
    """Identifies one stored schedule: a class, a school year and a semester."""
    class_id: str = ""          # Empty means the global (no class) schedule
    school_year: str = ""       # e.g. "2025-2026"
    semester: str = "first"     # "first" or "second"

    def storage_key(self) -> str:
        """Deterministic string key used by the repositories."""
        return f"schedule:{self.class_id or GLOBAL_CLASS}:{self.school_year}:{self.semester}"


@dataclass
class ScheduleMeta:
    """Descriptive header stored alongside the events."""
    selected_class: str = ""
    schedule_type: str = "shs"
    school_year: str = ""
    semester: str = "first"


@dataclass
class ScheduleDocument:
    """What the persistence layer loads and saves for one key."""
    meta: ScheduleMeta
    events: List[ScheduleEvent]
    saved_at: Optional[datetime] = None


@dataclass
class SavedSchedule:
    """A named full copy of a schedule's events."""
    id: str
    name: str
    schedule_type: str
    class_id: str
    school_year: str
    semester: str
    events: List[ScheduleEvent]
    saved_at: datetime


@dataclass
class CellPlan:
    """How one (day, slot) cell of the grid is rendered."""
    kind: str                   # CELL_BREAK, CELL_ORIGIN, CELL_COVERED or CELL_EMPTY
    day: str
    slot_index: int
    event: Optional[ScheduleEvent] = None
    row_span: int = 1
    col_span: int = 1
    label: Optional[str] = None


CELL_BREAK = "break"
CELL_ORIGIN = "origin"
CELL_COVERED = "covered"
CELL_EMPTY = "empty"


# Serialization helpers for JSON conversion

def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO format string."""
    return dt.isoformat() if dt is not None else None


def deserialize_datetime(s: Optional[str]) -> Optional[datetime]:
    """Convert ISO format string to datetime."""
    if not s:
        return None
    # Browsers emit a trailing "Z" which fromisoformat rejects before 3.11
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def serialize_change(change: ChangeRecord) -> Dict[str, Any]:
    return {
        "field": change.field,
        "from": change.before,
        "to": change.after,
        "by": change.by,
        "at": serialize_datetime(change.at),
    }


def deserialize_change(data: Dict[str, Any]) -> ChangeRecord:
    return ChangeRecord(
        field=data["field"],
        before=data.get("from"),
        after=data.get("to"),
        by=data.get("by", "system"),
        at=deserialize_datetime(data.get("at")) or datetime.fromtimestamp(0, timezone.utc),
    )


def serialize_event(event: ScheduleEvent) -> Dict[str, Any]:
    """Convert ScheduleEvent to the JSON shape used on the wire and on disk."""
    return {
        "id": event.id,
        "days": list(event.days),
        "start": event.start,
        "end": event.end,
        "subject": event.subject,
        "teacher": event.teacher,
        "room": event.room,
        "createdBy": event.created_by,
        "createdAt": serialize_datetime(event.created_at),
        "modifiedBy": event.modified_by,
        "modifiedAt": serialize_datetime(event.modified_at),
        "changes": [serialize_change(c) for c in event.changes],
    }


def deserialize_event(data: Dict[str, Any]) -> ScheduleEvent:
    """Convert a current-format event dict to ScheduleEvent.

    Legacy shapes are upconverted by ``persistence.upgrade_event`` first.
    """
    return ScheduleEvent(
        id=data["id"],
        days=list(data["days"]),
        start=data["start"],
        end=data["end"],
        subject=data.get("subject", ""),
        teacher=data.get("teacher") or TBD,
        room=data.get("room") or TBD,
        created_by=data.get("createdBy") or "system",
        created_at=deserialize_datetime(data.get("createdAt")) or datetime.fromtimestamp(0, timezone.utc),
        modified_by=data.get("modifiedBy"),
        modified_at=deserialize_datetime(data.get("modifiedAt")),
        changes=[deserialize_change(c) for c in data.get("changes") or []],
    )


def serialize_slot(slot: TimeSlot) -> Dict[str, Any]:
    result = {"start": slot.start, "end": slot.end, "kind": slot.kind}
    if slot.label:
        result["label"] = slot.label
    return result
