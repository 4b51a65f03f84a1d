"""
In-memory event store for one (class, school year, semester) schedule.

All mutations are synchronous and either apply fully or raise before
touching the event list. Listeners registered with ``add_listener`` are
called after every mutation; the autosave controller hooks in there.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .audit import apply_audited_edit
from .errors import BreakSlotConflict, EventNotFound, IncompleteForm
from .models import TBD, EventDraft, ScheduleEvent, TimeSlot
from .selection import Selection, compute_candidate_events
from .slot_index import BreakOverrides, SlotIndex
from .time_axis import normalize_time

logger = logging.getLogger(__name__)

Listener = Callable[[List[ScheduleEvent]], None]


def make_id() -> str:
    return uuid.uuid4().hex


class EventStore:
    """Holds the events of the schedule currently being edited."""

    def __init__(self, slots: Sequence[TimeSlot], weekdays: Sequence[str], actor: str = "admin",
                 break_overrides: Optional[BreakOverrides] = None,
                 events: Optional[Iterable[ScheduleEvent]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """Initialize the store.

        Args:
            slots: Slot rows of the grid
            weekdays: Active weekday columns, in order
            actor: Default identity recorded on creates and edits
            break_overrides: Weekday -> break labels treated as teaching
            events: Initial events (not reported to listeners)
            clock: Returns the current time; defaults to UTC now
        """
        self.actor = actor
        self.break_overrides = break_overrides or {}
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._events: List[ScheduleEvent] = list(events or [])
        self._listeners: List[Listener] = []
        self.set_slots(slots, weekdays)

    # -- configuration -----------------------------------------------------

    def set_slots(self, slots: Sequence[TimeSlot], weekdays: Optional[Sequence[str]] = None):
        """Swap the slot rows (and optionally the weekdays) after a config change."""
        self.slots = list(slots)
        if weekdays is not None:
            self.weekdays = list(weekdays)
        self.index = SlotIndex(self.slots)

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def _notify(self):
        snapshot = self.events
        for listener in self._listeners:
            listener(snapshot)

    # -- queries -----------------------------------------------------------

    @property
    def events(self) -> List[ScheduleEvent]:
        return list(self._events)

    def __len__(self):
        return len(self._events)

    def get(self, event_id: str) -> ScheduleEvent:
        for event in self._events:
            if event.id == event_id:
                return event
        raise EventNotFound(f"No event with id {event_id}")

    def range_of(self, event: ScheduleEvent) -> Tuple[int, int]:
        return self.index.range_of(event)

    def event_starting_at(self, day: str, slot_index: int) -> Optional[ScheduleEvent]:
        """Event whose first row is ``slot_index`` on ``day``."""
        for event in self._events:
            if day in event.days and self.index.index_of_start(event.start) == slot_index:
                return event
        return None

    def event_covering(self, day: str, slot_index: int) -> Optional[ScheduleEvent]:
        """Event covering ``slot_index`` on ``day`` without starting there."""
        for event in self._events:
            s, e = self.range_of(event)
            if day in event.days and s < slot_index <= e:
                return event
        return None

    def find_covering(self, days: Iterable[str], lo: int, hi: int) -> Optional[ScheduleEvent]:
        """Event that already contains the whole selection, if any.

        A drag inside an existing block opens that block for editing instead
        of creating a new one.
        """
        days = list(days)
        for event in self._events:
            s, e = self.range_of(event)
            if all(d in event.days for d in days) and s <= lo and e >= hi:
                return event
        return None

    def is_duplicate(self, draft: EventDraft) -> bool:
        key = draft.field_tuple()
        return any(event.field_tuple() == key for event in self._events)

    # -- validation --------------------------------------------------------

    def _ordered_days(self, days: Iterable[str]) -> List[str]:
        wanted = list(dict.fromkeys(days))
        unknown = [d for d in wanted if d not in self.weekdays]
        if unknown:
            raise ValueError(f"Days not in the active week: {', '.join(unknown)}")
        return [d for d in self.weekdays if d in wanted]

    def _check_placement(self, days: List[str], start: str, end: str):
        """Reject empty day sets, inverted ranges and protected break rows."""
        if not days:
            raise IncompleteForm("At least one day is required", ["days"])
        s = self.index.index_of_start(start)
        e = self.index.index_of_end(end)
        if s == -1 or e == -1 or e < s:
            raise IncompleteForm(f"Cannot place {start} - {end} on the grid", ["start", "end"])
        blocked = [d for d in days if self.index.covers_break(s, e, d, self.break_overrides)]
        if blocked:
            raise BreakSlotConflict(f"{start} - {end} overlaps a break slot", blocked)

    # -- mutations ---------------------------------------------------------

    def add(self, draft: EventDraft, actor: Optional[str] = None) -> Optional[ScheduleEvent]:
        """Insert a new event built from ``draft``.

        Returns:
            The created event, or None if an identical event already exists

        Raises:
            IncompleteForm: If the subject or days are missing
            BreakSlotConflict: If the range covers a protected break
        """
        if not draft.subject:
            raise IncompleteForm("Subject is required", ["subject"])
        draft = replace(
            draft,
            days=self._ordered_days(draft.days),
            start=normalize_time(draft.start),
            end=normalize_time(draft.end),
        )
        self._check_placement(draft.days, draft.start, draft.end)
        if self.is_duplicate(draft):
            logger.info("Dropping duplicate event %s %s-%s %s", draft.days, draft.start, draft.end, draft.subject)
            return None
        event = ScheduleEvent(
            id=make_id(),
            days=draft.days,
            start=draft.start,
            end=draft.end,
            subject=draft.subject,
            teacher=draft.teacher,
            room=draft.room,
            created_by=actor or self.actor,
            created_at=self.clock(),
        )
        self._events.append(event)
        self._notify()
        return event

    def create_from_selection(self, selection: Selection, subject: str, teacher: str = "",
                              room: str = "", apply_to_all: bool = True,
                              actor: Optional[str] = None) -> Tuple[List[ScheduleEvent], List[str]]:
        """Create events for a finished drag selection.

        Returns:
            (created events, days skipped because of break slots). Duplicates
            are dropped silently and do not appear in either list.

        Raises:
            BreakSlotConflict: If no day could be scheduled
            IncompleteForm: If ``subject`` is blank
        """
        if not subject:
            raise IncompleteForm("Subject is required", ["subject"])
        result = compute_candidate_events(
            selection, self.slots, self.weekdays,
            apply_to_all=apply_to_all,
            break_overrides=self.break_overrides,
            subject=subject,
            teacher=teacher or TBD,
            room=room or TBD,
        )
        created = []
        for draft in result.drafts:
            event = self.add(draft, actor)
            if event is not None:
                created.append(event)
        return created, result.rejected_days

    def create_from_draft(self, draft: EventDraft, apply_to_all: bool = True,
                          actor: Optional[str] = None) -> Tuple[List[ScheduleEvent], List[str]]:
        """Create events from a filled-in form draft.

        Follows the same fan-out rules as ``create_from_selection``: one
        merged event, or one event per day with break conflicts skipped per
        day.

        Raises:
            BreakSlotConflict: If no day could be scheduled
        """
        days = self._ordered_days(draft.days)
        if len(days) <= 1 or apply_to_all:
            event = self.add(draft, actor)
            return ([event] if event is not None else []), []
        created, rejected = [], []
        for day in days:
            single = EventDraft([day], draft.start, draft.end, draft.subject, draft.teacher, draft.room)
            try:
                event = self.add(single, actor)
            except BreakSlotConflict:
                rejected.append(day)
                continue
            if event is not None:
                created.append(event)
        if len(rejected) == len(days):
            raise BreakSlotConflict(f"{draft.start} - {draft.end} overlaps a break slot on every day", rejected)
        return created, rejected

    def apply_edit(self, event_id: str, patch: Dict[str, Any], actor: Optional[str] = None) -> ScheduleEvent:
        """Apply a (possibly partial) edit and log the changed fields.

        Returns:
            The edited event; the same object when nothing changed

        Raises:
            EventNotFound: If ``event_id`` is unknown
            IncompleteForm: If the edit empties a required field
            BreakSlotConflict: If the new range covers a protected break
        """
        current = self.get(event_id)
        patch = dict(patch)
        if "days" in patch:
            patch["days"] = self._ordered_days(patch["days"])
        for field in ("start", "end"):
            if patch.get(field):
                patch[field] = normalize_time(patch[field])
        if "subject" in patch and not patch["subject"]:
            raise IncompleteForm("Subject is required", ["subject"])
        self._check_placement(
            patch.get("days", current.days),
            patch.get("start", current.start),
            patch.get("end", current.end),
        )
        updated = apply_audited_edit(current, patch, actor or self.actor, self.clock())
        if updated is current:
            return current
        self._events = [updated if ev.id == event_id else ev for ev in self._events]
        self._notify()
        return updated

    def delete(self, event_id: str) -> ScheduleEvent:
        event = self.get(event_id)
        self._events = [ev for ev in self._events if ev.id != event_id]
        self._notify()
        return event

    def reset(self):
        """Remove every event."""
        self._events = []
        self._notify()

    def replace_all(self, events: Iterable[ScheduleEvent], notify: bool = False):
        """Swap in a whole event set, e.g. after loading another schedule key."""
        self._events = list(events)
        if notify:
            self._notify()
