"""
Turns a drag gesture on the grid into candidate events.

The drag itself is tracked by ``DragSelection``; the pure translation from
a finished ``Selection`` to event drafts lives in
``compute_candidate_events`` so it can be tested without any UI.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import BreakSlotConflict
from .models import EventDraft, TBD, TimeSlot
from .slot_index import BreakOverrides, SlotIndex, break_applies

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """A rectangular grid selection: contiguous days x a slot-index range."""
    days: List[str]
    start_index: int
    end_index: int

    @property
    def lo(self) -> int:
        return min(self.start_index, self.end_index)

    @property
    def hi(self) -> int:
        return max(self.start_index, self.end_index)


@dataclass
class CandidateResult:
    """Drafts produced from a selection and the days that were skipped."""
    drafts: List[EventDraft]
    rejected_days: List[str] = field(default_factory=list)


def day_range(weekdays: Sequence[str], first: str, last: str) -> List[str]:
    """Contiguous slice of ``weekdays`` between two days, in either order."""
    a = weekdays.index(first)
    b = weekdays.index(last)
    if a > b:
        a, b = b, a
    return list(weekdays[a:b + 1])


def compute_candidate_events(selection: Selection, slots: Sequence[TimeSlot],
                             weekdays: Sequence[str], apply_to_all: bool = True,
                             break_overrides: Optional[BreakOverrides] = None,
                             subject: str = "", teacher: str = TBD,
                             room: str = TBD) -> CandidateResult:
    """Translate a selection into event drafts.

    A single-day selection yields one draft. A multi-day selection yields
    either one draft spanning all days (``apply_to_all``) or one draft per
    day. Merged drafts are rejected as a whole if any day hits a protected
    break; per-day drafts are skipped one day at a time.

    Args:
        selection: Finished drag selection
        slots: Current slot rows
        weekdays: Active weekday columns, in order
        apply_to_all: Merge a multi-day selection into one event
        break_overrides: Weekday -> break labels that count as teaching
        subject: Subject for the drafts (may be filled in later by the form)
        teacher: Teacher for the drafts
        room: Room for the drafts

    Returns:
        CandidateResult with drafts and rejected days

    Raises:
        BreakSlotConflict: If no draft can be produced because of breaks
        ValueError: If the selection is empty or out of range
    """
    if not selection.days:
        raise ValueError("Selection has no days")
    unknown = [d for d in selection.days if d not in weekdays]
    if unknown:
        raise ValueError(f"Days not in the active week: {', '.join(unknown)}")
    lo, hi = selection.lo, selection.hi
    if lo < 0 or hi >= len(slots):
        raise ValueError(f"Slot range {lo}-{hi} outside 0-{len(slots) - 1}")

    days = [d for d in weekdays if d in set(selection.days)]
    index = SlotIndex(slots)
    start = slots[lo].start
    end = slots[hi].end
    blocked = [d for d in days if index.covers_break(lo, hi, d, break_overrides)]

    if len(days) == 1 or apply_to_all:
        if blocked:
            logger.info("Selection %s %s-%s rejected: break slot on %s", days, start, end, blocked)
            raise BreakSlotConflict("Selection includes a break slot", blocked)
        return CandidateResult([EventDraft(days, start, end, subject, teacher, room)])

    drafts = [EventDraft([d], start, end, subject, teacher, room) for d in days if d not in blocked]
    if not drafts:
        raise BreakSlotConflict("Selection includes a break slot on every day", blocked)
    if blocked:
        logger.info("Skipped %s for %s-%s: break slot", blocked, start, end)
    return CandidateResult(drafts, blocked)


class DragSelection:
    """Transient mouse-drag state for the grid.

    ``press`` starts a drag, ``enter`` extends it as the pointer moves over
    cells and ``release`` finishes it. Releasing outside the grid still
    finishes with the last cell entered.
    """

    def __init__(self, slots: Sequence[TimeSlot], weekdays: Sequence[str],
                 break_overrides: Optional[BreakOverrides] = None):
        self.slots = list(slots)
        self.weekdays = list(weekdays)
        self.break_overrides = break_overrides
        self.cancel()

    def cancel(self):
        self.is_selecting = False
        self.start_day: Optional[str] = None
        self.end_day: Optional[str] = None
        self.start_index: Optional[int] = None
        self.end_index: Optional[int] = None

    def _is_blocked(self, day: str, index: int) -> bool:
        if not 0 <= index < len(self.slots):
            return True
        return break_applies(self.slots[index], day, self.break_overrides)

    def press(self, day: str, index: int) -> bool:
        """Start a drag on a cell; break cells do not start a selection."""
        if day not in self.weekdays or self._is_blocked(day, index):
            return False
        self.is_selecting = True
        self.start_day = self.end_day = day
        self.start_index = self.end_index = index
        return True

    def enter(self, day: str, index: int):
        """Extend the drag to a cell; break cells are not entered."""
        if not self.is_selecting or day not in self.weekdays:
            return
        if self._is_blocked(day, index):
            return
        self.end_day = day
        self.end_index = index

    def current(self) -> Optional[Selection]:
        if self.start_day is None or self.start_index is None or self.end_index is None:
            return None
        days = day_range(self.weekdays, self.start_day, self.end_day or self.start_day)
        return Selection(days, self.start_index, self.end_index)

    def release(self) -> Optional[Selection]:
        """Finish the drag and return the selection, if one was started."""
        selection = self.current() if self.is_selecting else None
        self.cancel()
        return selection

    def is_cell_selected(self, day: str, index: int) -> bool:
        if not self.is_selecting:
            return False
        selection = self.current()
        if selection is None:
            return False
        return day in selection.days and selection.lo <= index <= selection.hi
