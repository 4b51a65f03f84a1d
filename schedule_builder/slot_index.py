"""
Maps event start/end times back to slot rows.

Stored events keep their start/end as time strings. After the slot
configuration changes (for example switching to half-hour slots) those
strings may no longer sit on a slot boundary, so lookups fall back to the
nearest sensible row instead of failing.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import ScheduleEvent, TimeSlot
from .time_axis import MINUTES_PER_DAY, parse_time

# Weekday -> break labels treated as teaching rows on that day ("*" = all)
BreakOverrides = Dict[str, Iterable[str]]


def break_applies(slot: TimeSlot, day: Optional[str], overrides: Optional[BreakOverrides] = None) -> bool:
    """True when ``slot`` is a protected break on ``day``."""
    if not slot.is_break:
        return False
    if not overrides or day is None:
        return True
    exempt = overrides.get(day)
    if not exempt:
        return True
    exempt = set(exempt)
    return not ("*" in exempt or (slot.label or "Break") in exempt)


class SlotIndex:
    """Resolves times to indices within a generated slot sequence."""

    def __init__(self, slots: Sequence[TimeSlot]):
        self.slots = list(slots)
        self._bounds: List[Tuple[int, int]] = []
        previous_end = None
        for slot in self.slots:
            s = parse_time(slot.start)
            e = parse_time(slot.end)
            # Keep minutes increasing when the window crosses midnight
            if previous_end is not None:
                while s < previous_end:
                    s += MINUTES_PER_DAY
            while e <= s:
                e += MINUTES_PER_DAY
            self._bounds.append((s, e))
            previous_end = e

    def __len__(self):
        return len(self.slots)

    def _minutes(self, time: str) -> int:
        t = parse_time(time)
        if self._bounds and t < self._bounds[0][0] and self._bounds[-1][1] > MINUTES_PER_DAY:
            t += MINUTES_PER_DAY
        return t

    def index_of_start(self, time: str) -> int:
        """Slot index an event starting at ``time`` begins in.

        Exact slot start wins, then the slot containing ``time``, then the
        first slot starting after it, else the last slot.
        """
        if not self._bounds:
            return -1
        t = self._minutes(time)
        for i, (s, _) in enumerate(self._bounds):
            if s == t:
                return i
        for i, (s, e) in enumerate(self._bounds):
            if s <= t < e:
                return i
        for i, (s, _) in enumerate(self._bounds):
            if s > t:
                return i
        return len(self._bounds) - 1

    def index_of_end(self, time: str) -> int:
        """Slot index an event ending at ``time`` occupies last.

        Exact slot end wins. Ending exactly when a slot starts means the
        event stops in the previous slot (index 0 never underflows). Then the
        slot strictly containing ``time``, then the first slot ending after
        it, else the last slot.
        """
        if not self._bounds:
            return -1
        t = self._minutes(time)
        for i, (_, e) in enumerate(self._bounds):
            if e == t:
                return i
        for i, (s, _) in enumerate(self._bounds):
            if s == t:
                return i - 1 if i > 0 else i
        for i, (s, e) in enumerate(self._bounds):
            if s < t < e:
                return i
        for i, (_, e) in enumerate(self._bounds):
            if e > t:
                return i
        return len(self._bounds) - 1

    def range_of(self, event: ScheduleEvent) -> Tuple[int, int]:
        """(start index, end index) rows covered by ``event``."""
        return self.index_of_start(event.start), self.index_of_end(event.end)

    def covers_break(self, lo: int, hi: int, day: Optional[str] = None,
                     overrides: Optional[BreakOverrides] = None) -> bool:
        """True if any row in ``[lo, hi]`` is a protected break on ``day``."""
        return any(break_applies(slot, day, overrides) for slot in self.slots[lo:hi + 1])
