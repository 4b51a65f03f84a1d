"""
Rendering planner for the weekly grid.

Decides for every (slot row, day column) cell whether it shows a break
label, the origin of an event block (with its row/column spans), nothing
because a block already covers it, or an empty cell events can be added to.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .config import MIN_ROW_PX
from .models import (
    CELL_BREAK, CELL_COVERED, CELL_EMPTY, CELL_ORIGIN,
    CellPlan, ScheduleEvent, TimeSlot,
)
from .slot_index import BreakOverrides, SlotIndex, break_applies
from .time_axis import format_time_slot


def _col_span(event: ScheduleEvent, weekdays: Sequence[str], col: int) -> int:
    span = 0
    for day in weekdays[col:]:
        if day not in event.days:
            break
        span += 1
    return span


def plan_grid(events: Sequence[ScheduleEvent], slots: Sequence[TimeSlot], weekdays: Sequence[str],
              break_overrides: Optional[BreakOverrides] = None) -> List[List[CellPlan]]:
    """Plan every cell of the grid.

    Rows follow ``slots`` and columns follow ``weekdays``. An event block is
    drawn once, at its first row in the first day of each contiguous run of
    its days; every other cell it covers is marked covered.

    Args:
        events: Events of the current schedule
        slots: Slot rows
        weekdays: Active weekday columns
        break_overrides: Weekday -> break labels treated as teaching

    Returns:
        One list of CellPlan per slot row
    """
    index = SlotIndex(slots)
    ranges: Dict[str, Tuple[int, int]] = {ev.id: index.range_of(ev) for ev in events}

    plan = []
    for row, slot in enumerate(slots):
        cells = []
        for col, day in enumerate(weekdays):
            if break_applies(slot, day, break_overrides):
                cells.append(CellPlan(CELL_BREAK, day, row, label=slot.label or "Break"))
                continue

            origin = None
            covering = None
            for event in events:
                if day not in event.days:
                    continue
                s, e = ranges[event.id]
                if not s <= row <= max(s, e):
                    continue
                continues_left = col > 0 and weekdays[col - 1] in event.days
                if row == s and not continues_left:
                    origin = event
                    break
                if covering is None:
                    covering = event

            if origin is not None:
                s, e = ranges[origin.id]
                cells.append(CellPlan(
                    CELL_ORIGIN, day, row, origin,
                    row_span=max(1, e - s + 1),
                    col_span=_col_span(origin, weekdays, col),
                ))
            elif covering is not None:
                cells.append(CellPlan(CELL_COVERED, day, row, covering))
            else:
                cells.append(CellPlan(CELL_EMPTY, day, row))
        plan.append(cells)
    return plan


def px_height_for_span(row_heights: Sequence[float], start_index: int, end_index: int,
                       default_row_px: float = MIN_ROW_PX) -> float:
    """Pixel height of a block covering rows ``start_index..end_index``.

    Uses the measured row heights when available since break rows can be
    shorter than teaching rows; otherwise estimates from ``default_row_px``.
    """
    if not row_heights:
        return (end_index - start_index + 1) * default_row_px
    return float(sum(row_heights[start_index:end_index + 1]))


def cell_text(cell: CellPlan) -> str:
    if cell.kind == CELL_BREAK:
        return cell.label or "Break"
    if cell.kind == CELL_ORIGIN and cell.event is not None:
        ev = cell.event
        return f"{ev.subject}\n{ev.teacher}\n{ev.room}"
    return ""


def flatten_plan(plan: Sequence[Sequence[CellPlan]], slots: Sequence[TimeSlot],
                 weekdays: Sequence[str]) -> List[List[str]]:
    """Grid plan as a plain table for printing and spreadsheet export.

    The first row is the header; each following row starts with the slot's
    time range. Covered cells are blank.
    """
    table = [["Time"] + list(weekdays)]
    for slot, cells in zip(slots, plan):
        table.append([format_time_slot(slot)] + [cell_text(c) for c in cells])
    return table
