"""Unit tests for the grid rendering planner."""

from schedule_builder.models import CELL_BREAK, CELL_COVERED, CELL_EMPTY, CELL_ORIGIN, ScheduleEvent
from schedule_builder.planner import cell_text, flatten_plan, plan_grid, px_height_for_span

WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
FRIDAY_RECESS = {"Friday": {"Morning Recess", "Afternoon Recess"}}


def make_event(event_id, days, start, end, subject="Math"):
    return ScheduleEvent(id=event_id, days=days, start=start, end=end, subject=subject,
                         teacher="Ms. Cruz", room="101")


def test_empty_grid(hourly_slots):
    """Test a grid without events is all empty cells."""
    plan = plan_grid([], hourly_slots, WEEK)
    assert len(plan) == len(hourly_slots)
    assert all(len(row) == len(WEEK) for row in plan)
    assert all(cell.kind == CELL_EMPTY for row in plan for cell in row)


def test_span_single_origin(hourly_slots):
    """Test a multi-day block renders once with its row and column spans."""
    event = make_event("a", ["Monday", "Tuesday", "Wednesday"], "10:00 AM", "1:00 PM")
    plan = plan_grid([event], hourly_slots, WEEK)
    origins = [c for row in plan for c in row if c.kind == CELL_ORIGIN]
    assert len(origins) == 1
    origin = origins[0]
    assert (origin.day, origin.slot_index) == ("Monday", 2)
    assert origin.row_span == 3
    assert origin.col_span == 3
    covered = [c for row in plan for c in row if c.kind == CELL_COVERED]
    assert len(covered) == 3 * 3 - 1
    assert all(c.event is event for c in covered)
    assert plan[2][3].kind == CELL_EMPTY


def test_breaks_take_precedence(shs_slots):
    """Test break rows render as breaks except on override days."""
    plan = plan_grid([], shs_slots, WEEK, FRIDAY_RECESS)
    recess_row = plan[2]
    assert [c.kind for c in recess_row] == [CELL_BREAK] * 4 + [CELL_EMPTY]
    assert recess_row[0].label == "Morning Recess"
    assert all(c.kind == CELL_BREAK for c in plan[5])


def test_non_contiguous_days_render_separately(hourly_slots):
    """Test Monday/Wednesday blocks get one origin each."""
    event = make_event("a", ["Monday", "Wednesday"], "8:00 AM", "9:00 AM")
    plan = plan_grid([event], hourly_slots, WEEK)
    assert plan[0][0].kind == CELL_ORIGIN
    assert plan[0][0].col_span == 1
    assert plan[0][1].kind == CELL_EMPTY
    assert plan[0][2].kind == CELL_ORIGIN


def test_two_events_same_day(hourly_slots):
    """Test stacked events keep their own origins."""
    first = make_event("a", ["Monday"], "8:00 AM", "10:00 AM")
    second = make_event("b", ["Monday"], "10:00 AM", "11:00 AM", subject="Science")
    plan = plan_grid([first, second], hourly_slots, WEEK)
    assert plan[0][0].event is first
    assert plan[1][0].kind == CELL_COVERED
    assert plan[2][0].kind == CELL_ORIGIN
    assert plan[2][0].event is second


def test_px_height_for_span():
    """Test block height from measured rows or the default."""
    assert px_height_for_span([40, 60, 20], 0, 1) == 100
    assert px_height_for_span([], 2, 4) == 3 * 140
    assert px_height_for_span([], 0, 0, default_row_px=50) == 50


def test_flatten_plan(hourly_slots):
    """Test the printable table layout."""
    event = make_event("a", ["Tuesday"], "8:00 AM", "9:00 AM")
    table = flatten_plan(plan_grid([event], hourly_slots, WEEK), hourly_slots, WEEK)
    assert table[0] == ["Time"] + WEEK
    assert table[1][0] == "8:00 AM - 9:00 AM"
    assert table[1][2] == "Math\nMs. Cruz\n101"
    assert table[1][1] == ""
    assert len(table) == len(hourly_slots) + 1


def test_cell_text_break(shs_slots):
    """Test break cells show their label."""
    plan = plan_grid([], shs_slots, WEEK)
    assert cell_text(plan[5][0]) == "Lunch"
