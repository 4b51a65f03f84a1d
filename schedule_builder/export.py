"""
Export of a planned schedule grid.

Produces the flattened table used for print/PDF capture plus CSV, Excel,
printable HTML, PDF and iCalendar renditions of the current schedule.
"""

import html
import io
import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence

import pandas as pd
from fpdf import FPDF
from icalendar import Calendar, Event
from pytz import timezone

from .models import (
    CELL_BREAK, CELL_COVERED, CELL_ORIGIN, UNTITLED, CellPlan, ScheduleEvent, ScheduleMeta, TimeSlot,
    WEEKDAYS,
)
from .planner import cell_text, flatten_plan, px_height_for_span
from .time_axis import MINUTES_PER_DAY, format_time_slot, parse_time

logger = logging.getLogger(__name__)

PRINT_STYLES = """
  body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, "Helvetica Neue", Arial; color: #111827; margin: 20px; }
  table { width: 100%; border-collapse: collapse; }
  th, td { border: 1px solid #e6e6e6; padding: 8px; vertical-align: top; }
  th { background: #f3f4f6; font-weight: 600; text-align: center; }
  td.break { background: #fafafa; color: #6b7280; text-align: center; font-style: italic; }
  .subject { font-weight: 600; color: #0f172a; font-size: 13px; }
  .meta { font-size: 11px; color: #6b7280; margin-top: 4px; }
  @media print { body { margin: 10mm; } }
"""


def semester_label(semester: str) -> str:
    return "1st Sem" if semester == "first" else "2nd Sem"


def report_title(meta: ScheduleMeta, separator: str = "•") -> str:
    """Subtitle shown above printed schedules."""
    parts = [meta.selected_class or UNTITLED, f"SY {meta.school_year}", semester_label(meta.semester)]
    return f" {separator} ".join(parts)


def export_filename(meta: ScheduleMeta, extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"schedule-{meta.selected_class or UNTITLED}-{today.isoformat()}.{extension}"


def events_table(events: Sequence[ScheduleEvent]) -> pd.DataFrame:
    """One row per event, in the column layout the importer reads back."""
    rows = [
        {
            "days": ", ".join(ev.days),
            "start": ev.start,
            "end": ev.end,
            "subject": ev.subject,
            "teacher": ev.teacher,
            "room": ev.room,
        }
        for ev in events
    ]
    return pd.DataFrame(rows, columns=["days", "start", "end", "subject", "teacher", "room"])


def grid_dataframe(plan, slots: Sequence[TimeSlot], weekdays: Sequence[str]) -> pd.DataFrame:
    table = flatten_plan(plan, slots, weekdays)
    return pd.DataFrame(table[1:], columns=table[0])


def to_csv(plan, slots: Sequence[TimeSlot], weekdays: Sequence[str]) -> str:
    """Grid as CSV text."""
    return grid_dataframe(plan, slots, weekdays).to_csv(index=False)


def to_xlsx(plan, slots: Sequence[TimeSlot], weekdays: Sequence[str],
            events: Sequence[ScheduleEvent]) -> bytes:
    """Excel workbook with a "Schedule" grid sheet and an "Events" list sheet."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        grid_dataframe(plan, slots, weekdays).to_excel(writer, sheet_name="Schedule", index=False)
        events_table(events).to_excel(writer, sheet_name="Events", index=False)
    return buffer.getvalue()


def _html_cell(cell: CellPlan) -> str:
    if cell.kind == CELL_BREAK:
        return f'<td class="break">{html.escape(cell.label or "Break")}</td>'
    if cell.kind == CELL_COVERED:
        return ""
    if cell.kind == CELL_ORIGIN and cell.event is not None:
        ev = cell.event
        spans = ""
        if cell.row_span > 1:
            spans += f' rowspan="{cell.row_span}"'
        if cell.col_span > 1:
            spans += f' colspan="{cell.col_span}"'
        return (
            f"<td{spans}><div class=\"subject\">{html.escape(ev.subject)}</div>"
            f"<div class=\"meta\">{html.escape(ev.teacher)}</div>"
            f"<div class=\"meta\">{html.escape(ev.room)}</div></td>"
        )
    return "<td></td>"


def to_print_html(plan, slots: Sequence[TimeSlot], weekdays: Sequence[str], meta: ScheduleMeta) -> str:
    """Standalone HTML page suitable for the browser's print dialog."""
    head = "".join(f"<th>{html.escape(d)}</th>" for d in weekdays)
    body = []
    for slot, cells in zip(slots, plan):
        row = "".join(_html_cell(c) for c in cells)
        body.append(f"<tr><th>{html.escape(format_time_slot(slot))}</th>{row}</tr>")
    return (
        "<!doctype html><html><head><meta charset=\"utf-8\"><title>Schedule Report</title>"
        f"<style>{PRINT_STYLES}</style></head><body>"
        "<div style=\"margin-bottom:12px;\"><strong style=\"font-size:16px;\">Schedule Report</strong><br/>"
        f"<span style=\"font-size:13px;\">{html.escape(report_title(meta))}</span></div>"
        f"<table><thead><tr><th>Time</th>{head}</tr></thead><tbody>{''.join(body)}</tbody></table>"
        "</body></html>"
    )


def _latin1(text: str) -> str:
    # Core PDF fonts only cover latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def to_pdf(plan, slots: Sequence[TimeSlot], weekdays: Sequence[str], meta: ScheduleMeta) -> bytes:
    """Landscape A4 PDF of the grid.

    Each event block is drawn once over the rows and days it spans. Rows
    continue on new pages as needed; a block cut by a page break is drawn in
    pieces, one per page.
    """
    pdf = FPDF(orientation="L", unit="pt", format="A4")
    pdf.set_auto_page_break(False, margin=20)
    pdf.set_margins(20, 20, 20)
    pdf.add_page()

    page_width = pdf.w - pdf.l_margin - pdf.r_margin
    time_col = 90
    day_col = (page_width - time_col) / max(1, len(weekdays))
    line_h = 11
    bottom = pdf.h - pdf.b_margin
    row_heights = [line_h * (1 if slot.is_break else 3) + 6 for slot in slots]
    blocks = [(row, col, cell) for row, cells in enumerate(plan)
              for col, cell in enumerate(cells) if cell.kind == CELL_ORIGIN]

    pdf.set_font("Helvetica", "B", 14)
    pdf.cell(page_width, 18, "Schedule Report")
    pdf.ln(18)
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(page_width, 14, _latin1(report_title(meta, "|")))
    pdf.ln(20)

    def draw_header():
        pdf.set_font("Helvetica", "B", 9)
        pdf.set_fill_color(243, 244, 246)
        y = pdf.get_y()
        pdf.set_xy(pdf.l_margin, y)
        pdf.cell(time_col, 18, "Time", border=1, align="C", fill=True)
        for day in weekdays:
            pdf.cell(day_col, 18, _latin1(day), border=1, align="C", fill=True)
        pdf.set_xy(pdf.l_margin, y + 18)

    def draw_text(x, y, width, text, style):
        pdf.set_font("Helvetica", style, 8)
        pdf.set_xy(x + 2, y + 3)
        pdf.multi_cell(width - 4, line_h, _latin1(text))

    def draw_rows(first, last):
        tops = {}
        y = pdf.get_y()
        for row in range(first, last + 1):
            tops[row] = y
            row_h = row_heights[row]
            pdf.rect(pdf.l_margin, y, time_col, row_h)
            draw_text(pdf.l_margin, y, time_col, format_time_slot(slots[row]), "")
            for col, cell in enumerate(plan[row]):
                x = pdf.l_margin + time_col + col * day_col
                if cell.kind == CELL_BREAK:
                    pdf.set_fill_color(250, 250, 250)
                    pdf.rect(x, y, day_col, row_h, style="DF")
                    draw_text(x, y, day_col, cell_text(cell), "I")
                elif cell.kind not in (CELL_COVERED, CELL_ORIGIN):
                    pdf.rect(x, y, day_col, row_h)
            y += row_h
        for row, col, cell in blocks:
            s = max(row, first)
            e = min(row + cell.row_span - 1, last)
            if s > e:
                continue
            x = pdf.l_margin + time_col + col * day_col
            width = cell.col_span * day_col
            pdf.rect(x, tops[s], width, px_height_for_span(row_heights, s, e))
            draw_text(x, tops[s], width, cell_text(cell), "B")
        pdf.set_xy(pdf.l_margin, y)

    draw_header()
    first = 0
    while first < len(slots):
        room = bottom - pdf.get_y()
        last = first
        used = row_heights[first]
        while last + 1 < len(slots) and used + row_heights[last + 1] <= room:
            last += 1
            used += row_heights[last]
        draw_rows(first, last)
        first = last + 1
        if first < len(slots):
            pdf.add_page()
            draw_header()

    return bytes(pdf.output())


class ICalendarGenerator:
    """Generates iCalendar (.ics) files from the weekly template."""

    def __init__(self, timezone_str: str = "Asia/Manila"):
        """Initialize calendar generator.

        Args:
            timezone_str: Timezone the school clock times are in
        """
        self.tz = timezone(timezone_str)

    def generate_calendar(self, events: Sequence[ScheduleEvent], term_start: date,
                          term_end: date, meta: Optional[ScheduleMeta] = None) -> Calendar:
        """Generate a calendar repeating the week template over a term.

        Args:
            events: Events of the schedule
            term_start: First day of classes
            term_end: Last day of classes (inclusive)
            meta: Schedule header, used in descriptions

        Returns:
            Calendar object ready for export
        """
        if term_end < term_start:
            raise ValueError("Term end must not be before term start")
        cal = Calendar()
        cal.add('prodid', '-//School Schedule Builder//EN')
        cal.add('version', '2.0')
        cal.add('calscale', 'GREGORIAN')
        cal.add('method', 'PUBLISH')

        for event in events:
            for component in self._create_recurring_events(event, term_start, term_end, meta):
                cal.add_component(component)
        return cal

    def _create_recurring_events(self, event: ScheduleEvent, term_start: date,
                                 term_end: date, meta: Optional[ScheduleMeta]) -> List[Event]:
        """One weekly recurring VEVENT per day of ``event``."""
        start_min = parse_time(event.start)
        end_min = parse_time(event.end)
        if end_min <= start_min:
            end_min += MINUTES_PER_DAY
        components = []
        for day in event.days:
            day_num = WEEKDAYS.index(day)
            current = term_start
            while current.weekday() != day_num and current <= term_end:
                current += timedelta(days=1)
            if current > term_end:
                continue

            start_dt = datetime.combine(current, time(0, 0)) + timedelta(minutes=start_min)
            end_dt = datetime.combine(current, time(0, 0)) + timedelta(minutes=end_min)

            component = Event()
            component.add('uid', f"{event.id}-{day_num}-{uuid.uuid4().hex[:8]}@schedule-builder")
            component.add('dtstart', self.tz.localize(start_dt))
            component.add('dtend', self.tz.localize(end_dt))
            component.add('summary', event.subject)
            if event.room:
                component.add('location', event.room)
            component.add('rrule', {
                'FREQ': 'WEEKLY',
                'BYDAY': self._weekday_to_byday(day_num),
                'UNTIL': term_end,
            })
            description = [f"Teacher: {event.teacher}", f"Room: {event.room}"]
            if meta is not None:
                description.append(report_title(meta))
            component.add('description', "\n".join(description))
            components.append(component)
        return components

    def _weekday_to_byday(self, weekday: int) -> str:
        return ['MO', 'TU', 'WE', 'TH', 'FR', 'SA', 'SU'][weekday]

    def to_ics(self, calendar: Calendar) -> bytes:
        return calendar.to_ical()
