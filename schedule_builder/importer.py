"""
Import of schedule events from CSV and Excel files.

Each row describes one event with ``days`` (or ``day``), ``start``, ``end``,
``subject``, ``teacher`` and ``room`` columns. Rows that cannot be read are
skipped and reported; a file that cannot be read at all raises
ParseFailure.
"""

import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple

import pandas as pd

from .errors import BreakSlotConflict, IncompleteForm, InvalidTimeFormat, ParseFailure
from .models import TBD, WEEKDAYS, EventDraft, ScheduleEvent
from .time_axis import format_time, parse_time_lenient

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("start", "end", "subject")


@dataclass
class ImportResult:
    """Outcome of an import: what was read and which rows were skipped."""
    drafts: List[Tuple[int, EventDraft]] = field(default_factory=list)
    errors: List[Tuple[int, str]] = field(default_factory=list)
    created: List[ScheduleEvent] = field(default_factory=list)
    duplicates: int = 0


def parse_day(token: str) -> str:
    """Match a day name or abbreviation ("Mon", "thu", "Thursday")."""
    token = token.strip().lower()
    if len(token) >= 2:
        for day in WEEKDAYS:
            if day.lower().startswith(token) or token.startswith(day.lower()[:3]):
                return day
    raise ValueError(f"Unknown day: {token!r}")


def parse_days(value: Any) -> List[str]:
    """Parse a days cell such as "Monday, Wednesday" or "Mon-Wed".

    Returns:
        Days in weekday order without duplicates
    """
    text = str(value or "").strip()
    if not text:
        raise ValueError("No day given")
    days = []
    for part in re.split(r"[,;/]", text):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            first, last = (parse_day(p) for p in part.split("-", 1))
            a, b = sorted((WEEKDAYS.index(first), WEEKDAYS.index(last)))
            days.extend(WEEKDAYS[a:b + 1])
        else:
            days.append(parse_day(part))
    return [d for d in WEEKDAYS if d in days]


def _cell(row: pd.Series, name: str) -> Any:
    value = row.get(name)
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return value


def row_to_draft(row: pd.Series) -> EventDraft:
    """Convert one table row to a draft.

    Raises:
        IncompleteForm: If the subject or day is missing
        InvalidTimeFormat: If a time cannot be recognised
    """
    days_value = _cell(row, "days") or _cell(row, "day")
    if not days_value:
        raise IncompleteForm("Missing day", ["days"])
    try:
        days = parse_days(days_value)
    except ValueError as e:
        raise IncompleteForm(str(e), ["days"]) from e
    subject = str(_cell(row, "subject")).strip()
    if not subject:
        raise IncompleteForm("Missing subject", ["subject"])
    start = format_time(parse_time_lenient(_cell(row, "start")))
    end = format_time(parse_time_lenient(_cell(row, "end")))
    return EventDraft(
        days=days,
        start=start,
        end=end,
        subject=subject,
        teacher=str(_cell(row, "teacher")).strip() or TBD,
        room=str(_cell(row, "room")).strip() or TBD,
    )


def read_table(source, fmt: Optional[str] = None, sheet_name=0) -> pd.DataFrame:
    """Read a CSV or Excel file into a DataFrame with lower-case columns.

    Args:
        source: Path or binary file object
        fmt: "csv" or "xlsx"; guessed from the file name when omitted
        sheet_name: Excel sheet to read

    Raises:
        ParseFailure: If the file cannot be parsed or lacks required columns
    """
    if fmt is None:
        name = str(getattr(source, "filename", None) or getattr(source, "name", None) or source)
        fmt = "xlsx" if Path(name).suffix.lower() in (".xlsx", ".xlsm", ".xls") else "csv"
    try:
        if fmt == "csv":
            frame = pd.read_csv(source, dtype=str, keep_default_na=False)
        elif fmt in ("xlsx", "excel"):
            frame = pd.read_excel(source, sheet_name=sheet_name, dtype=object, engine="openpyxl")
        else:
            raise ParseFailure(f"Unsupported import format: {fmt}")
    except ParseFailure:
        raise
    except (pd.errors.ParserError, pd.errors.EmptyDataError, zipfile.BadZipFile,
            UnicodeDecodeError, ValueError, OSError) as e:
        raise ParseFailure(f"Could not read {fmt} file: {e}") from e

    frame.columns = [str(c).strip().lower() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if "days" not in frame.columns and "day" not in frame.columns:
        missing.insert(0, "days")
    if missing:
        raise ParseFailure(f"Missing columns: {', '.join(missing)}")
    return frame


def read_events(source, fmt: Optional[str] = None) -> ImportResult:
    """Read event drafts from a file, skipping rows that cannot be parsed.

    Row numbers in the result are 1-based data rows (header excluded).
    """
    frame = read_table(source, fmt)
    result = ImportResult()
    for number, (_, row) in enumerate(frame.iterrows(), start=1):
        try:
            result.drafts.append((number, row_to_draft(row)))
        except (IncompleteForm, InvalidTimeFormat) as e:
            logger.warning("Skipping import row %d: %s", number, e)
            result.errors.append((number, str(e)))
    return result


def import_into(store, result: ImportResult, actor: Optional[str] = None) -> ImportResult:
    """Add imported drafts to an EventStore.

    Rows rejected by the store (break slots, days outside the active week)
    are reported like unreadable rows. Exact duplicates are counted and
    dropped.
    """
    for number, draft in result.drafts:
        try:
            event = store.add(draft, actor)
        except (BreakSlotConflict, IncompleteForm, ValueError) as e:
            logger.warning("Import row %d rejected: %s", number, e)
            result.errors.append((number, str(e)))
            continue
        if event is None:
            result.duplicates += 1
        else:
            result.created.append(event)
    result.errors.sort()
    return result
