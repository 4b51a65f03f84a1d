"""
Error types for the schedule builder.

None of these are fatal: callers either surface them to the user as a
rejected action or (for persistence) as a status indicator.
"""


class ScheduleError(Exception):
    """Base class for all schedule builder errors."""

    kind = "schedule_error"


class InvalidTimeFormat(ScheduleError, ValueError):
    """A time string did not match ``H:MM AM|PM``."""

    kind = "invalid_time_format"


class BreakSlotConflict(ScheduleError):
    """A candidate event range touches a protected break slot."""

    kind = "break_slot_conflict"

    def __init__(self, message: str, days=None):
        super().__init__(message)
        self.days = list(days or [])


class IncompleteForm(ScheduleError, ValueError):
    """Required event fields (subject, start, end, days) are missing."""

    kind = "incomplete_form"

    def __init__(self, message: str, missing=None):
        super().__init__(message)
        self.missing = list(missing or [])


class PersistenceFailure(ScheduleError):
    """Reading or writing the schedule store failed."""

    kind = "persistence_failure"


class ParseFailure(ScheduleError, ValueError):
    """An imported file could not be read at all."""

    kind = "parse_failure"


class EventNotFound(ScheduleError, KeyError):
    """No event with the given id exists in the current schedule."""

    kind = "event_not_found"

    def __str__(self):
        return str(self.args[0]) if self.args else "Event not found"
