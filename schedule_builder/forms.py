"""
Event form validation.

Mirrors what the edit dialog requires before its save button is enabled:
a subject, at least one day and a resolvable start and end time.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import IncompleteForm
from .models import TBD, EventDraft
from .time_axis import normalize_time


@dataclass
class EventForm:
    """Values entered in the create/edit dialog."""
    days: List[str] = field(default_factory=list)
    start: Optional[str] = None
    end: Optional[str] = None
    subject: str = ""
    teacher: str = ""
    room: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventForm":
        days = data.get("days")
        if days is None and data.get("day"):
            days = [data["day"]]
        return cls(
            days=list(days or []),
            start=data.get("start"),
            end=data.get("end"),
            subject=(data.get("subject") or "").strip(),
            teacher=(data.get("teacher") or "").strip(),
            room=(data.get("room") or "").strip(),
        )

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.subject:
            missing.append("subject")
        if not self.days:
            missing.append("days")
        if not self.start:
            missing.append("start")
        if not self.end:
            missing.append("end")
        return missing

    def validate(self) -> "EventForm":
        """Check required fields and normalise the time strings.

        Raises:
            IncompleteForm: If a required field is missing
            InvalidTimeFormat: If start or end is not a valid time
        """
        missing = self.missing_fields()
        if missing:
            raise IncompleteForm(f"Missing required fields: {', '.join(missing)}", missing)
        self.start = normalize_time(self.start)
        self.end = normalize_time(self.end)
        return self

    def to_draft(self) -> EventDraft:
        self.validate()
        return EventDraft(
            days=list(self.days),
            start=self.start,
            end=self.end,
            subject=self.subject,
            teacher=self.teacher or TBD,
            room=self.room or TBD,
        )

    def to_patch(self) -> Dict[str, Any]:
        """Full-replace patch used by the edit dialog."""
        draft = self.to_draft()
        return {
            "days": draft.days,
            "start": draft.start,
            "end": draft.end,
            "subject": draft.subject,
            "teacher": draft.teacher,
            "room": draft.room,
        }


def partial_patch(data: Dict[str, Any]) -> Dict[str, Any]:
    """Patch holding only the fields present in ``data``.

    Used by API callers that edit a subset of fields; untouched fields
    produce no change record.

    Raises:
        IncompleteForm: If subject or days are present but empty
        InvalidTimeFormat: If a time is present but malformed
    """
    patch: Dict[str, Any] = {}
    if "day" in data and "days" not in data:
        data = dict(data, days=[data["day"]] if data["day"] else [])
    if "days" in data:
        if not data["days"]:
            raise IncompleteForm("At least one day is required", ["days"])
        patch["days"] = list(data["days"])
    for name in ("start", "end"):
        if name in data:
            if not data[name]:
                raise IncompleteForm(f"{name} is required", [name])
            patch[name] = normalize_time(data[name])
    if "subject" in data:
        subject = (data["subject"] or "").strip()
        if not subject:
            raise IncompleteForm("Subject is required", ["subject"])
        patch["subject"] = subject
    for name in ("teacher", "room"):
        if name in data:
            patch[name] = (data[name] or "").strip() or TBD
    return patch
