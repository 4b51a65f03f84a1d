"""
Audit trail for event edits.

Every accepted edit appends one ChangeRecord per field that actually
changed. History is never replaced or capped, and an edit that changes
nothing leaves the event object untouched.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .models import EVENT_FIELDS, ChangeRecord, ScheduleEvent


def _value(event: ScheduleEvent, name: str):
    value = getattr(event, name)
    return list(value) if name == "days" else value


def diff_fields(event: ScheduleEvent, patch: Dict[str, Any]) -> List[Tuple[str, Any, Any]]:
    """Fields in ``patch`` whose value differs from ``event``.

    Fields missing from the patch are not compared. Day lists are compared
    element by element.

    Returns:
        List of (field, before, after) tuples in EVENT_FIELDS order
    """
    changed = []
    for name in EVENT_FIELDS:
        if name not in patch:
            continue
        before = _value(event, name)
        after = list(patch[name]) if name == "days" else patch[name]
        if before != after:
            changed.append((name, before, after))
    return changed


def apply_audited_edit(event: ScheduleEvent, patch: Dict[str, Any], actor: str,
                       now: Optional[datetime] = None) -> ScheduleEvent:
    """Apply ``patch`` to ``event`` and record what changed.

    Args:
        event: Event as it was before the edit
        patch: New field values (any subset of EVENT_FIELDS)
        actor: Who made the edit
        now: Edit timestamp (defaults to the current UTC time)

    Returns:
        ``event`` itself when nothing changed, otherwise a new event with
        ``modified_by``/``modified_at`` set and the changes appended
    """
    changed = diff_fields(event, patch)
    if not changed:
        return event
    now = now or datetime.now(timezone.utc)
    updates = {name: after for name, _, after in changed}
    records = [ChangeRecord(name, before, after, actor, now) for name, before, after in changed]
    return replace(
        event,
        modified_by=actor,
        modified_at=now,
        changes=list(event.changes) + records,
        **updates,
    )
