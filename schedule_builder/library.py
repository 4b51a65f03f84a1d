"""
Named schedule snapshots.

A snapshot is a full copy of the event list saved under a user-chosen
name. Several snapshots can exist for the same class and term; loading one
replaces the grid of the current session.
"""

import copy
import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from .models import UNTITLED, SavedSchedule, ScheduleKey
from .store import make_id

logger = logging.getLogger(__name__)


def default_snapshot_name(class_id: str, school_year: str, semester: str,
                          today: Optional[date] = None) -> str:
    """Name suggested in the save dialog."""
    today = today or date.today()
    sem = "1st" if semester == "first" else "2nd"
    return f"{class_id or UNTITLED} • {school_year} • {sem} • {today.isoformat()}"


class ScheduleLibrary:
    """Saves, lists and restores named snapshots through a repository."""

    def __init__(self, repository):
        self.repository = repository

    def save_snapshot(self, session, name: Optional[str] = None) -> SavedSchedule:
        """Save a copy of the session's current events.

        Args:
            session: ScheduleSession to copy from
            name: Snapshot name; a default name is generated when blank

        Returns:
            The stored snapshot
        """
        key = session.key
        snapshot = SavedSchedule(
            id=make_id(),
            name=(name or "").strip() or default_snapshot_name(key.class_id, key.school_year, key.semester),
            schedule_type=session.schedule_type,
            class_id=key.class_id,
            school_year=key.school_year,
            semester=key.semester,
            events=copy.deepcopy(session.store.events),
            saved_at=datetime.now(timezone.utc),
        )
        self.repository.insert_snapshot(snapshot)
        logger.info("Saved snapshot %r with %d events", snapshot.name, len(snapshot.events))
        return snapshot

    def list(self) -> List[SavedSchedule]:
        return self.repository.list_snapshots()

    def get(self, snapshot_id: str) -> Optional[SavedSchedule]:
        return self.repository.get_snapshot(snapshot_id)

    def delete(self, snapshot_id: str) -> bool:
        return self.repository.delete_snapshot(snapshot_id)

    def load_into(self, session, snapshot_id: str) -> Optional[SavedSchedule]:
        """Open the snapshot's key and type in ``session`` and replace its events.

        The restored events go through the session's store so autosave
        persists them under the snapshot's key.

        Returns:
            The loaded snapshot, or None if it does not exist
        """
        snapshot = self.get(snapshot_id)
        if snapshot is None:
            return None
        key = ScheduleKey(snapshot.class_id, snapshot.school_year, snapshot.semester)
        session.switch(key, snapshot.schedule_type)
        session.store.replace_all(copy.deepcopy(snapshot.events), notify=True)
        logger.info("Loaded snapshot %r", snapshot.name)
        return snapshot
