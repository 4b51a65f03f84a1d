"""
Persistence for schedules.

Uses SQLite for local use and PostgreSQL for shared deployments.
``get_repository`` selects the appropriate repository based on environment
variables.

The store keeps two kinds of records:
- schedules: the live event set per (class, school year, semester) key
- saved_schedules: named snapshots the user saved explicitly

Autosave is handled by ``AutosaveController``, which coalesces bursts of
changes into a single delayed write.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import config
from .errors import PersistenceFailure
from .models import (
    TBD, SavedSchedule, ScheduleDocument, ScheduleEvent, ScheduleKey, ScheduleMeta,
    deserialize_datetime, deserialize_event, serialize_datetime, serialize_event,
)
from .store import make_id

logger = logging.getLogger(__name__)

EPOCH = datetime.fromtimestamp(0, timezone.utc)

STATUS_IDLE = "idle"
STATUS_SAVING = "saving"
STATUS_SAVED = "saved"
STATUS_ERROR = "error"


# Document (de)serialization

def upgrade_event(data: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a stored event dict up to the current shape.

    Older records carry a single ``day`` string instead of ``days`` and may
    lack ``id``/``createdBy``/``createdAt``; those are filled with safe
    defaults.
    """
    data = dict(data)
    days = data.get("days")
    if days is None:
        days = data.pop("day", None)
    if isinstance(days, str):
        days = [days]
    if not days:
        raise ValueError("Event has no day")
    data["days"] = list(days)
    data.pop("day", None)
    if not data.get("id"):
        data["id"] = make_id()
    data.setdefault("createdBy", "system")
    if not data.get("createdAt"):
        data["createdAt"] = EPOCH.isoformat()
    data["teacher"] = data.get("teacher") or TBD
    data["room"] = data.get("room") or TBD
    data.setdefault("changes", [])
    return data


def events_from_list(items: Iterable[Dict[str, Any]]) -> List[ScheduleEvent]:
    """Deserialize event dicts, skipping entries that cannot be upgraded."""
    events = []
    for item in items or []:
        try:
            events.append(deserialize_event(upgrade_event(item)))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping unreadable stored event %r: %s", item, e)
    return events


def document_to_dict(meta: ScheduleMeta, events: Iterable[ScheduleEvent], saved_at: datetime) -> Dict[str, Any]:
    return {
        "meta": {
            "selectedClass": meta.selected_class,
            "scheduleType": meta.schedule_type,
            "schoolYear": meta.school_year,
            "semester": meta.semester,
        },
        "events": [serialize_event(e) for e in events],
        "savedAt": serialize_datetime(saved_at),
    }


def document_from_dict(data: Dict[str, Any]) -> ScheduleDocument:
    """Deserialize a stored document, accepting legacy event shapes.

    A bare list is treated as a legacy document holding only events.
    """
    if isinstance(data, list):
        data = {"events": data}
    meta_dict = data.get("meta") or {}
    meta = ScheduleMeta(
        selected_class=meta_dict.get("selectedClass", ""),
        schedule_type=meta_dict.get("scheduleType", "shs"),
        school_year=meta_dict.get("schoolYear", ""),
        semester=meta_dict.get("semester", "first"),
    )
    return ScheduleDocument(
        meta=meta,
        events=events_from_list(data.get("events")),
        saved_at=deserialize_datetime(data.get("savedAt")),
    )


def parse_document(raw: Optional[str]) -> Optional[ScheduleDocument]:
    """Parse stored JSON; missing or unparseable data yields None."""
    if not raw:
        return None
    try:
        return document_from_dict(json.loads(raw))
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning("Ignoring unparseable schedule document: %s", e)
        return None


def snapshot_to_row(snapshot: SavedSchedule) -> tuple:
    return (
        snapshot.id,
        snapshot.name,
        snapshot.schedule_type,
        snapshot.class_id,
        snapshot.school_year,
        snapshot.semester,
        json.dumps([serialize_event(e) for e in snapshot.events]),
        serialize_datetime(snapshot.saved_at),
    )


def snapshot_from_row(row) -> SavedSchedule:
    events_json = row[6]
    saved_at = row[7]
    if isinstance(saved_at, str):
        saved_at = deserialize_datetime(saved_at)
    return SavedSchedule(
        id=row[0],
        name=row[1],
        schedule_type=row[2],
        class_id=row[3] or "",
        school_year=row[4],
        semester=row[5],
        events=events_from_list(json.loads(events_json) if events_json else []),
        saved_at=saved_at,
    )


class ScheduleRepository:
    """Stores schedules and snapshots in a local SQLite database."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize the repository.

        Args:
            data_dir: Directory for the database. Defaults to config.DATA_DIR
        """
        if data_dir is None:
            data_dir = config.DATA_DIR
        data_dir = Path(data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = data_dir / "schedules.db"
        self._init_db()

    def _connect(self):
        try:
            return sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open {self.db_path}: {e}") from e

    def _init_db(self):
        """Initialize database schema."""
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schedules (
                    storage_key TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS saved_schedules (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    schedule_type TEXT NOT NULL,
                    class_id TEXT,
                    school_year TEXT NOT NULL,
                    semester TEXT NOT NULL,
                    events_json TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
            """)
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot initialize schedule database: {e}") from e
        finally:
            conn.close()

    def load(self, key: ScheduleKey) -> Optional[ScheduleDocument]:
        """Load the schedule stored under ``key``.

        Returns:
            ScheduleDocument, or None when nothing usable is stored
        """
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT document FROM schedules WHERE storage_key = ?",
                (key.storage_key(),)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot read schedule {key.storage_key()}: {e}") from e
        finally:
            conn.close()
        return parse_document(row[0]) if row else None

    def save(self, key: ScheduleKey, meta: ScheduleMeta, events: Iterable[ScheduleEvent]) -> datetime:
        """Write the schedule for ``key``, replacing any previous record.

        Returns:
            The ``savedAt`` timestamp written
        """
        saved_at = datetime.now(timezone.utc)
        document = json.dumps(document_to_dict(meta, events, saved_at))
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO schedules (storage_key, document, saved_at)
                VALUES (?, ?, ?)
                """,
                (key.storage_key(), document, saved_at.isoformat())
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot write schedule {key.storage_key()}: {e}") from e
        finally:
            conn.close()
        return saved_at

    def delete(self, key: ScheduleKey):
        """Remove the record for ``key``; other keys are untouched."""
        conn = self._connect()
        try:
            conn.execute("DELETE FROM schedules WHERE storage_key = ?", (key.storage_key(),))
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot delete schedule {key.storage_key()}: {e}") from e
        finally:
            conn.close()

    def insert_snapshot(self, snapshot: SavedSchedule):
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO saved_schedules
                (id, name, schedule_type, class_id, school_year, semester, events_json, saved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                snapshot_to_row(snapshot)
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot save snapshot {snapshot.name!r}: {e}") from e
        finally:
            conn.close()

    def list_snapshots(self) -> List[SavedSchedule]:
        """All snapshots, newest first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT id, name, schedule_type, class_id, school_year, semester, events_json, saved_at
                FROM saved_schedules
                ORDER BY saved_at DESC
                """
            ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot list snapshots: {e}") from e
        finally:
            conn.close()
        return [snapshot_from_row(r) for r in rows]

    def get_snapshot(self, snapshot_id: str) -> Optional[SavedSchedule]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT id, name, schedule_type, class_id, school_year, semester, events_json, saved_at
                FROM saved_schedules WHERE id = ?
                """,
                (snapshot_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot read snapshot {snapshot_id}: {e}") from e
        finally:
            conn.close()
        return snapshot_from_row(row) if row else None

    def delete_snapshot(self, snapshot_id: str) -> bool:
        conn = self._connect()
        try:
            cur = conn.execute("DELETE FROM saved_schedules WHERE id = ?", (snapshot_id,))
            conn.commit()
            return cur.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot delete snapshot {snapshot_id}: {e}") from e
        finally:
            conn.close()


class AutosaveController:
    """Debounced writer for the current schedule.

    ``notify_changed`` restarts the debounce timer on every call so a burst
    of edits produces one write carrying the latest events. ``save_now``
    writes immediately. A failed write sets ``status`` to ``"error"``; the
    next change is the retry.
    """

    def __init__(self, repository, key: ScheduleKey, meta: ScheduleMeta,
                 delay: Optional[float] = None, enabled: Optional[bool] = None,
                 timer_factory: Callable = threading.Timer):
        self.repository = repository
        self.key = key
        self.meta = meta
        self.delay = config.AUTOSAVE_DELAY if delay is None else delay
        self.enabled = config.AUTOSAVE_ENABLED if enabled is None else enabled
        self.timer_factory = timer_factory
        self.status = STATUS_IDLE
        self.saved_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._lock = threading.RLock()
        self._timer = None
        self._pending: Optional[List[ScheduleEvent]] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def notify_changed(self, events: Iterable[ScheduleEvent]):
        """Schedule a write of ``events`` after the debounce delay."""
        if not self.enabled:
            return
        with self._lock:
            self._cancel_timer()
            self._pending = list(events)
            timer = self.timer_factory(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self):
        with self._lock:
            events = self._pending
            self._pending = None
            self._timer = None
            if events is not None:
                self._write(events)

    def _write(self, events: List[ScheduleEvent]) -> bool:
        self.status = STATUS_SAVING
        try:
            self.saved_at = self.repository.save(self.key, self.meta, events)
        except PersistenceFailure as e:
            logger.error("Saving %s failed: %s", self.key.storage_key(), e)
            self.status = STATUS_ERROR
            self.last_error = str(e)
            return False
        self.status = STATUS_SAVED
        self.last_error = None
        logger.debug("Saved %d events to %s", len(events), self.key.storage_key())
        return True

    def save_now(self, events: Iterable[ScheduleEvent]) -> bool:
        """Write immediately, dropping any pending debounced write.

        Returns:
            True on success, False if the write failed (see ``last_error``)
        """
        with self._lock:
            self._cancel_timer()
            self._pending = None
            return self._write(list(events))

    def flush(self) -> bool:
        """Write the pending change now, if there is one."""
        with self._lock:
            self._cancel_timer()
            events = self._pending
            self._pending = None
            if events is None:
                return True
            return self._write(events)

    def cancel(self):
        """Drop the pending change without writing it."""
        with self._lock:
            self._cancel_timer()
            self._pending = None

    def set_enabled(self, enabled: bool):
        with self._lock:
            self.enabled = enabled
            if not enabled:
                self._cancel_timer()
                self._pending = None

    def switch_key(self, key: ScheduleKey, meta: ScheduleMeta):
        """Point the controller at another schedule.

        A pending write still belongs to the previous key and is flushed there
        first.
        """
        with self._lock:
            self.flush()
            self.key = key
            self.meta = meta
            self.status = STATUS_IDLE
            self.saved_at = None
            self.last_error = None

    def mark_failed(self, message: str):
        """Report a failed read of the current key through ``status``."""
        with self._lock:
            self.status = STATUS_ERROR
            self.last_error = message


def get_repository():
    """Get the appropriate repository based on environment.

    Returns:
        PostgresScheduleRepository if DATABASE_URL is set, otherwise ScheduleRepository
    """
    if config.DATABASE_URL:
        from .pg_store import PostgresScheduleRepository
        return PostgresScheduleRepository(config.DATABASE_URL)
    return ScheduleRepository()
