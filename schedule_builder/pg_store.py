"""
PostgreSQL-backed schedule repository for shared deployments.

Used instead of the local SQLite repository when the DATABASE_URL
environment variable is set. Offers the same methods as
``persistence.ScheduleRepository``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from .errors import PersistenceFailure
from .models import SavedSchedule, ScheduleDocument, ScheduleEvent, ScheduleKey, ScheduleMeta
from .persistence import document_to_dict, parse_document, snapshot_from_row, snapshot_to_row

logger = logging.getLogger(__name__)

_SNAPSHOT_COLUMNS = "id, name, schedule_type, class_id, school_year, semester, events_json, saved_at"


class PostgresScheduleRepository:
    """Stores schedules and snapshots in PostgreSQL."""

    def __init__(self, database_url: str):
        """Initialize the repository and make sure the tables exist.

        Args:
            database_url: PostgreSQL connection string

        Raises:
            PersistenceFailure: If the database cannot be reached
        """
        if not database_url:
            raise ValueError("database_url is required for the PostgreSQL repository")
        self.database_url = database_url
        self._init_db()

    def _get_connection(self):
        try:
            return psycopg2.connect(self.database_url)
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Failed to connect to database: {e}") from e

    def _execute(self, sql: str, params: tuple = (), fetch: Optional[str] = None):
        """Run one statement in its own transaction.

        Args:
            sql: Statement with %s placeholders
            params: Statement parameters
            fetch: "one", "all" or None

        Returns:
            Fetched row(s), or the affected row count when not fetching
        """
        conn = self._get_connection()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            if fetch == "one":
                result = cur.fetchone()
            elif fetch == "all":
                result = cur.fetchall()
            else:
                result = cur.rowcount
            conn.commit()
            cur.close()
            return result
        except psycopg2.Error as e:
            conn.rollback()
            raise PersistenceFailure(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        self._execute("""
            CREATE TABLE IF NOT EXISTS schedules (
                storage_key TEXT PRIMARY KEY,
                document JSONB NOT NULL,
                saved_at TIMESTAMPTZ NOT NULL
            )
        """)
        self._execute("""
            CREATE TABLE IF NOT EXISTS saved_schedules (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                schedule_type TEXT NOT NULL,
                class_id TEXT,
                school_year TEXT NOT NULL,
                semester TEXT NOT NULL,
                events_json TEXT NOT NULL,
                saved_at TIMESTAMPTZ NOT NULL
            )
        """)

    def load(self, key: ScheduleKey) -> Optional[ScheduleDocument]:
        conn = self._get_connection()
        try:
            cur = conn.cursor(cursor_factory=RealDictCursor)
            cur.execute(
                "SELECT document::text AS document FROM schedules WHERE storage_key = %s",
                (key.storage_key(),)
            )
            row = cur.fetchone()
            cur.close()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Cannot read schedule {key.storage_key()}: {e}") from e
        finally:
            conn.close()
        return parse_document(row["document"]) if row else None

    def save(self, key: ScheduleKey, meta: ScheduleMeta, events: Iterable[ScheduleEvent]) -> datetime:
        saved_at = datetime.now(timezone.utc)
        document = json.dumps(document_to_dict(meta, events, saved_at))
        self._execute(
            """
            INSERT INTO schedules (storage_key, document, saved_at)
            VALUES (%s, %s::jsonb, %s)
            ON CONFLICT (storage_key)
            DO UPDATE SET
                document = EXCLUDED.document,
                saved_at = EXCLUDED.saved_at
            """,
            (key.storage_key(), document, saved_at)
        )
        return saved_at

    def delete(self, key: ScheduleKey):
        self._execute("DELETE FROM schedules WHERE storage_key = %s", (key.storage_key(),))

    def insert_snapshot(self, snapshot: SavedSchedule):
        self._execute(
            f"INSERT INTO saved_schedules ({_SNAPSHOT_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
            snapshot_to_row(snapshot)
        )

    def list_snapshots(self) -> List[SavedSchedule]:
        rows = self._execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM saved_schedules ORDER BY saved_at DESC",
            fetch="all"
        )
        return [snapshot_from_row(r) for r in rows]

    def get_snapshot(self, snapshot_id: str) -> Optional[SavedSchedule]:
        row = self._execute(
            f"SELECT {_SNAPSHOT_COLUMNS} FROM saved_schedules WHERE id = %s",
            (snapshot_id,),
            fetch="one"
        )
        return snapshot_from_row(row) if row else None

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self._execute("DELETE FROM saved_schedules WHERE id = %s", (snapshot_id,)) > 0
