"""
Editing session for one schedule view.

Ties together the slot configuration, the event store and the autosave
controller for the currently selected (class, school year, semester).
Switching the key swaps the whole in-memory event set.
"""

import logging
from typing import Iterable, List, Optional

from .config import build_time_slots, default_school_year, get_schedule_type
from .errors import PersistenceFailure
from .models import ScheduleKey, ScheduleMeta
from .persistence import AutosaveController
from .store import EventStore

logger = logging.getLogger(__name__)


class ScheduleSession:
    """The schedule currently open in the builder."""

    def __init__(self, repository, key: Optional[ScheduleKey] = None, schedule_type: str = "shs",
                 actor: str = "admin", half_hour_enabled: bool = False,
                 split_hours: Optional[Iterable[str]] = None,
                 autosave_delay: Optional[float] = None, autosave_enabled: Optional[bool] = None,
                 timer_factory=None):
        self.repository = repository
        self.key = key or ScheduleKey("", default_school_year(), "first")
        self.schedule_type = schedule_type
        self.half_hour_enabled = half_hour_enabled
        self.split_hours: List[str] = list(split_hours or [])

        cfg = get_schedule_type(schedule_type)
        self.store = EventStore(self._build_slots(), cfg.weekdays, actor, cfg.break_overrides)
        kwargs = {"delay": autosave_delay, "enabled": autosave_enabled}
        if timer_factory is not None:
            kwargs["timer_factory"] = timer_factory
        self.autosave = AutosaveController(repository, self.key, self.meta, **kwargs)
        self.store.add_listener(self.autosave.notify_changed)
        self.load()

    def _build_slots(self):
        return build_time_slots(self.schedule_type, self.half_hour_enabled, self.split_hours)

    @property
    def meta(self) -> ScheduleMeta:
        return ScheduleMeta(
            selected_class=self.key.class_id,
            schedule_type=self.schedule_type,
            school_year=self.key.school_year,
            semester=self.key.semester,
        )

    @property
    def config(self):
        return get_schedule_type(self.schedule_type)

    @property
    def slots(self):
        return self.store.slots

    @property
    def weekdays(self):
        return self.store.weekdays

    def load(self) -> int:
        """Replace the in-memory events with what is stored for the current key.

        A failed read leaves an empty grid for the current key and reports
        the error through ``autosave.status``.

        Returns:
            Number of events loaded
        """
        try:
            document = self.repository.load(self.key)
        except PersistenceFailure as e:
            logger.error("Loading %s failed: %s", self.key.storage_key(), e)
            self.store.replace_all([])
            self.autosave.mark_failed(str(e))
            return 0
        events = document.events if document else []
        self.store.replace_all(events)
        logger.info("Loaded %d events for %s", len(events), self.key.storage_key())
        return len(events)

    def switch(self, key: Optional[ScheduleKey] = None, schedule_type: Optional[str] = None):
        """Open another schedule key and/or schedule type."""
        if key is not None:
            self.key = key
        if schedule_type is not None and schedule_type != self.schedule_type:
            get_schedule_type(schedule_type)
            self.schedule_type = schedule_type
            if not self.config.supports_half_hour:
                self.half_hour_enabled = False
                self.split_hours = []
            cfg = self.config
            self.store.break_overrides = cfg.break_overrides
            self.store.set_slots(self._build_slots(), cfg.weekdays)
        self.autosave.switch_key(self.key, self.meta)
        self.load()

    def configure_slots(self, half_hour_enabled: bool, split_hours: Optional[Iterable[str]] = None):
        """Change the half-hour mode; ignored for types without it."""
        if not self.config.supports_half_hour:
            half_hour_enabled = False
            split_hours = []
        self.half_hour_enabled = half_hour_enabled
        self.split_hours = list(split_hours or [])
        self.store.set_slots(self._build_slots())

    def save(self) -> bool:
        """Manual save, bypassing the autosave delay."""
        return self.autosave.save_now(self.store.events)

    def reset(self):
        """Delete the stored record for the current key and clear the grid."""
        self.autosave.cancel()
        self.repository.delete(self.key)
        self.store.replace_all([])
        logger.info("Reset schedule %s", self.key.storage_key())

    def close(self):
        """Write any pending autosave."""
        self.autosave.flush()
