"""Shared fixtures for schedule builder tests."""

from datetime import datetime, timezone

import pytest

from schedule_builder.config import SCHEDULE_TYPES, build_time_slots
from schedule_builder.persistence import ScheduleRepository
from schedule_builder.store import EventStore
from schedule_builder.time_axis import generate_slots


class FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class FixedClock:
    """Deterministic clock that advances one minute per call."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 8, 11, 8, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = self.now.replace(minute=(self.now.minute + 1) % 60)
        return current


@pytest.fixture
def fake_timer():
    FakeTimer.created = []
    return FakeTimer


@pytest.fixture
def shs_slots():
    return build_time_slots("shs")


@pytest.fixture
def shs_weekdays():
    return list(SCHEDULE_TYPES["shs"].weekdays)


@pytest.fixture
def hourly_slots():
    """Plain 8:00 AM - 5:00 PM hourly rows without breaks."""
    return generate_slots("8:00 AM", "5:00 PM", 60)


@pytest.fixture
def shs_store(shs_slots, shs_weekdays):
    return EventStore(
        shs_slots,
        shs_weekdays,
        actor="registrar",
        break_overrides=SCHEDULE_TYPES["shs"].break_overrides,
        clock=FixedClock(),
    )


@pytest.fixture
def hourly_store(hourly_slots):
    weekdays = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
    return EventStore(hourly_slots, weekdays, actor="registrar", clock=FixedClock())


@pytest.fixture
def repository(tmp_path):
    return ScheduleRepository(data_dir=tmp_path / "data")
