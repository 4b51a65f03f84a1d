"""Unit tests for event form validation."""

import pytest

from schedule_builder.errors import IncompleteForm, InvalidTimeFormat
from schedule_builder.forms import EventForm, partial_patch


def test_from_dict_accepts_single_day():
    """Test legacy single-day payloads."""
    form = EventForm.from_dict({"day": "Friday", "start": "8:00 AM", "end": "9:00 AM", "subject": "Math"})
    assert form.days == ["Friday"]


def test_missing_fields():
    """Test every missing required field is reported."""
    form = EventForm.from_dict({"subject": "  "})
    with pytest.raises(IncompleteForm) as exc:
        form.validate()
    assert exc.value.missing == ["subject", "days", "start", "end"]


def test_to_draft_defaults_blank_teacher_and_room():
    """Test blank teacher and room become TBD."""
    draft = EventForm.from_dict({
        "days": ["Monday"], "start": "08:00 am", "end": "9:00 AM", "subject": " Math ", "teacher": " ",
    }).to_draft()
    assert draft.start == "8:00 AM"
    assert draft.subject == "Math"
    assert draft.teacher == "TBD"
    assert draft.room == "TBD"


def test_invalid_time():
    """Test malformed times are rejected."""
    form = EventForm(days=["Monday"], start="8 o'clock", end="9:00 AM", subject="Math")
    with pytest.raises(InvalidTimeFormat):
        form.validate()


def test_to_patch_contains_all_fields():
    """Test the dialog patch replaces every field."""
    patch = EventForm(days=["Monday"], start="8:00 AM", end="9:00 AM", subject="Math", room="12").to_patch()
    assert set(patch) == {"days", "start", "end", "subject", "teacher", "room"}
    assert patch["room"] == "12"


def test_partial_patch():
    """Test partial patches only carry the given fields."""
    assert partial_patch({"room": "204"}) == {"room": "204"}
    assert partial_patch({"teacher": ""}) == {"teacher": "TBD"}
    assert partial_patch({"day": "Monday", "end": "10:00 am"}) == {"days": ["Monday"], "end": "10:00 AM"}


def test_partial_patch_rejects_empty_required():
    """Test required fields cannot be blanked by a partial patch."""
    with pytest.raises(IncompleteForm):
        partial_patch({"subject": " "})
    with pytest.raises(IncompleteForm):
        partial_patch({"days": []})
    with pytest.raises(IncompleteForm):
        partial_patch({"start": ""})
