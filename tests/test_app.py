"""Tests for the Flask JSON API."""

import io

import pytest

from schedule_builder.app import create_app


@pytest.fixture
def app(repository, fake_timer):
    app = create_app(repository, {"autosave_enabled": True, "timer_factory": fake_timer})
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def open_class(client, class_id="Grade 11 - STEM A", schedule_type="shs"):
    return client.post("/api/schedule/open", json={
        "classId": class_id, "schoolYear": "2025-2026", "semester": "first", "scheduleType": schedule_type,
    })


def test_config(client):
    """Test the selector configuration."""
    data = client.get("/api/config").get_json()
    assert [t["name"] for t in data["scheduleTypes"]] == ["shs", "tesda"]
    assert data["semesters"] == ["first", "second"]
    assert data["defaultSchoolYear"] in data["schoolYears"]


def test_schedule_payload(client):
    """Test the schedule view includes slots and a planned grid."""
    data = open_class(client).get_json()
    assert data["meta"]["selectedClass"] == "Grade 11 - STEM A"
    assert len(data["slots"]) == 11
    assert data["slots"][2] == {"start": "9:45 AM", "end": "10:00 AM", "kind": "break", "label": "Morning Recess"}
    assert data["grid"][2][4]["kind"] == "empty"
    assert data["grid"][2][0]["kind"] == "break"


def test_open_rejects_bad_school_year(client):
    """Test invalid school years are a 400."""
    response = client.post("/api/schedule/open", json={"schoolYear": "2025"})
    assert response.status_code == 400


def test_create_from_selection(client):
    """Test creating an event from a drag selection."""
    open_class(client)
    response = client.post("/api/events", json={
        "startDay": "Monday", "endDay": "Wednesday", "startIndex": 3, "endIndex": 4,
        "subject": "Math", "applyToAll": True,
    }, headers={"X-Actor": "registrar"})
    assert response.status_code == 201
    created = response.get_json()["created"]
    assert len(created) == 1
    assert created[0]["days"] == ["Monday", "Tuesday", "Wednesday"]
    assert created[0]["createdBy"] == "registrar"

    grid = client.get("/api/schedule").get_json()["grid"]
    assert grid[3][0] == {
        "kind": "origin", "day": "Monday", "slotIndex": 3, "eventId": created[0]["id"],
        "rowSpan": 2, "colSpan": 3,
    }


def test_break_conflict_is_409(client):
    """Test selections over a break are rejected."""
    open_class(client)
    response = client.post("/api/events", json={
        "day": "Monday", "startIndex": 1, "endIndex": 3, "subject": "Math",
    })
    assert response.status_code == 409
    body = response.get_json()
    assert body["kind"] == "break_slot_conflict"
    assert body["days"] == ["Monday"]


def test_create_from_form(client):
    """Test creating events from the dialog fields."""
    open_class(client)
    response = client.post("/api/events", json={
        "days": ["Thursday", "Friday"], "start": "8:45 AM", "end": "11:00 AM",
        "subject": "Math", "applyToAll": False,
    })
    body = response.get_json()
    assert [e["days"] for e in body["created"]] == [["Friday"]]
    assert body["rejectedDays"] == ["Thursday"]


def test_incomplete_form(client):
    """Test missing fields are reported."""
    open_class(client)
    response = client.post("/api/events", json={"days": ["Monday"], "start": "8:45 AM"})
    assert response.status_code == 400
    assert set(response.get_json()["missing"]) == {"subject", "end"}


def test_selection_preview(client):
    """Test previews switch to edit mode inside an existing event."""
    open_class(client)
    client.post("/api/events", json={"day": "Monday", "startIndex": 3, "endIndex": 4, "subject": "Math"})
    edit = client.post("/api/selection", json={"day": "Monday", "startIndex": 4, "endIndex": 4}).get_json()
    assert edit["mode"] == "edit"
    assert edit["event"]["subject"] == "Math"
    create = client.post("/api/selection", json={
        "startDay": "Monday", "endDay": "Tuesday", "startIndex": 6, "endIndex": 7, "applyToAll": False,
    }).get_json()
    assert create["mode"] == "create"
    assert len(create["drafts"]) == 2


def test_cell_lookup(client):
    """Test clicking a cell finds the event starting at or covering it."""
    open_class(client)
    created = client.post("/api/events", json={
        "day": "Monday", "startIndex": 3, "endIndex": 4, "subject": "Math",
    }).get_json()["created"][0]
    origin = client.get("/api/cells/Monday/3").get_json()
    assert origin["position"] == "origin"
    assert origin["event"]["id"] == created["id"]
    covered = client.get("/api/cells/Monday/4").get_json()
    assert covered["position"] == "covered"
    assert covered["event"]["id"] == created["id"]
    assert client.get("/api/cells/Monday/6").get_json() == {
        "day": "Monday", "slotIndex": 6, "position": "empty", "event": None,
    }
    assert client.get("/api/cells/Sunday/0").status_code == 400


def test_edit_and_delete(client):
    """Test editing records history and deleting removes the event."""
    open_class(client)
    created = client.post("/api/events", json={
        "day": "Monday", "startIndex": 0, "endIndex": 0, "subject": "Math",
    }).get_json()["created"][0]
    response = client.patch(f"/api/events/{created['id']}", json={"room": "204"}, headers={"X-Actor": "principal"})
    event = response.get_json()
    assert event["room"] == "204"
    assert event["modifiedBy"] == "principal"
    assert event["changes"][0]["from"] == "TBD"
    assert event["changes"][0]["to"] == "204"

    assert client.delete(f"/api/events/{created['id']}").status_code == 200
    assert client.get(f"/api/events/{created['id']}").status_code == 404


def test_save_reset(client, repository):
    """Test manual save and reset."""
    open_class(client)
    client.post("/api/events", json={"day": "Monday", "startIndex": 0, "endIndex": 0, "subject": "Math"})
    assert client.post("/api/schedule/save").get_json()["saved"] is True
    assert len(client.post("/api/schedule/reset").get_json()["events"]) == 0


def test_autosave_toggle(client):
    """Test turning autosave off."""
    data = client.post("/api/schedule/autosave", json={"enabled": False}).get_json()
    assert data["enabled"] is False


def test_snapshots(client):
    """Test saving, listing, loading and deleting snapshots."""
    open_class(client)
    client.post("/api/events", json={"day": "Monday", "startIndex": 0, "endIndex": 0, "subject": "Math"})
    snap = client.post("/api/snapshots", json={"name": "Draft 1"}).get_json()
    assert snap["name"] == "Draft 1"
    listing = client.get("/api/snapshots").get_json()
    assert listing[0]["eventCount"] == 1

    open_class(client, "Grade 12 - ABM")
    loaded = client.post(f"/api/snapshots/{snap['id']}/load").get_json()
    assert loaded["meta"]["selectedClass"] == "Grade 11 - STEM A"
    assert len(loaded["events"]) == 1
    assert client.delete(f"/api/snapshots/{snap['id']}").status_code == 200
    assert client.delete(f"/api/snapshots/{snap['id']}").status_code == 404


def test_import_csv(client):
    """Test uploading a CSV file."""
    open_class(client)
    csv = b"days,start,end,subject\nMonday,7:45 AM,8:45 AM,Math\nFriday,bad,9:00 AM,Art\n"
    response = client.post("/api/import", data={"file": (io.BytesIO(csv), "events.csv")},
                           content_type="multipart/form-data")
    body = response.get_json()
    assert body["created"] == 1
    assert body["errors"][0]["row"] == 2


def test_import_rejects_other_files(client):
    """Test only CSV and Excel uploads are accepted."""
    response = client.post("/api/import", data={"file": (io.BytesIO(b"x"), "events.txt")},
                           content_type="multipart/form-data")
    assert response.status_code == 400


@pytest.mark.parametrize("fmt, mimetype", [
    ("csv", "text/csv"),
    ("pdf", "application/pdf"),
    ("html", "text/html"),
    ("ics", "text/calendar"),
])
def test_exports(client, fmt, mimetype):
    """Test every export format downloads."""
    open_class(client)
    client.post("/api/events", json={"day": "Monday", "startIndex": 0, "endIndex": 0, "subject": "Math"})
    response = client.get(f"/export/{fmt}?start=2025-08-11&end=2025-12-19")
    assert response.status_code == 200
    assert response.mimetype == mimetype
    assert len(response.data) > 0


def test_unknown_export(client):
    """Test unsupported export formats."""
    assert client.get("/export/docx").status_code == 400


def test_reports(client):
    """Test report endpoints."""
    open_class(client)
    client.post("/api/events", json={
        "day": "Monday", "startIndex": 0, "endIndex": 1, "subject": "Math", "teacher": "Ms. Cruz",
    })
    rooms = client.get("/api/reports/room").get_json()
    assert rooms == [{"room": "TBD", "total_minutes": 120, "sessions": 1}]
    efficiency = client.get("/api/reports/efficiency?day=Monday").get_json()
    assert efficiency["teachers"][0]["teacher"] == "Ms. Cruz"
    assert client.get("/api/reports/weather").status_code == 400
