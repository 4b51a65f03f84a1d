"""
Flask web application for the School Schedule Builder.

This is the JSON API behind the schedule builder page. It provides:
- Schedule configuration (schedule types, school years, slot rows)
- Drag-selection previews and event create/edit/delete
- Manual save, reset and autosave control
- Named snapshots
- CSV/Excel import, and CSV/Excel/HTML/PDF/iCalendar export
- Usage reports
"""

import io
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, send_file, session
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from . import config
from .errors import (
    BreakSlotConflict, EventNotFound, IncompleteForm,
    ParseFailure, PersistenceFailure, ScheduleError,
)
from .export import (
    ICalendarGenerator, events_table, export_filename, to_csv, to_pdf, to_print_html, to_xlsx,
)
from .forms import EventForm, partial_patch
from .importer import import_into, read_events
from .library import ScheduleLibrary
from .models import (
    CELL_ORIGIN, CellPlan, ScheduleKey, serialize_datetime, serialize_event, serialize_slot,
)
from .persistence import get_repository
from .planner import plan_grid
from .reports import expand_placements, report_dataframe, teacher_efficiency
from .selection import Selection, compute_candidate_events, day_range
from .session import ScheduleSession

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'csv', 'xlsx'}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
TERM_WEEKS = 18  # default semester length for calendar export

EXPORT_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
    "html": "text/html",
    "ics": "text/calendar",
}


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def serialize_cell(cell: CellPlan) -> Dict[str, Any]:
    result = {"kind": cell.kind, "day": cell.day, "slotIndex": cell.slot_index}
    if cell.event is not None:
        result["eventId"] = cell.event.id
    if cell.kind == CELL_ORIGIN:
        result["rowSpan"] = cell.row_span
        result["colSpan"] = cell.col_span
    if cell.label:
        result["label"] = cell.label
    return result


def current_actor() -> str:
    """Identity recorded on edits: X-Actor header, then session, then "admin"."""
    return request.headers.get("X-Actor") or session.get("actor") or "admin"


def _bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes", "on")
    return bool(value)


def create_app(repository=None, session_options: Optional[Dict[str, Any]] = None) -> Flask:
    """Create the Flask application.

    Args:
        repository: Schedule repository; defaults to ``get_repository()``
        session_options: Extra keyword arguments for ScheduleSession
            (e.g. ``autosave_enabled=False`` in tests)

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = MAX_FILE_SIZE

    repository = repository or get_repository()
    builder = ScheduleSession(repository, **(session_options or {}))
    library = ScheduleLibrary(repository)
    app.extensions["schedule_session"] = builder

    def schedule_payload() -> Dict[str, Any]:
        store = builder.store
        plan = plan_grid(store.events, store.slots, store.weekdays, store.break_overrides)
        return {
            "meta": {
                "selectedClass": builder.key.class_id,
                "scheduleType": builder.schedule_type,
                "schoolYear": builder.key.school_year,
                "semester": builder.key.semester,
                "halfHourEnabled": builder.half_hour_enabled,
                "splitHours": builder.split_hours,
            },
            "weekdays": store.weekdays,
            "slots": [serialize_slot(s) for s in store.slots],
            "events": [serialize_event(e) for e in store.events],
            "grid": [[serialize_cell(c) for c in row] for row in plan],
            "autosave": autosave_payload(),
        }

    def autosave_payload() -> Dict[str, Any]:
        autosave = builder.autosave
        return {
            "enabled": autosave.enabled,
            "status": autosave.status,
            "savedAt": serialize_datetime(autosave.saved_at),
            "error": autosave.last_error,
        }

    def selection_from(data: Dict[str, Any]) -> Selection:
        weekdays = builder.store.weekdays
        days = data.get("days")
        if not days:
            start_day = data.get("startDay") or data.get("day")
            if not start_day:
                raise IncompleteForm("A day is required", ["days"])
            days = day_range(weekdays, start_day, data.get("endDay") or start_day)
        try:
            return Selection(list(days), int(data["startIndex"]), int(data["endIndex"]))
        except (KeyError, TypeError, ValueError):
            raise IncompleteForm("startIndex and endIndex are required", ["startIndex", "endIndex"])

    # -- error handling ----------------------------------------------------

    @app.errorhandler(ScheduleError)
    def schedule_error(error):
        status = 400
        if isinstance(error, EventNotFound):
            status = 404
        elif isinstance(error, BreakSlotConflict):
            status = 409
        elif isinstance(error, PersistenceFailure):
            status = 500
        body = {"error": str(error), "kind": error.kind}
        if isinstance(error, BreakSlotConflict):
            body["days"] = error.days
        if isinstance(error, IncompleteForm):
            body["missing"] = error.missing
        return jsonify(body), status

    @app.errorhandler(ValueError)
    def value_error(error):
        return jsonify({"error": str(error), "kind": "invalid_request"}), 400

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(error):
        return jsonify({"error": "File too large. Maximum size is 5MB.", "kind": "too_large"}), 413

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found", "kind": "not_found"}), 404

    # -- configuration -----------------------------------------------------

    @app.route('/api/config')
    def api_config():
        """Schedule types, school years and semesters for the selectors."""
        return jsonify({
            "scheduleTypes": [
                {
                    "name": cfg.name,
                    "title": cfg.title,
                    "weekdays": cfg.weekdays,
                    "supportsHalfHour": cfg.supports_half_hour,
                    "hourOptions": config.hour_options(cfg.name) if cfg.supports_half_hour else [],
                }
                for cfg in config.SCHEDULE_TYPES.values()
            ],
            "schoolYears": config.school_year_options(),
            "defaultSchoolYear": config.default_school_year(),
            "semesters": list(config.SEMESTERS),
        })

    @app.route('/api/slots')
    def api_slots():
        return jsonify({
            "weekdays": builder.store.weekdays,
            "slots": [serialize_slot(s) for s in builder.store.slots],
        })

    @app.route('/api/schedule')
    def api_schedule():
        """Current events plus the planned grid."""
        return jsonify(schedule_payload())

    @app.route('/api/schedule/open', methods=['POST'])
    def api_open():
        """Switch class, school year, semester or schedule type."""
        data = request.get_json(silent=True) or {}
        school_year = data.get("schoolYear", builder.key.school_year)
        semester = data.get("semester", builder.key.semester)
        config.validate_school_year(school_year)
        config.validate_semester(semester)
        key = ScheduleKey(data.get("classId", builder.key.class_id), school_year, semester)
        builder.switch(key, data.get("scheduleType"))
        return jsonify(schedule_payload())

    @app.route('/api/schedule/slots', methods=['POST'])
    def api_configure_slots():
        data = request.get_json(silent=True) or {}
        builder.configure_slots(_bool(data.get("halfHourEnabled")), data.get("splitHours") or [])
        return jsonify(schedule_payload())

    # -- events ------------------------------------------------------------

    @app.route('/api/selection', methods=['POST'])
    def api_selection():
        """Preview what a finished drag selection would do.

        Returns the existing event when the selection lies inside one (the
        dialog opens in edit mode), otherwise the candidate drafts.
        """
        data = request.get_json(silent=True) or {}
        selection = selection_from(data)
        existing = builder.store.find_covering(selection.days, selection.lo, selection.hi)
        if existing is not None:
            return jsonify({"mode": "edit", "event": serialize_event(existing)})
        result = compute_candidate_events(
            selection, builder.store.slots, builder.store.weekdays,
            apply_to_all=_bool(data.get("applyToAll"), True),
            break_overrides=builder.store.break_overrides,
        )
        return jsonify({
            "mode": "create",
            "drafts": [{"days": d.days, "start": d.start, "end": d.end} for d in result.drafts],
            "rejectedDays": result.rejected_days,
        })

    @app.route('/api/cells/<day>/<int:slot_index>')
    def api_cell(day, slot_index):
        """Event under a clicked grid cell, with whether the block starts there."""
        if day not in builder.store.weekdays or slot_index >= len(builder.store.slots):
            raise ValueError(f"No grid cell {day} #{slot_index}")
        event = builder.store.event_starting_at(day, slot_index)
        position = "origin"
        if event is None:
            event = builder.store.event_covering(day, slot_index)
            position = "covered" if event is not None else "empty"
        return jsonify({
            "day": day,
            "slotIndex": slot_index,
            "position": position,
            "event": serialize_event(event) if event is not None else None,
        })

    @app.route('/api/events', methods=['POST'])
    def api_create_event():
        """Create events from the dialog or straight from a selection."""
        data = request.get_json(silent=True) or {}
        actor = current_actor()
        apply_to_all = _bool(data.get("applyToAll"), True)
        if "startIndex" in data:
            created, rejected = builder.store.create_from_selection(
                selection_from(data),
                subject=(data.get("subject") or "").strip(),
                teacher=(data.get("teacher") or "").strip(),
                room=(data.get("room") or "").strip(),
                apply_to_all=apply_to_all,
                actor=actor,
            )
        else:
            draft = EventForm.from_dict(data).to_draft()
            created, rejected = builder.store.create_from_draft(draft, apply_to_all, actor)
        return jsonify({
            "created": [serialize_event(e) for e in created],
            "rejectedDays": rejected,
            "autosave": autosave_payload(),
        }), 201 if created else 200

    @app.route('/api/events/<event_id>', methods=['GET'])
    def api_get_event(event_id):
        return jsonify(serialize_event(builder.store.get(event_id)))

    @app.route('/api/events/<event_id>', methods=['PUT', 'PATCH'])
    def api_edit_event(event_id):
        """Edit an event; PUT replaces all form fields, PATCH only those given."""
        data = request.get_json(silent=True) or {}
        if request.method == 'PUT':
            patch = EventForm.from_dict(data).to_patch()
        else:
            patch = partial_patch(data)
        event = builder.store.apply_edit(event_id, patch, current_actor())
        return jsonify(serialize_event(event))

    @app.route('/api/events/<event_id>', methods=['DELETE'])
    def api_delete_event(event_id):
        builder.store.delete(event_id)
        return jsonify({"deleted": event_id, "autosave": autosave_payload()})

    # -- persistence -------------------------------------------------------

    @app.route('/api/schedule/save', methods=['POST'])
    def api_save():
        """Manual save, bypassing the autosave delay."""
        ok = builder.save()
        return jsonify({"saved": ok, "autosave": autosave_payload()}), 200 if ok else 500

    @app.route('/api/schedule/reset', methods=['POST'])
    def api_reset():
        builder.reset()
        return jsonify(schedule_payload())

    @app.route('/api/schedule/autosave', methods=['POST'])
    def api_autosave():
        data = request.get_json(silent=True) or {}
        builder.autosave.set_enabled(_bool(data.get("enabled"), True))
        return jsonify(autosave_payload())

    @app.route('/api/snapshots', methods=['GET'])
    def api_list_snapshots():
        return jsonify([
            {
                "id": s.id,
                "name": s.name,
                "scheduleType": s.schedule_type,
                "classId": s.class_id,
                "schoolYear": s.school_year,
                "semester": s.semester,
                "eventCount": len(s.events),
                "savedAt": serialize_datetime(s.saved_at),
            }
            for s in library.list()
        ])

    @app.route('/api/snapshots', methods=['POST'])
    def api_save_snapshot():
        data = request.get_json(silent=True) or {}
        snapshot = library.save_snapshot(builder, data.get("name"))
        return jsonify({"id": snapshot.id, "name": snapshot.name}), 201

    @app.route('/api/snapshots/<snapshot_id>/load', methods=['POST'])
    def api_load_snapshot(snapshot_id):
        snapshot = library.load_into(builder, snapshot_id)
        if snapshot is None:
            return jsonify({"error": "Snapshot not found", "kind": "not_found"}), 404
        return jsonify(schedule_payload())

    @app.route('/api/snapshots/<snapshot_id>', methods=['DELETE'])
    def api_delete_snapshot(snapshot_id):
        if not library.delete(snapshot_id):
            return jsonify({"error": "Snapshot not found", "kind": "not_found"}), 404
        return jsonify({"deleted": snapshot_id})

    # -- import / export ---------------------------------------------------

    @app.route('/api/import', methods=['POST'])
    def api_import():
        """Import events from an uploaded CSV or Excel file."""
        if 'file' not in request.files:
            raise ParseFailure("No file selected. Please choose a CSV or Excel file.")
        upload = request.files['file']
        if upload.filename == '' or not allowed_file(upload.filename):
            raise ParseFailure("Invalid file type. Please upload a CSV or Excel file.")
        filename = secure_filename(upload.filename)
        fmt = filename.rsplit('.', 1)[1].lower()
        result = read_events(io.BytesIO(upload.read()), fmt)
        import_into(builder.store, result, current_actor())
        logger.info("Imported %d events from %s (%d duplicates, %d bad rows)",
                    len(result.created), filename, result.duplicates, len(result.errors))
        return jsonify({
            "created": len(result.created),
            "duplicates": result.duplicates,
            "errors": [{"row": row, "error": message} for row, message in result.errors],
        })

    @app.route('/export/<fmt>')
    def export(fmt: str):
        """Download the current schedule in the requested format."""
        if fmt not in EXPORT_TYPES:
            return jsonify({"error": f"Unsupported export format: {fmt}", "kind": "invalid_request"}), 400
        store = builder.store
        meta = builder.meta
        plan = plan_grid(store.events, store.slots, store.weekdays, store.break_overrides)
        if fmt == "csv":
            payload = to_csv(plan, store.slots, store.weekdays).encode("utf-8")
        elif fmt == "xlsx":
            payload = to_xlsx(plan, store.slots, store.weekdays, store.events)
        elif fmt == "pdf":
            payload = to_pdf(plan, store.slots, store.weekdays, meta)
        elif fmt == "html":
            payload = to_print_html(plan, store.slots, store.weekdays, meta).encode("utf-8")
        else:
            term_start = date.fromisoformat(request.args.get("start") or date.today().isoformat())
            if request.args.get("end"):
                term_end = date.fromisoformat(request.args["end"])
            else:
                term_end = term_start + timedelta(weeks=TERM_WEEKS)
            generator = ICalendarGenerator(request.args.get("tz", "Asia/Manila"))
            payload = generator.to_ics(generator.generate_calendar(store.events, term_start, term_end, meta))
        return send_file(
            io.BytesIO(payload),
            mimetype=EXPORT_TYPES[fmt],
            as_attachment=fmt != "html",
            download_name=export_filename(meta, fmt),
        )

    @app.route('/export/events.csv')
    def export_events():
        """Event list in the layout the importer reads."""
        payload = events_table(builder.store.events).to_csv(index=False).encode("utf-8")
        return send_file(io.BytesIO(payload), mimetype="text/csv", as_attachment=True,
                         download_name=export_filename(builder.meta, "events.csv"))

    @app.route('/api/reports/<kind>')
    def api_report(kind: str):
        """Class usage, room allocation or teacher efficiency for the current schedule."""
        placements = expand_placements(builder.store.events, builder.key.class_id)
        day = request.args.get("day")
        if kind == "efficiency":
            return jsonify(teacher_efficiency(placements, day))
        frame = report_dataframe(kind, placements, day)
        return jsonify(frame.to_dict(orient="records"))

    return app
