"""Tests for the command line interface."""

import pytest

from schedule_builder import config
from schedule_builder.main import main


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(config, "DATABASE_URL", None)
    return tmp_path / "data"


def run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_slots(capsys):
    """Test listing SHS rows."""
    assert run(["slots"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 11
    assert "[Morning Recess]" in out[2]


def test_import_show_export_report(tmp_path, capsys):
    """Test importing a CSV then reading it back through the other commands."""
    source = tmp_path / "events.csv"
    source.write_text(
        "days,start,end,subject,teacher,room\n"
        "Mon-Wed,7:45 AM,8:45 AM,Math,Ms. Cruz,101\n"
        "Friday,9:45 AM,10:00 AM,Homeroom,,\n"
        "Monday,9:45 AM,10:00 AM,Art,,\n"
    )
    key = ["--class", "STEM A", "--school-year", "2025-2026"]
    assert run(["import", str(source)] + key) == 0
    out = capsys.readouterr().out
    assert "Row 3:" in out
    assert "Imported 2 event(s)" in out

    assert run(["show"] + key) == 0
    out = capsys.readouterr().out
    assert "Math / Ms. Cruz / 101" in out
    assert "2 event(s)" in out

    output = tmp_path / "schedule.html"
    assert run(["export", "html", "-o", str(output)] + key) == 0
    assert "Homeroom" in output.read_text(encoding="utf-8")

    assert run(["report", "room"] + key) == 0
    assert "101" in capsys.readouterr().out


def test_import_dry_run_saves_nothing(tmp_path, capsys):
    """Test --dry-run validates without writing."""
    source = tmp_path / "events.csv"
    source.write_text("days,start,end,subject\nMonday,7:45 AM,8:45 AM,Math\n")
    assert run(["import", str(source), "--dry-run", "--school-year", "2025-2026"]) == 0
    capsys.readouterr()
    assert run(["show", "--school-year", "2025-2026"]) == 0
    assert "0 event(s)" in capsys.readouterr().out


def test_bad_school_year(capsys):
    """Test invalid arguments exit with an error."""
    assert run(["show", "--school-year", "2025"]) == 2
    assert "Error:" in capsys.readouterr().out
