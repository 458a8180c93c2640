import json

import pytest

import alamo_showtimes as am
from conftest import T0


@pytest.fixture
def schedule_path(tmp_path, monkeypatch, busy_document):
    path = tmp_path / "current_schedule.json"
    path.write_text(json.dumps(busy_document), encoding="utf-8")
    monkeypatch.setattr(am, "now_local", lambda: T0)
    return str(path)


def test_text_output_next_hour(schedule_path, capsys):
    assert am.main([schedule_path, "--next-hour"]) == 0
    out = capsys.readouterr().out

    assert "Show Time" in out
    assert "Showings between 07/01 18:00 and 07/01 19:00" in out
    body = [line for line in out.splitlines() if line.startswith(" ") and "|" in line and "Show Time" not in line]
    assert len(body) == 4
    assert "Heat" not in out


def test_json_output_with_filters(schedule_path, capsys):
    argv = [schedule_path, "--variant", "captions", "--output", "json", "--next-hour", "--hours", "3", "--captions"]
    assert am.main(argv) == 0
    payload = json.loads(capsys.readouterr().out)

    assert [s["movie"] for s in payload["showtimes"]] == ["Dune: Part Two", "Heat", "DUNE"]
    assert [s["minutes_until"] for s in payload["showtimes"]] == [20, 61, 150]


def test_html_output_with_search(schedule_path, capsys):
    assert am.main([schedule_path, "--output", "html", "--search", "HEAT"]) == 0
    out = capsys.readouterr().out

    # header + the Heat inside the declared range; the 23:00 one is past its end
    assert out.count("<tr>") == 2
    assert "Brooklyn" in out
    assert "Yonkers" not in out


def test_invalid_hours_are_ignored(schedule_path, capsys):
    assert am.main([schedule_path, "--variant", "captions", "--next-hour", "--hours", "zero"]) == 0
    assert "Showings between 07/01 18:00 and 07/01 20:00" in capsys.readouterr().out


def test_load_failure_exits_nonzero(tmp_path, capsys):
    assert am.main([str(tmp_path / "missing.json")]) == 1
    assert "Error loading schedule" in capsys.readouterr().err
