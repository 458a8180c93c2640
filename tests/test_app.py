import json

import pytest
from bs4 import BeautifulSoup

import alamo_showtimes as am
from conftest import T0


@pytest.fixture
def schedule_file(tmp_path, monkeypatch, document):
    path = tmp_path / "current_schedule.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    monkeypatch.setattr(am, "SCHEDULE_SOURCE", str(path))
    return path


@pytest.fixture
def client():
    am.app.config["TESTING"] = True
    with am.app.test_client() as c:
        yield c


def pinned_view(source, variant="classic"):
    view = am.ScheduleView(str(source), am.VARIANTS[variant], clock=lambda: T0)
    am._views[variant] = view
    return view


def test_index_loads_and_renders(client, schedule_file):
    pinned_view(schedule_file)
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.headers["Cache-Control"].startswith("no-store")
    soup = BeautifulSoup(resp.data, "html.parser")
    assert soup.select_one("#toggleButton").get_text() == "Show Next Hour Only"
    assert soup.select_one("#timeRange").get_text() == "Showings between 07/01 18:00 and 07/01 22:00"
    assert [td.get_text() for td in soup.select("#showtimes .movie-cell")] == ["Dune", "Nope"]
    assert soup.select_one("#captionsButton") is None
    assert soup.select_one("#timeFilterInput") is None


def test_index_captions_variant_has_extra_controls(client, schedule_file):
    pinned_view(schedule_file, "captions")
    soup = BeautifulSoup(client.get("/?variant=captions").data, "html.parser")

    assert soup.select_one("#captionsButton").get_text() == "Show Open Caption Only"
    assert soup.select_one("#timeFilterInput")["value"] == "2"
    assert len(soup.select("#showtimes .card")) == 2


def test_index_shows_error_when_schedule_missing(client, tmp_path, monkeypatch):
    monkeypatch.setattr(am, "SCHEDULE_SOURCE", str(tmp_path / "missing.json"))
    resp = client.get("/")

    soup = BeautifulSoup(resp.data, "html.parser")
    assert soup.select_one("#showtimes .error") is not None
    assert soup.select_one("#showtimes table") is None
    assert am._views["classic"].document is None


def test_unknown_variant_falls_back_to_classic(client, schedule_file):
    client.get("/?variant=bogus")
    assert list(am._views) == ["classic"]


def test_api_view_next_hour(client, schedule_file):
    pinned_view(schedule_file)
    client.get("/")

    data = client.get("/api/view?next=1").get_json()
    assert data["loaded"] is True
    assert data["count"] == 1
    assert data["state"] == {"next": True, "hours": 2, "q": "", "captions": False}
    assert data["toggle_label"] == "Show All Showtimes"
    assert "Dune" in data["showtimes_html"]
    assert "Nope" not in data["showtimes_html"]


def test_api_view_search(client, schedule_file):
    pinned_view(schedule_file)
    client.get("/")

    data = client.get("/api/view?q=NoPe").get_json()
    assert data["state"]["q"] == "nope"
    assert data["count"] == 1
    assert "Nope" in data["showtimes_html"]


def test_api_view_keeps_prior_window_on_bad_input(client, schedule_file):
    pinned_view(schedule_file, "captions")
    client.get("/?variant=captions")

    data = client.get("/api/view?variant=captions&next=1&hours=4&hours_input=abc").get_json()
    assert data["state"]["hours"] == 4
    assert data["count"] == 2
    assert data["toggle_label"] == "Show All Showtimes"

    data = client.get("/api/view?variant=captions&next=0&hours=4&hours_input=1").get_json()
    assert data["state"]["hours"] == 1
    assert data["toggle_label"] == "Show Next Hour Only"


def test_api_view_captions_filter(client, schedule_file):
    pinned_view(schedule_file, "captions")
    client.get("/?variant=captions")

    data = client.get("/api/view?variant=captions&captions=1").get_json()
    assert data["count"] == 1
    assert data["captions_label"] == "Show All Formats"
    assert "CC" in data["showtimes_html"]


def test_api_view_before_load(client, schedule_file):
    resp = client.get("/api/view?next=1")
    data = resp.get_json()

    assert resp.headers["Pragma"] == "no-cache"
    assert data["loaded"] is False
    assert data["count"] == 0
    assert data["showtimes_html"] == ""
    assert data["toggle_label"] == ""


def test_api_view_after_failed_load(client, tmp_path, monkeypatch):
    monkeypatch.setattr(am, "SCHEDULE_SOURCE", str(tmp_path / "missing.json"))
    client.get("/")

    data = client.get("/api/view").get_json()
    assert data["loaded"] is False
    assert data["showtimes_html"] == am.LOAD_ERROR_HTML


def test_schedule_file_served_without_cache(client, schedule_file, document):
    resp = client.get("/current_schedule.json")

    assert resp.status_code == 200
    assert resp.mimetype == "application/json"
    assert resp.headers["Cache-Control"].startswith("no-store")
    assert json.loads(resp.data) == document


def test_schedule_file_missing(client, tmp_path, monkeypatch):
    monkeypatch.setattr(am, "SCHEDULE_SOURCE", str(tmp_path / "missing.json"))
    resp = client.get("/current_schedule.json")

    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_index_renders_default_state_not_shared_view_state(client, schedule_file):
    view = pinned_view(schedule_file)
    view.state = am.toggle_filter(am.handle_search(view.state, "zzz"))
    resp = client.get("/")

    soup = BeautifulSoup(resp.data, "html.parser")
    assert soup.select_one("#toggleButton").get_text() == "Show Next Hour Only"
    assert [td.get_text() for td in soup.select("#showtimes .movie-cell")] == ["Dune", "Nope"]


def test_index_after_failed_reload_has_no_stale_range(client, schedule_file):
    pinned_view(schedule_file)
    client.get("/")
    schedule_file.unlink()

    soup = BeautifulSoup(client.get("/").data, "html.parser")
    assert soup.select_one("#timeRange").get_text() == ""
    assert soup.select_one("#showtimes .error") is not None


def test_page_script_ignores_superseded_responses(client, schedule_file):
    pinned_view(schedule_file, "captions")
    page = client.get("/?variant=captions").get_data(as_text=True)

    assert "const seq = ++requestSeq;" in page
    assert "if (seq !== requestSeq) return;" in page
    assert "params.set('hours_input', timeFilterInput.value)" in page


def test_schedule_file_served_as_raw_bytes(client, tmp_path, monkeypatch):
    path = tmp_path / "current_schedule.json"
    path.write_bytes(b'{"showtimes": ["\xff"]}')
    monkeypatch.setattr(am, "SCHEDULE_SOURCE", str(path))

    resp = client.get("/current_schedule.json")
    assert resp.status_code == 200
    assert resp.data == b'{"showtimes": ["\xff"]}'
