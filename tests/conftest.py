from datetime import datetime, timedelta

import pytest

import alamo_showtimes as am

T0 = datetime(2025, 7, 1, 18, 0, tzinfo=am.LOCAL_TZ)


def at(minutes: float) -> str:
    return (T0 + timedelta(minutes=minutes)).isoformat()


def make_document(showtimes, hours: float = 4) -> dict:
    return {
        "time_range": {"start": T0.isoformat(), "end": (T0 + timedelta(hours=hours)).isoformat()},
        "showtimes": showtimes,
    }


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeSession:
    """Stands in for requests.Session; records every get()."""

    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def document():
    return make_document([
        {"show_time": at(10), "movie": "Dune", "theater": "A", "session_id": "s1", "open_caption": False},
        {"show_time": at(180), "movie": "Nope", "theater": "B", "session_id": "s2", "open_caption": True},
    ])


@pytest.fixture
def busy_document():
    return make_document([
        {"show_time": at(-20), "movie": "Alien", "theater": "Brooklyn", "open_caption": True},
        {"show_time": at(0), "movie": "Dune", "theater": "Brooklyn", "open_caption": False},
        {"show_time": at(20), "movie": "Dune: Part Two", "theater": "Lower Manhattan", "open_caption": True},
        {"show_time": at(45), "movie": "Nope", "theater": "Staten Island", "open_caption": False},
        {"show_time": at(60), "movie": "Alien", "theater": "Lower Manhattan", "open_caption": False},
        {"show_time": at(61), "movie": "Heat", "theater": "Brooklyn", "open_caption": True},
        {"show_time": at(150), "movie": "DUNE", "theater": "Yonkers", "open_caption": True},
        {"show_time": at(300), "movie": "Heat", "theater": "Yonkers", "open_caption": False},
    ])


@pytest.fixture(autouse=True)
def _reset_views():
    am._views.clear()
    yield
    am._views.clear()
