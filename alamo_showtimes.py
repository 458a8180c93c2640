import argparse
import json
import logging
import math
import os
import socket
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union
from zoneinfo import ZoneInfo

import requests
from flask import Flask, jsonify, render_template_string, request, Response
from markupsafe import escape

logger = logging.getLogger(__name__)


# ------------ CONFIG ------------

SCHEDULE_SOURCE = os.environ.get("ALAMO_SCHEDULE_SOURCE", "current_schedule.json")

# Producer writes naive show times in the cinema's local time
LOCAL_TZ = ZoneInfo(os.environ.get("ALAMO_TIMEZONE", "America/New_York"))

FETCH_TIMEOUT_SECONDS = float(os.environ.get("ALAMO_FETCH_TIMEOUT", "15"))

DEFAULT_WINDOW_HOURS = 2

# Urgency buckets, in minutes until the show starts
STARTING_SOON_MINUTES = 35
UPCOMING_MINUTES = 60

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
}

LOAD_ERROR_HTML = (
    '<div class="error">'
    "<strong>Error:</strong> Could not load schedule. "
    "Make sure current_schedule.json exists in the same directory."
    "</div>"
)

TEXT_ROW = "{:^25} | {:<40} | {:<25}"
TEXT_COUNTDOWN = " | {:>10}"


class ViewConfig(NamedTuple):
    """
    Which flavour of the schedule view to render.

    layout            "table" (date + time rows) or "cards" (time-of-day cards)
    show_countdown    add the minutes-until column
    show_urgency      classify rows as starting-soon / upcoming
    show_captions     caption badge + the open-caption filter toggle
    show_sessions     tag rows with their session id
    configurable_window  next-window size comes from the numeric input (else 1 hour)
    hide_past         never show past showtimes, even in "show all" mode
    cache_bust        fetch with a ?t= parameter and no-cache headers
    """
    layout: str = "table"
    show_countdown: bool = False
    show_urgency: bool = False
    show_captions: bool = False
    show_sessions: bool = False
    configurable_window: bool = False
    hide_past: bool = False
    cache_bust: bool = False


VARIANTS: Dict[str, ViewConfig] = {
    "classic": ViewConfig(),
    "captions": ViewConfig(
        layout="cards",
        show_countdown=True,
        show_urgency=True,
        show_captions=True,
        configurable_window=True,
        hide_past=True,
        cache_bust=True,
    ),
    "sessions": ViewConfig(show_countdown=True, show_sessions=True),
}

DEFAULT_VARIANT = "classic"


# ------------ TIME ------------

def now_local() -> datetime:
    return datetime.now(LOCAL_TZ)


def parse_iso(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Offsets (including a trailing "Z") are honoured; naive values are taken to be
    in LOCAL_TZ so they compare correctly against the offset-carrying time_range.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=LOCAL_TZ)
    return dt


def format_date_time(value: Union[str, datetime]) -> str:
    return parse_iso(value).astimezone(LOCAL_TZ).strftime("%m/%d %H:%M")


def format_time_of_day(value: Union[str, datetime]) -> str:
    return parse_iso(value).astimezone(LOCAL_TZ).strftime("%I:%M %p").lstrip("0")


def round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; -0.5 must land on 0 and 1.5 on 2
    return int(math.floor(x + 0.5))


def minutes_until(show_time: datetime, now: datetime) -> int:
    return round_half_up((show_time - now).total_seconds() / 60)


def minutes_label(minutes: int) -> str:
    if minutes >= 0:
        return f"{minutes}m"
    return f"{-minutes}m ago"


def urgency_for(minutes: int) -> Optional[str]:
    if 0 <= minutes < STARTING_SOON_MINUTES:
        return "starting-soon"
    if STARTING_SOON_MINUTES <= minutes <= UPCOMING_MINUTES:
        return "upcoming"
    return None


# ------------ FILTER STATE ------------

class FilterState(NamedTuple):
    show_only_next_hour: bool = False
    time_filter_hours: float = DEFAULT_WINDOW_HOURS
    search_query: str = ""
    show_only_captions: bool = False


def toggle_filter(state: FilterState) -> FilterState:
    return state._replace(show_only_next_hour=not state.show_only_next_hour)


def toggle_captions_filter(state: FilterState) -> FilterState:
    return state._replace(show_only_captions=not state.show_only_captions)


def handle_search(state: FilterState, text: Optional[str]) -> FilterState:
    return state._replace(search_query=(text or "").lower())


def handle_time_filter_change(state: FilterState, raw: Union[str, float, None]) -> FilterState:
    """
    Accept a new window size. Anything that isn't a positive, finite number
    leaves the previous value in place.
    """
    try:
        hours = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return state
    if not math.isfinite(hours) or hours <= 0:
        return state
    return state._replace(time_filter_hours=hours)


def state_to_dict(state: FilterState) -> dict:
    return {
        "next": state.show_only_next_hour,
        "hours": state.time_filter_hours,
        "q": state.search_query,
        "captions": state.show_only_captions,
    }


# ------------ FILTERING ------------

def window_hours(state: FilterState, config: ViewConfig) -> float:
    return state.time_filter_hours if config.configurable_window else 1


def active_window(document: dict, state: FilterState, now: datetime, config: ViewConfig) -> Tuple[datetime, datetime]:
    if state.show_only_next_hour:
        return now, now + timedelta(hours=window_hours(state, config))
    time_range = document["time_range"]
    return parse_iso(time_range["start"]), parse_iso(time_range["end"])


def showtime_predicates(
    document: dict,
    state: FilterState,
    now: datetime,
    config: ViewConfig,
) -> List[Callable[[dict], bool]]:
    """
    The active filters as independent predicates. A showtime is shown iff it
    satisfies all of them, so the order they are applied in doesn't matter.
    """
    start, end = active_window(document, state, now, config)

    def in_window(showtime: dict) -> bool:
        return start <= parse_iso(showtime["show_time"]) <= end

    predicates = [in_window]

    if config.hide_past and not state.show_only_next_hour:
        predicates.append(lambda s: parse_iso(s["show_time"]) >= now)

    if state.search_query:
        query = state.search_query.lower()
        predicates.append(lambda s: query in (s.get("movie") or "").lower())

    if state.show_only_captions:
        predicates.append(lambda s: s.get("open_caption") is True)

    return predicates


def filter_showtimes(document: dict, state: FilterState, now: datetime, config: ViewConfig) -> List[dict]:
    predicates = showtime_predicates(document, state, now, config)
    return [s for s in document["showtimes"] if all(p(s) for p in predicates)]


# ------------ DISPLAY FIELDS ------------

class ShowtimeRow(NamedTuple):
    showtime: dict
    show_time: datetime
    time_label: str
    minutes: int
    minutes_label: str
    urgency: Optional[str]


def derive_row(showtime: dict, now: datetime, config: ViewConfig) -> ShowtimeRow:
    show_time = parse_iso(showtime["show_time"])
    minutes = minutes_until(show_time, now)
    if config.layout == "cards":
        time_label = format_time_of_day(show_time)
    else:
        time_label = format_date_time(show_time)
    return ShowtimeRow(
        showtime=showtime,
        show_time=show_time,
        time_label=time_label,
        minutes=minutes,
        minutes_label=minutes_label(minutes),
        urgency=urgency_for(minutes) if config.show_urgency else None,
    )


def _hours_text(hours: float) -> str:
    return f"{hours:.2f}".rstrip("0").rstrip(".")


def toggle_label(state: FilterState, config: ViewConfig) -> str:
    if state.show_only_next_hour:
        return "Show All Showtimes"
    hours = window_hours(state, config)
    if hours == 1:
        return "Show Next Hour Only"
    return f"Show Next {_hours_text(hours)} Hours Only"


def captions_label(state: FilterState) -> str:
    return "Show All Formats" if state.show_only_captions else "Show Open Caption Only"


def no_results_message(state: FilterState, config: ViewConfig) -> str:
    if state.show_only_next_hour:
        hours = window_hours(state, config)
        scope = "in the next hour" if hours == 1 else f"in the next {_hours_text(hours)} hours"
    else:
        scope = "in this time range"

    kind = "open caption showtimes" if state.show_only_captions else "showtimes"

    if state.search_query:
        return f'No {kind} matching "{state.search_query}" {scope}.'
    return f"No {kind} available {scope}."


# ------------ MARKUP ------------

def _caption_badge(row: ShowtimeRow, config: ViewConfig) -> str:
    if config.show_captions and row.showtime.get("open_caption") is True:
        return ' <span class="caption-badge" title="Open caption">CC</span>'
    return ""


def render_table(rows: List[ShowtimeRow], config: ViewConfig) -> str:
    head = ["<th>Time</th>", "<th>Movie</th>", "<th>Location</th>"]
    if config.show_countdown:
        head.append("<th>Starts In</th>")

    body = []
    for row in rows:
        attrs = ""
        if config.show_sessions and row.showtime.get("session_id"):
            attrs += f' data-session-id="{escape(row.showtime["session_id"])}"'
        if row.urgency:
            attrs += f' class="{row.urgency}"'

        cells = [
            f'<td class="time-cell">{escape(row.time_label)}</td>',
            f'<td class="movie-cell">{escape(row.showtime.get("movie", ""))}{_caption_badge(row, config)}</td>',
            f'<td class="location-cell">{escape(row.showtime.get("theater", ""))}</td>',
        ]
        if config.show_countdown:
            cells.append(f'<td class="countdown-cell">{escape(row.minutes_label)}</td>')
        body.append(f"<tr{attrs}>{''.join(cells)}</tr>")

    return (
        "<table>"
        f"<thead><tr>{''.join(head)}</tr></thead>"
        f"<tbody>{''.join(body)}</tbody>"
        "</table>"
    )


URGENCY_TEXT = {
    "starting-soon": "Starting soon",
    "upcoming": "Upcoming",
}


def render_cards(rows: List[ShowtimeRow], config: ViewConfig) -> str:
    cards = []
    for row in rows:
        classes = "card"
        if row.urgency:
            classes += f" card-{row.urgency}"

        attrs = ""
        if config.show_sessions and row.showtime.get("session_id"):
            attrs = f' data-session-id="{escape(row.showtime["session_id"])}"'

        parts = [
            f'<div class="card-time">{escape(row.time_label)}</div>',
            f'<div class="card-title">{escape(row.showtime.get("movie", ""))}{_caption_badge(row, config)}</div>',
            f'<div class="card-theater">{escape(row.showtime.get("theater", ""))}</div>',
        ]
        if config.show_countdown:
            parts.append(f'<div class="card-countdown">{escape(row.minutes_label)}</div>')
        if row.urgency:
            parts.append(f'<div class="urgency-label urgency-{row.urgency}">{URGENCY_TEXT[row.urgency]}</div>')

        cards.append(f'<div class="{classes}"{attrs}>{"".join(parts)}</div>')

    return f'<div class="grid">{"".join(cards)}</div>'


# ------------ RENDER ------------

class ViewBinding:
    """Output sinks a render writes into (the page's labels and showtimes area)."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        self.toggle_label = ""
        self.captions_label = ""
        self.time_range = ""
        self.showtimes_html = ""

    def as_dict(self) -> dict:
        return {
            "toggle_label": self.toggle_label,
            "captions_label": self.captions_label,
            "time_range": self.time_range,
            "showtimes_html": self.showtimes_html,
        }


def display_schedule(
    document: Optional[dict],
    state: FilterState,
    binding: ViewBinding,
    now: Optional[datetime] = None,
    config: ViewConfig = VARIANTS[DEFAULT_VARIANT],
) -> Optional[List[ShowtimeRow]]:
    """
    Filter the document for `state` at time `now` and write the result into `binding`.

    Returns the rendered rows in document order, or None when no document is
    loaded yet (the binding is left alone in that case).
    """
    if document is None:
        return None
    if now is None:
        now = now_local()

    start, end = active_window(document, state, now, config)
    showtimes = filter_showtimes(document, state, now, config)

    binding.toggle_label = toggle_label(state, config)
    binding.captions_label = captions_label(state) if config.show_captions else ""
    binding.time_range = f"Showings between {format_date_time(start)} and {format_date_time(end)}"

    if not showtimes:
        binding.showtimes_html = f'<div class="loading">{escape(no_results_message(state, config))}</div>'
        return []

    rows = [derive_row(s, now, config) for s in showtimes]
    if config.layout == "cards":
        binding.showtimes_html = render_cards(rows, config)
    else:
        binding.showtimes_html = render_table(rows, config)
    return rows


def render_text(document: dict, state: FilterState, now: datetime, config: ViewConfig) -> str:
    """Plain-text table, the same shape the schedule producer prints."""
    start, end = active_window(document, state, now, config)
    rows = [derive_row(s, now, config) for s in filter_showtimes(document, state, now, config)]

    header = TEXT_ROW.format("Show Time", "Movie", "Theater")
    if config.show_countdown:
        header += TEXT_COUNTDOWN.format("Starts In")

    lines = [
        "",
        header,
        "-" * 94,
        "",
        f"Showings between {format_date_time(start)} and {format_date_time(end)}",
    ]

    for row in rows:
        movie = row.showtime.get("movie", "")
        if config.show_captions and row.showtime.get("open_caption") is True:
            movie += " [CC]"
        line = TEXT_ROW.format(format_date_time(row.show_time), movie, row.showtime.get("theater", ""))
        if config.show_countdown:
            line += TEXT_COUNTDOWN.format(row.minutes_label)
        lines.append(line)

    if not rows:
        lines.append(no_results_message(state, config))

    return "\n".join(lines)


def render_json(document: dict, state: FilterState, now: datetime, config: ViewConfig) -> str:
    start, end = active_window(document, state, now, config)
    showtimes = []
    for s in filter_showtimes(document, state, now, config):
        minutes = minutes_until(parse_iso(s["show_time"]), now)
        showtimes.append(dict(s, minutes_until=minutes, urgency=urgency_for(minutes)))

    payload = {
        "time_range": {"start": start.isoformat(), "end": end.isoformat()},
        "showtimes": showtimes,
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ------------ LOADER ------------

class ScheduleLoadFailure(Exception):
    """The schedule document could not be fetched, read, or parsed."""


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _fetch_url(url: str, cache_bust: bool, session: Optional[requests.Session]) -> str:
    params = {"t": int(time.time() * 1000)} if cache_bust else None
    headers = dict(NO_CACHE_HEADERS) if cache_bust else {}
    http = session or requests

    logger.debug("Fetching schedule from %s (cache_bust=%s)", url, cache_bust)
    try:
        resp = http.get(url, params=params, headers=headers, timeout=FETCH_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise ScheduleLoadFailure(f"{type(e).__name__}: {e}") from e

    if not resp.ok:
        raise ScheduleLoadFailure(f"HTTP {resp.status_code}")
    return resp.text


def fetch_schedule(
    source: str,
    cache_bust: bool = False,
    session: Optional[requests.Session] = None,
) -> dict:
    """
    Load a schedule document from a URL or a local path.

    Every failure (transport, HTTP status, unreadable file, bad JSON, wrong
    shape) comes out as ScheduleLoadFailure; callers don't distinguish causes.
    """
    if _is_url(source):
        body = _fetch_url(source, cache_bust, session)
    else:
        logger.debug("Reading schedule from %s", source)
        try:
            # bytes: json.loads decodes, so bad encodings fail as invalid JSON
            body = Path(source).read_bytes()
        except OSError as e:
            raise ScheduleLoadFailure(f"Failed to read file: {source}") from e

    try:
        document = json.loads(body)
    except ValueError as e:
        raise ScheduleLoadFailure("Schedule is not valid JSON") from e

    if (
        not isinstance(document, dict)
        or not isinstance(document.get("showtimes"), list)
        or not isinstance(document.get("time_range"), dict)
    ):
        raise ScheduleLoadFailure("Schedule is missing time_range or showtimes")

    return document


class ScheduleView:
    """
    One schedule page: the loaded document, the current filter state and the
    sinks renders are written into. Handlers swap in a new FilterState and re-render.
    """

    def __init__(
        self,
        source: str,
        config: ViewConfig = VARIANTS[DEFAULT_VARIANT],
        binding: Optional[ViewBinding] = None,
        clock: Callable[[], datetime] = now_local,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.source = source
        self.config = config
        self.binding = binding if binding is not None else ViewBinding()
        self.clock = clock
        self.session = session
        self.document: Optional[dict] = None
        self.load_error: Optional[str] = None
        self.state = FilterState()

    def load_schedule(self) -> bool:
        try:
            document = fetch_schedule(self.source, cache_bust=self.config.cache_bust, session=self.session)
        except ScheduleLoadFailure as e:
            logger.error("Error loading schedule from %s: %s", self.source, e)
            self.document = None
            self.load_error = str(e)
            self.binding.clear()
            self.binding.showtimes_html = LOAD_ERROR_HTML
            return False

        self.document = document
        self.load_error = None
        logger.info("Loaded %d showtimes from %s", len(document["showtimes"]), self.source)
        self.render()
        return True

    def render(self) -> Optional[List[ShowtimeRow]]:
        return display_schedule(self.document, self.state, self.binding, self.clock(), self.config)

    def toggle_filter(self) -> Optional[List[ShowtimeRow]]:
        self.state = toggle_filter(self.state)
        return self.render()

    def toggle_captions_filter(self) -> Optional[List[ShowtimeRow]]:
        self.state = toggle_captions_filter(self.state)
        return self.render()

    def handle_search(self, text: Optional[str]) -> Optional[List[ShowtimeRow]]:
        self.state = handle_search(self.state, text)
        return self.render()

    def handle_time_filter_change(self, raw: Union[str, float, None]) -> Optional[List[ShowtimeRow]]:
        self.state = handle_time_filter_change(self.state, raw)
        return self.render()


# ------------ FLASK APP ------------

app = Flask(__name__)

# variant name -> view; the document inside is replaced wholesale on each page load
_views: Dict[str, ScheduleView] = {}


def get_view(variant: Optional[str]) -> Tuple[str, ScheduleView]:
    name = variant if variant in VARIANTS else DEFAULT_VARIANT
    view = _views.get(name)
    if view is None:
        view = ScheduleView(SCHEDULE_SOURCE, VARIANTS[name])
        _views[name] = view
    return name, view


def state_from_args(args) -> FilterState:
    """
    Rebuild the page's filter state from query args by replaying the handlers.

    `hours` is the last accepted window and `hours_input` the raw new value, so a
    bad input falls back to what the page had before.
    """
    state = FilterState()
    if args.get("next") == "1":
        state = toggle_filter(state)
    if "hours" in args:
        state = handle_time_filter_change(state, args.get("hours"))
    if "hours_input" in args:
        state = handle_time_filter_change(state, args.get("hours_input"))
    state = handle_search(state, args.get("q", ""))
    if args.get("captions") == "1":
        state = toggle_captions_filter(state)
    return state


def _no_store(resp: Response) -> Response:
    for key, value in NO_STORE_HEADERS.items():
        resp.headers[key] = value
    return resp


@app.route("/api/view")
def api_view():
    """
    JSON API: /api/view?variant=&next=&hours=&hours_input=&q=&captions=
    """
    name, view = get_view(request.args.get("variant"))
    state = state_from_args(request.args)

    binding = ViewBinding()
    rows = display_schedule(view.document, state, binding, view.clock(), view.config)
    if rows is None and view.load_error:
        binding.showtimes_html = LOAD_ERROR_HTML

    payload = {
        "variant": name,
        "loaded": view.document is not None,
        "state": state_to_dict(state),
        "count": len(rows) if rows is not None else 0,
    }
    payload.update(binding.as_dict())
    return _no_store(jsonify(payload))


@app.route("/current_schedule.json")
def schedule_file():
    if _is_url(SCHEDULE_SOURCE) or not Path(SCHEDULE_SOURCE).is_file():
        return jsonify({"ok": False, "error": "No local schedule file"}), 404
    body = Path(SCHEDULE_SOURCE).read_bytes()
    return _no_store(Response(body, mimetype="application/json"))


@app.route("/")
def index():
    name, view = get_view(request.args.get("variant"))
    view.load_schedule()
    document = view.document

    # the view's own binding is shared between requests; render the page into a private one
    state = FilterState()
    binding = ViewBinding()
    if document is None:
        binding.showtimes_html = LOAD_ERROR_HTML
    else:
        display_schedule(document, state, binding, view.clock(), view.config)

    html = render_template_string(
        PAGE_TEMPLATE,
        variant=name,
        config=view.config,
        binding=binding,
        state=state_to_dict(state),
    )
    return _no_store(Response(html, mimetype="text/html"))


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>Alamo Drafthouse Showtimes</title>
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <style>
    :root {
      color-scheme: dark;
      --bg: #05060a;
      --card: #141621;
      --accent: #f97316;
      --accent-soft: rgba(249, 115, 22, 0.2);
      --text: #f9fafb;
      --muted: #9ca3af;
      --border: #27272f;
    }
    body {
      margin: 0;
      font-family: system-ui, -apple-system, BlinkMacSystemFont, "SF Pro Text", sans-serif;
      background: radial-gradient(circle at top, #111827 0, #020617 45%);
      color: var(--text);
    }
    .wrap { max-width: 1000px; margin: 0 auto; padding: 0.75rem 1rem 2rem; }
    h1 { font-size: 1.4rem; margin: 0; letter-spacing: 0.04em; }
    .subtitle { font-size: 0.8rem; color: var(--muted); margin-top: 0.25rem; }
    .controls { display: flex; align-items: center; gap: 0.6rem; margin-top: 0.85rem; flex-wrap: wrap; }
    .controls label { font-size: 0.75rem; color: var(--muted); display: flex; align-items: center; gap: 0.25rem; }
    .controls input {
      background: #020617;
      border: 1px solid var(--border);
      color: var(--text);
      border-radius: 999px;
      padding: 0.25rem 0.7rem;
      font-size: 0.8rem;
    }
    #timeFilterInput { width: 4rem; text-align: center; }
    button {
      border-radius: 999px;
      border: none;
      padding: 0.35rem 0.9rem;
      font-size: 0.8rem;
      cursor: pointer;
      background: var(--accent-soft);
      color: var(--accent);
    }
    .time-range { font-size: 0.75rem; color: var(--muted); margin-top: 0.55rem; }
    table { width: 100%; border-collapse: collapse; margin-top: 1rem; font-size: 0.85rem; }
    th, td { text-align: left; padding: 0.4rem 0.5rem; border-bottom: 1px solid var(--border); }
    th { color: var(--muted); font-weight: 500; }
    tr.starting-soon td { color: #fecaca; }
    tr.upcoming td { color: #facc15; }
    .grid { margin-top: 1.1rem; display: flex; flex-direction: column; gap: 0.5rem; }
    .card {
      border-radius: 0.75rem;
      background: var(--card);
      border: 1px solid var(--border);
      padding: 0.6rem 0.75rem 0.55rem;
    }
    .card-starting-soon { border-color: rgba(248, 113, 113, 0.95); }
    .card-upcoming { border-color: rgba(250, 204, 21, 0.9); }
    .card-time { font-size: 0.75rem; color: var(--accent); }
    .card-title { font-size: 1.05rem; font-weight: 600; }
    .card-theater, .card-countdown { font-size: 0.8rem; color: var(--muted); }
    .caption-badge {
      font-size: 0.65rem;
      padding: 0.1rem 0.4rem;
      border-radius: 999px;
      border: 1px solid rgba(45, 212, 191, 0.4);
      color: #5eead4;
    }
    .urgency-label { font-size: 0.7rem; text-transform: uppercase; letter-spacing: 0.08em; margin-top: 0.25rem; }
    .urgency-starting-soon { color: #fecaca; }
    .urgency-upcoming { color: #facc15; }
    .loading, .error { margin-top: 0.75rem; font-size: 0.8rem; color: var(--muted); }
    .error { color: #fecaca; }
    @media (min-width: 700px) {
      .grid { display: grid; grid-template-columns: repeat(2, minmax(0, 1fr)); }
    }
  </style>
</head>
<body>
  <div class="wrap">
    <header>
      <h1>Alamo Drafthouse Showtimes</h1>
      <div class="subtitle">current_schedule.json · filters apply instantly</div>

      <div class="controls">
        <input id="searchBox" type="search" placeholder="Search movies…" />
        {% if config.configurable_window %}
        <label>Hours <input id="timeFilterInput" type="number" min="0.5" step="0.5" value="{{ state.hours }}"></label>
        {% endif %}
        <button id="toggleButton">{{ binding.toggle_label or "Show Next Hour Only" }}</button>
        {% if config.show_captions %}
        <button id="captionsButton">{{ binding.captions_label or "Show Open Caption Only" }}</button>
        {% endif %}
      </div>

      <div class="time-range" id="timeRange">{{ binding.time_range }}</div>
    </header>

    <div id="showtimes">
      {% if binding.showtimes_html %}{{ binding.showtimes_html | safe }}{% else %}<div class="loading">Loading…</div>{% endif %}
    </div>
  </div>

  <script>
    const variant = {{ variant | tojson }};
    let state = {{ state | tojson }};

    const searchBox = document.getElementById('searchBox');
    const timeFilterInput = document.getElementById('timeFilterInput');
    const toggleButton = document.getElementById('toggleButton');
    const captionsButton = document.getElementById('captionsButton');
    const timeRangeEl = document.getElementById('timeRange');
    const showtimesEl = document.getElementById('showtimes');

    // only the response to the latest request may touch state or the page
    let requestSeq = 0;

    async function displaySchedule() {
      const seq = ++requestSeq;
      const params = new URLSearchParams({
        variant,
        next: state.next ? '1' : '0',
        hours: String(state.hours),
        q: state.q,
        captions: state.captions ? '1' : '0',
        t: String(Date.now()),
      });
      // always resend the raw window input so a superseded request cannot drop it
      if (timeFilterInput) params.set('hours_input', timeFilterInput.value);

      try {
        const res = await fetch(`/api/view?${params}`, { cache: 'no-store' });
        const data = await res.json();
        if (seq !== requestSeq) return;
        state = data.state;
        if (!data.loaded && !data.showtimes_html) return;
        toggleButton.textContent = data.toggle_label || toggleButton.textContent;
        if (captionsButton && data.captions_label) captionsButton.textContent = data.captions_label;
        timeRangeEl.textContent = data.time_range;
        showtimesEl.innerHTML = data.showtimes_html;
      } catch (err) {
        console.error('Error rendering schedule:', err);
      }
    }

    function toggleFilter() { state.next = !state.next; displaySchedule(); }
    function toggleCaptionsFilter() { state.captions = !state.captions; displaySchedule(); }
    function handleSearch() { state.q = searchBox.value.toLowerCase(); displaySchedule(); }
    function handleTimeFilterChange() { displaySchedule(); }

    searchBox.addEventListener('input', handleSearch);
    toggleButton.addEventListener('click', toggleFilter);
    if (captionsButton) captionsButton.addEventListener('click', toggleCaptionsFilter);
    if (timeFilterInput) timeFilterInput.addEventListener('input', handleTimeFilterChange);
  </script>
</body>
</html>
"""


def run_server(host: str = "0.0.0.0", port: int = 5000) -> None:
    hostname = socket.gethostname()
    try:
        local_ip = socket.gethostbyname(hostname)
    except OSError:
        local_ip = "127.0.0.1"
    print(f"Serving on http://{local_ip}:{port}  (or http://localhost:{port})")
    app.run(host=host, port=port)


# ------------ CLI ------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alamo-showtimes",
        description="Filter and display an Alamo Drafthouse showtime schedule.",
    )
    parser.add_argument("source", nargs="?", default=SCHEDULE_SOURCE,
                        help="schedule JSON file or URL (default: %(default)s)")
    parser.add_argument("--variant", choices=sorted(VARIANTS), default=DEFAULT_VARIANT)
    parser.add_argument("--output", choices=("text", "json", "html"), default="text")
    parser.add_argument("--next-hour", action="store_true",
                        help="only show the next window (1 hour, or --hours for configurable variants)")
    parser.add_argument("--hours", help="window size in hours for configurable variants")
    parser.add_argument("--search", default="", help="case-insensitive movie title filter")
    parser.add_argument("--captions", action="store_true", help="only open caption showtimes")
    parser.add_argument("--serve", action="store_true", help="run the web app instead")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.serve:
        run_server(args.host, args.port)
        return 0

    config = VARIANTS[args.variant]
    try:
        document = fetch_schedule(args.source, cache_bust=config.cache_bust)
    except ScheduleLoadFailure as e:
        print(f"Error loading schedule: {e}", file=sys.stderr)
        return 1

    state = FilterState()
    if args.next_hour:
        state = toggle_filter(state)
    if args.hours is not None:
        state = handle_time_filter_change(state, args.hours)
    state = handle_search(state, args.search)
    if args.captions:
        state = toggle_captions_filter(state)

    now = now_local()
    if args.output == "json":
        print(render_json(document, state, now, config))
    elif args.output == "html":
        binding = ViewBinding()
        display_schedule(document, state, binding, now, config)
        print(binding.showtimes_html)
    else:
        print(render_text(document, state, now, config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
