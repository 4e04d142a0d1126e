"""Chart search — a small dashboard driven by a tickflow session.

Pick an artist and a track, press Go, get a chart of how the track moved
through the weekly charts. The chart is redrawn only when Go is pressed, even
though it reads the current selection.

Run with ``python -m tickflow.demo``.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, Iterable

from tickflow.session import Session, create_session

logger = logging.getLogger("tickflow.demo")

SAMPLE_CHARTS = [
    {"artist": "2 Pac", "track": "Baby Don't Cry", "date_entered": date(2000, 2, 26),
     "wk1": 87, "wk2": 82, "wk3": 72, "wk4": 77},
    {"artist": "2Ge+her", "track": "The Hardest Part Of ...", "date_entered": date(2000, 9, 2),
     "wk1": 91, "wk2": 87, "wk3": 92, "wk4": None},
    {"artist": "3 Doors Down", "track": "Kryptonite", "date_entered": date(2000, 4, 8),
     "wk1": 81, "wk2": 70, "wk3": 68, "wk4": 67},
]


def pivot_longer(rows: Iterable[dict], prefix: str = "wk") -> list[dict]:
    """One row per track per charted week; weeks without a rank are dropped."""
    long_rows = []
    for row in rows:
        weeks = sorted(
            (int(key[len(prefix):]), rank)
            for key, rank in row.items()
            if key.startswith(prefix) and key[len(prefix):].isdigit()
        )
        for week, rank in weeks:
            if rank is None:
                continue
            charted = row["date_entered"] + timedelta(weeks=week)
            long_rows.append({
                "artist": row["artist"],
                "track": row["track"],
                "full_title": f"{row['artist']} - {row['track']}",
                "rank": rank,
                "date": charted,
                # week of the year, counting from Jan 1st
                "week": (charted.timetuple().tm_yday - 1) // 7 + 1,
            })
    return long_rows


def artists(rows: Iterable[dict]) -> list[str]:
    return sorted({row["artist"] for row in rows})


def tracks(rows: Iterable[dict], artist: str | None = None) -> list[str]:
    return sorted({row["track"] for row in rows if artist is None or row["artist"] == artist})


def render_chart(rows: list[dict]) -> str:
    """Text line plot: one line per week, a longer bar for a better rank."""
    lines = [rows[0]["full_title"]]
    for row in sorted(rows, key=lambda r: r["date"]):
        bar = "#" * ((101 - row["rank"]) // 5 + 1)
        lines.append(f"{row['date'].isoformat()}  #{row['rank']:<3} {bar}")
    return "\n".join(lines)


class ChartSearch:
    """Artist/track selection, a Go button, and a chart gated on Go."""

    def __init__(
        self,
        session: Session,
        rows: list[dict],
        renderer: Callable[[list[dict]], object] = render_chart,
    ) -> None:
        self.session = session
        self.rows = rows
        self.renderer = renderer
        self.artifacts: list[object] = []

        self.artist = session.value("", name="artist")
        self.track = session.value("", name="track")
        self.go = session.event("go")

        @session.expression
        def filtered():
            artist, track = self.artist.get(), self.track.get()
            return [r for r in self.rows if r["artist"] == artist and r["track"] == track]

        @session.expression
        def track_choices():
            artist = self.artist.get()
            return tracks(self.rows, artist or None)

        @session.observer(gate=[self.go])
        def plot():
            data = filtered.get()
            if not data:
                return
            self.artifacts.append(self.renderer(data))

        self.filtered = filtered
        self.track_choices = track_choices
        self.plot = plot

    def select(self, artist: str, track: str) -> None:
        with self.session.transaction():
            self.artist.set(artist)
            self.track.set(track)

    def search(self) -> None:
        with self.session.transaction():
            self.session.fire(self.go)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    session = create_session("chart-search")
    app = ChartSearch(session, pivot_longer(SAMPLE_CHARTS))

    print("Artists:", ", ".join(artists(app.rows)))
    app.select("3 Doors Down", "Kryptonite")
    print("Tracks:", ", ".join(app.track_choices.get()))
    print("Charts drawn before Go:", len(app.artifacts))

    app.search()
    print(app.artifacts[-1])

    app.select("2 Pac", "Baby Don't Cry")
    print("Charts drawn after changing the selection:", len(app.artifacts))

    app.search()
    print(app.artifacts[-1])


if __name__ == "__main__":
    main()
