"""CSV and HTML export rendering."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

import pytest

from app.errors import InvalidInputError
from app.models import Watchlist, WatchlistItem
from app.services.export import (
    CSV_HEADER,
    ExportFormat,
    export_watchlist,
    to_csv,
    to_report,
)
from app.services.stats import compute_stats

ADDED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
WATCHED = datetime(2024, 3, 5, 21, 30, tzinfo=timezone.utc)


def _watchlist() -> Watchlist:
    return Watchlist(
        user_id="alice",
        items=[
            WatchlistItem(
                id="a1",
                movie_id=603,
                title="The Matrix",
                release_date="1999-03-30",
                genre="Action, Science Fiction",
                rating=8.5,
                overview="A hacker learns the truth.",
                added_at=ADDED,
            ),
            WatchlistItem(
                id="a2",
                movie_id=27205,
                title="Inception",
                release_date="2010-07-16",
                genre="Action",
                rating=7.5,
                overview="Dreams, layered.",
                is_watched=True,
                added_at=ADDED,
                watched_at=WATCHED,
                user_notes="Rewatch soon",
            ),
        ],
        created_at=ADDED,
        updated_at=WATCHED,
    )


def test_csv_has_header_and_one_row_per_item() -> None:
    rows = list(csv.reader(io.StringIO(to_csv(_watchlist()).decode("utf-8"))))

    assert tuple(rows[0]) == CSV_HEADER
    assert rows[1] == [
        "The Matrix",
        "1999-03-30",
        "Action, Science Fiction",
        "8.5",
        "Unwatched",
        "2024-03-01",
        "",
        "",
        "A hacker learns the truth.",
    ]
    assert rows[2] == [
        "Inception",
        "2010-07-16",
        "Action",
        "7.5",
        "Watched",
        "2024-03-01",
        "2024-03-05",
        "Rewatch soon",
        "Dreams, layered.",
    ]


def test_csv_of_empty_watchlist_is_header_only() -> None:
    body = to_csv(Watchlist.empty("alice")).decode("utf-8")

    assert body == ",".join(CSV_HEADER) + "\n"


def test_csv_is_deterministic() -> None:
    assert to_csv(_watchlist()) == to_csv(_watchlist())


def test_report_contains_stats_and_items() -> None:
    watchlist = _watchlist()
    html = to_report(watchlist, compute_stats(watchlist), generated_at=WATCHED).decode("utf-8")

    assert "Generated on March 5, 2024" in html
    assert '<div class="stat-number">2</div>' in html
    assert '<div class="stat-number">8.0</div>' in html
    assert "Movies (2)" in html
    assert '<span class="genre-item">Action (2)</span>' in html
    assert "Watched</span> on Mar 5, 2024" in html
    assert "Rewatch soon" in html


def test_report_escapes_user_text() -> None:
    watchlist = Watchlist(
        user_id="mallory",
        items=[
            WatchlistItem(
                id="x",
                movie_id=1,
                title="<script>alert(1)</script> __TOTAL__",
                user_notes="Tom & Jerry",
                added_at=ADDED,
            )
        ],
    )

    html = to_report(watchlist, compute_stats(watchlist), generated_at=ADDED).decode("utf-8")

    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt; __TOTAL__" in html
    assert "Tom &amp; Jerry" in html


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, ExportFormat.CSV), ("", ExportFormat.CSV), ("CSV", ExportFormat.CSV), ("pdf", ExportFormat.PDF)],
)
def test_export_format_parse(value, expected) -> None:
    assert ExportFormat.parse(value) is expected


def test_export_format_rejects_unknown() -> None:
    with pytest.raises(InvalidInputError, match="Invalid format"):
        ExportFormat.parse("xlsx")


def test_export_watchlist_reports_media_type_and_extension() -> None:
    watchlist = _watchlist()
    stats = compute_stats(watchlist)

    _, csv_type, csv_ext = export_watchlist(ExportFormat.CSV, watchlist, stats)
    body, html_type, html_ext = export_watchlist(ExportFormat.PDF, watchlist, stats)

    assert (csv_type, csv_ext) == ("text/csv; charset=utf-8", "csv")
    assert (html_type, html_ext) == ("text/html; charset=utf-8", "html")
    assert body.startswith(b"<!DOCTYPE html>")
