"""CSV and HTML report rendering for watchlists."""

from __future__ import annotations

import csv
import io
import logging
import re
from datetime import datetime
from enum import Enum
from html import escape
from textwrap import dedent

from ..errors import InvalidInputError
from ..models import Watchlist, WatchlistItem, WatchlistStats
from ..utils import utcnow

logger = logging.getLogger(__name__)

CSV_HEADER: tuple[str, ...] = (
    "Title",
    "Release Date",
    "Genre",
    "Rating",
    "Status",
    "Added Date",
    "Watched Date",
    "Notes",
    "Overview",
)


class ExportFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"

    @classmethod
    def parse(cls, value: str | None) -> "ExportFormat":
        """Return the format for ``value``; blank selects CSV."""

        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.CSV
        try:
            return cls(normalized)
        except ValueError as exc:
            raise InvalidInputError(
                "Invalid format. Use 'csv' or 'pdf'", details={"format": value}
            ) from exc


def to_csv(watchlist: Watchlist) -> bytes:
    """Render one row per item in collection order."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in watchlist.items:
        writer.writerow(_csv_row(item))
    return buffer.getvalue().encode("utf-8")


def _csv_row(item: WatchlistItem) -> list[str]:
    watched_date = ""
    if item.is_watched and item.watched_at is not None:
        watched_date = item.watched_at.strftime("%Y-%m-%d")
    return [
        item.title,
        item.release_date,
        item.genre,
        f"{item.rating:.1f}",
        "Watched" if item.is_watched else "Unwatched",
        item.added_at.strftime("%Y-%m-%d"),
        watched_date,
        item.user_notes,
        item.overview,
    ]


REPORT_TEMPLATE = dedent(
    """\
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="utf-8" />
        <title>My Watchlist Report</title>
        <style>
            body { font-family: Arial, sans-serif; margin: 20px; color: #333; }
            .header { text-align: center; margin-bottom: 30px; }
            .stats { background: #f5f5f5; padding: 20px; border-radius: 8px; margin-bottom: 30px; }
            .stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; }
            .stat-item { text-align: center; }
            .stat-number { font-size: 24px; font-weight: bold; color: #e94560; }
            .stat-label { font-size: 14px; color: #666; }
            .movie-item { border-bottom: 1px solid #eee; padding: 15px 0; }
            .movie-title { font-size: 18px; font-weight: bold; margin-bottom: 5px; }
            .movie-details { color: #666; font-size: 14px; margin-bottom: 5px; }
            .movie-overview { color: #888; font-size: 13px; line-height: 1.4; }
            .status-watched { color: #28a745; font-weight: bold; }
            .status-unwatched { color: #ffc107; font-weight: bold; }
            .rating { color: #e94560; font-weight: bold; }
            .genre-item { display: inline-block; background: #e94560; color: white; padding: 5px 10px; margin: 2px; border-radius: 15px; font-size: 12px; }
        </style>
    </head>
    <body>
        <div class="header">
            <h1>My Watchlist Report</h1>
            <p>Generated on __GENERATED_ON__</p>
        </div>
        <div class="stats">
            <h2>Statistics</h2>
            <div class="stats-grid">
                <div class="stat-item"><div class="stat-number">__TOTAL__</div><div class="stat-label">Total Movies</div></div>
                <div class="stat-item"><div class="stat-number">__WATCHED__</div><div class="stat-label">Watched</div></div>
                <div class="stat-item"><div class="stat-number">__UNWATCHED__</div><div class="stat-label">To Watch</div></div>
                <div class="stat-item"><div class="stat-number">__AVERAGE__</div><div class="stat-label">Avg Rating</div></div>
            </div>
    __GENRES__
        </div>
        <div class="movies-section">
            <h2>Movies (__ITEM_COUNT__)</h2>
    __ITEMS__
        </div>
    </body>
    </html>
    """
)
PLACEHOLDER_RE = re.compile(r"__[A-Z_]+__")


def to_report(
    watchlist: Watchlist,
    stats: WatchlistStats,
    *,
    generated_at: datetime | None = None,
) -> bytes:
    """Return a self-contained HTML report standing in for a PDF export."""

    generated = generated_at or utcnow()
    replacements = {
        "__GENERATED_ON__": f"{generated:%B} {generated.day}, {generated.year}",
        "__TOTAL__": str(stats.total_items),
        "__WATCHED__": str(stats.watched_items),
        "__UNWATCHED__": str(stats.unwatched_items),
        "__AVERAGE__": f"{stats.average_rating:.1f}",
        "__GENRES__": _render_genres(stats),
        "__ITEM_COUNT__": str(len(watchlist.items)),
        "__ITEMS__": "\n".join(_render_item(item) for item in watchlist.items),
    }
    # Single pass so placeholder-like text inside titles is left alone.
    html = PLACEHOLDER_RE.sub(
        lambda match: replacements.get(match.group(0), match.group(0)), REPORT_TEMPLATE
    )
    return html.encode("utf-8")


def _render_genres(stats: WatchlistStats) -> str:
    if not stats.top_genres:
        return ""
    chips = "".join(
        f'<span class="genre-item">{escape(entry.genre)} ({entry.count})</span>'
        for entry in stats.top_genres
    )
    return f'        <div class="genres"><h3>Top Genres</h3>{chips}</div>'


def _render_item(item: WatchlistItem) -> str:
    if item.is_watched:
        status = '<span class="status-watched">Watched</span>'
        if item.watched_at is not None:
            watched = item.watched_at
            status += f" on {watched:%b} {watched.day}, {watched.year}"
    else:
        status = '<span class="status-unwatched">To Watch</span>'

    lines = [
        '        <div class="movie-item">',
        f'            <div class="movie-title">{escape(item.title)}</div>',
        '            <div class="movie-details">'
        f"{escape(item.release_date)} &bull; {escape(item.genre)} &bull; "
        f'<span class="rating">&#9733; {item.rating:.1f}</span> &bull; {status}</div>',
    ]
    if item.user_notes:
        lines.append(
            '            <div class="movie-details"><strong>Notes:</strong> '
            f"{escape(item.user_notes)}</div>"
        )
    lines.append(f'            <div class="movie-overview">{escape(item.overview)}</div>')
    lines.append("        </div>")
    return "\n".join(lines)


def export_watchlist(
    export_format: ExportFormat,
    watchlist: Watchlist,
    stats: WatchlistStats,
) -> tuple[bytes, str, str]:
    """Return ``(body, media_type, file_extension)`` for ``export_format``."""

    if export_format is ExportFormat.CSV:
        body = to_csv(watchlist)
        media_type, extension = "text/csv; charset=utf-8", "csv"
    else:
        body = to_report(watchlist, stats)
        media_type, extension = "text/html; charset=utf-8", "html"
    logger.info(
        "Watchlist exported to %s for user %s", export_format.value, watchlist.user_id
    )
    return body, media_type, extension
