"""Aggregate statistics derived from a watchlist snapshot."""

from __future__ import annotations

from collections import Counter

from ..models import GenreCount, Watchlist, WatchlistStats

TOP_GENRE_LIMIT = 5


def compute_stats(watchlist: Watchlist, *, top_genres: int = TOP_GENRE_LIMIT) -> WatchlistStats:
    """Return counts, the average rating and the most frequent genres.

    Only items with a positive rating contribute to the average. Genres are
    ranked by descending count; equal counts keep the order in which each
    genre was first seen while scanning the items.
    """

    watched = 0
    rating_total = 0.0
    rated = 0
    # Counter preserves insertion order, which gives the first-seen tie-break.
    genre_counts: Counter[str] = Counter()

    for item in watchlist.items:
        if item.is_watched:
            watched += 1
        if item.rating > 0:
            rating_total += item.rating
            rated += 1
        genre_counts.update(item.genre_names())

    ranked = sorted(genre_counts.items(), key=lambda entry: -entry[1])

    total = len(watchlist.items)
    return WatchlistStats(
        total_items=total,
        watched_items=watched,
        unwatched_items=total - watched,
        average_rating=rating_total / rated if rated else 0.0,
        top_genres=[
            GenreCount(genre=genre, count=count) for genre, count in ranked[:top_genres]
        ],
    )
