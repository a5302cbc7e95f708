"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from app.models import WatchlistItemCreate  # noqa: E402
from app.services.sharing import ShareRegistry  # noqa: E402
from app.services.watchlist import WatchlistStore  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def store(tmp_path: Path) -> WatchlistStore:
    return WatchlistStore(tmp_path / "data")


@pytest.fixture
def registry(store: WatchlistStore) -> ShareRegistry:
    return ShareRegistry(store)


def make_item(movie_id: int, **overrides: Any) -> WatchlistItemCreate:
    """Return an add payload with sensible defaults for tests."""

    base: dict[str, Any] = {
        "movie_id": movie_id,
        "title": f"Movie {movie_id}",
        "poster_path": f"/poster-{movie_id}.jpg",
        "release_date": "2010-07-16",
        "genre": "Action",
        "rating": 7.0,
        "overview": "A test title.",
    }
    base.update(overrides)
    return WatchlistItemCreate(**base)
